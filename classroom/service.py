"""
Classroom read operations used by the HTTP layer.

Every operation takes an authorized ``ClassroomClient`` (see
``connectors.client_factory``) and returns normalized schemas.  Remote
failures surface only as ``RemoteAPIError``; the roster additionally
requires the caller to teach the course.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from classroom import submissions
from classroom.client import ME, ClassroomClient
from classroom.errors import translated
from classroom.normalizers import (
    normalize_course,
    normalize_coursework,
    normalize_student,
    normalize_user_profile,
)
from classroom.pagination import Endpoint, drain_pages
from classroom.roles import resolve_role
from utils.errors import RoleRequiredError
from utils.schemas import Course, CourseworkItem, Role, Submission, UserProfile

logger = logging.getLogger(__name__)


@translated
async def list_courses(client: ClassroomClient, states: Sequence[str] = ("ACTIVE",)) -> List[Course]:
    raw = await drain_pages(client.pager(Endpoint.COURSES), {"courseStates": list(states)})
    return [normalize_course(c) for c in raw]


@translated
async def list_course_students(client: ClassroomClient, course_id: str) -> List[UserProfile]:
    """Course roster; only the course's teachers may read it."""
    role = await resolve_role(client, course_id)
    if role is not Role.TEACHER:
        raise RoleRequiredError(required=Role.TEACHER, actual=role)
    raw = await drain_pages(client.pager(Endpoint.STUDENTS), {"courseId": course_id})
    return [normalize_student(s) for s in raw]


@translated
async def list_coursework(
    client: ClassroomClient,
    course_id: str,
    states: Sequence[str] = ("PUBLISHED",),
) -> List[CourseworkItem]:
    raw = await drain_pages(
        client.pager(Endpoint.COURSEWORK),
        {"courseId": course_id, "courseWorkStates": list(states)},
    )
    return [normalize_coursework(cw) for cw in raw]


async def list_submissions(
    client: ClassroomClient,
    course_id: str,
    *,
    coursework_id: Optional[str] = None,
    user_id: Optional[str] = None,
    states: Optional[Sequence[str]] = None,
    max_concurrency: int = submissions.DEFAULT_CONCURRENCY,
    timeout: Optional[float] = None,
) -> List[Submission]:
    return await submissions.list_submissions(
        client,
        course_id,
        coursework_id=coursework_id,
        user_id=user_id,
        states=states,
        max_concurrency=max_concurrency,
        timeout=timeout,
    )


@translated
async def get_user_role(client: ClassroomClient, course_id: str) -> Role:
    return await resolve_role(client, course_id)


@translated
async def get_user_profile(client: ClassroomClient, user_id: str = ME) -> UserProfile:
    return normalize_user_profile(await client.get_user_profile(user_id))
