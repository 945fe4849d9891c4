"""
Course role inference.

Classroom exposes no "my role" field, so the role is inferred by probing
membership rows for ``me``:

    PROBE_TEACHER ──ok──▶ TEACHER
         │fail
         ▼
    PROBE_STUDENT ──ok──▶ STUDENT
         │fail
         ▼
       UNKNOWN            (e.g. a coordinator with no membership row)

A failing probe is an expected outcome, not an error: it only advances the
machine.  "Not found" and "forbidden" are not distinguished here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict

from classroom.client import ClassroomClient
from classroom.errors import translate
from utils.schemas import Role

logger = logging.getLogger(__name__)


class ProbeState(str, Enum):
    PROBE_TEACHER = "PROBE_TEACHER"
    PROBE_STUDENT = "PROBE_STUDENT"
    TEACHER = "TEACHER"
    STUDENT = "STUDENT"
    UNKNOWN = "UNKNOWN"


@dataclass(frozen=True)
class _Probe:
    check: Callable[[ClassroomClient, str], Awaitable[Any]]
    on_success: ProbeState
    on_failure: ProbeState


_PROBES: Dict[ProbeState, _Probe] = {
    ProbeState.PROBE_TEACHER: _Probe(
        check=lambda client, course_id: client.get_teacher(course_id),
        on_success=ProbeState.TEACHER,
        on_failure=ProbeState.PROBE_STUDENT,
    ),
    ProbeState.PROBE_STUDENT: _Probe(
        check=lambda client, course_id: client.get_student(course_id),
        on_success=ProbeState.STUDENT,
        on_failure=ProbeState.UNKNOWN,
    ),
}

_TERMINAL_ROLES: Dict[ProbeState, Role] = {
    ProbeState.TEACHER: Role.TEACHER,
    ProbeState.STUDENT: Role.STUDENT,
    ProbeState.UNKNOWN: Role.UNKNOWN,
}


async def _run_probe(probe: _Probe, client: ClassroomClient, course_id: str, state: ProbeState) -> bool:
    try:
        await probe.check(client, course_id)
    except Exception as exc:
        logger.debug("%s for course %s failed: %s", state.value, course_id, translate(exc).code)
        return False
    return True


async def resolve_role(client: ClassroomClient, course_id: str) -> Role:
    """Return the caller's role in ``course_id``; never raises for probe failures."""
    state = ProbeState.PROBE_TEACHER
    while state in _PROBES:
        probe = _PROBES[state]
        succeeded = await _run_probe(probe, client, course_id, state)
        state = probe.on_success if succeeded else probe.on_failure

    role = _TERMINAL_ROLES[state]
    logger.info("Resolved role %s in course %s", role.value, course_id)
    return role
