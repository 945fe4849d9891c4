"""
Submission aggregation.

Classroom's ``studentSubmissions.list`` is scoped to a single coursework
item.  When no item is given, the aggregator drains the course's coursework
list and then drains submissions for every item through a bounded worker
pool.  Results are joined and concatenated in coursework-list order; one
failing branch cancels the rest and fails the whole call.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

from classroom.client import ClassroomClient
from classroom.errors import translated
from classroom.normalizers import normalize_coursework, normalize_submission
from classroom.pagination import Endpoint, drain_pages
from utils.schemas import Submission

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 4


def _filters(user_id: Optional[str], states: Optional[Sequence[str]]) -> Dict[str, Any]:
    filters: Dict[str, Any] = {}
    if user_id:
        filters["userId"] = user_id
    if states:
        filters["states"] = list(states)
    return filters


async def _drain_submissions(
    client: ClassroomClient,
    course_id: str,
    coursework_id: str,
    filters: Dict[str, Any],
) -> List[Dict[str, Any]]:
    return await drain_pages(
        client.pager(Endpoint.SUBMISSIONS),
        {"courseId": course_id, "courseWorkId": coursework_id, **filters},
    )


async def _fan_out(
    client: ClassroomClient,
    course_id: str,
    coursework_ids: List[str],
    filters: Dict[str, Any],
    max_concurrency: int,
) -> List[List[Dict[str, Any]]]:
    semaphore = asyncio.Semaphore(max(1, max_concurrency))

    async def worker(coursework_id: str) -> List[Dict[str, Any]]:
        async with semaphore:
            return await _drain_submissions(client, course_id, coursework_id, filters)

    tasks = [asyncio.ensure_future(worker(cw_id)) for cw_id in coursework_ids]
    try:
        return await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


@translated
async def list_submissions(
    client: ClassroomClient,
    course_id: str,
    *,
    coursework_id: Optional[str] = None,
    user_id: Optional[str] = None,
    states: Optional[Sequence[str]] = None,
    max_concurrency: int = DEFAULT_CONCURRENCY,
    timeout: Optional[float] = None,
) -> List[Submission]:
    """
    List normalized submissions for a course.

    Parameters
    ----------
    coursework_id : str, optional
        Restrict to one coursework item.  Without it, every coursework item
        in the course is queried (cost grows with items × pages).
    user_id : str, optional
        Server-side filter; ``"me"`` or a Classroom user id.
    states : sequence of str, optional
        Server-side submission state filter.
    max_concurrency : int
        Upper bound on concurrent per-item drains.
    timeout : float, optional
        Deadline in seconds for the whole aggregate.
    """
    filters = _filters(user_id, states)

    async def collect() -> List[Dict[str, Any]]:
        if coursework_id:
            return await _drain_submissions(client, course_id, coursework_id, filters)

        raw_coursework = await drain_pages(client.pager(Endpoint.COURSEWORK), {"courseId": course_id})
        coursework_ids = [normalize_coursework(cw).id for cw in raw_coursework]
        logger.info(
            "Aggregating submissions over %d coursework item(s) in course %s",
            len(coursework_ids),
            course_id,
        )
        batches = await _fan_out(client, course_id, coursework_ids, filters, max_concurrency)
        return [item for batch in batches for item in batch]

    if timeout is not None:
        raw = await asyncio.wait_for(collect(), timeout=timeout)
    else:
        raw = await collect()
    return [normalize_submission(item) for item in raw]
