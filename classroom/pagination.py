"""
Cursor pagination for Classroom list endpoints.

Each list endpoint returns its items under a resource-specific field
(``courses``, ``students``, ``courseWork`` …).  ``adapt_page`` maps a raw
response to a uniform ``Page`` using an explicit per-endpoint table, and
``drain_pages`` follows ``next_cursor`` until the endpoint is exhausted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

logger = logging.getLogger(__name__)


class Endpoint(str, Enum):
    COURSES = "courses"
    STUDENTS = "students"
    TEACHERS = "teachers"
    COURSEWORK = "coursework"
    SUBMISSIONS = "submissions"


_ITEMS_FIELD: Dict[Endpoint, str] = {
    Endpoint.COURSES: "courses",
    Endpoint.STUDENTS: "students",
    Endpoint.TEACHERS: "teachers",
    Endpoint.COURSEWORK: "courseWork",
    Endpoint.SUBMISSIONS: "studentSubmissions",
}


@dataclass(frozen=True)
class Page:
    items: List[Dict[str, Any]] = field(default_factory=list)
    next_cursor: Optional[str] = None


def adapt_page(endpoint: Endpoint, payload: Optional[Mapping[str, Any]]) -> Page:
    """Map one raw list response to a ``Page``.  An empty response is an empty last page."""
    if not payload:
        return Page()
    items = payload.get(_ITEMS_FIELD[endpoint]) or []
    return Page(items=list(items), next_cursor=payload.get("nextPageToken") or None)


FetchPage = Callable[..., Awaitable[Page]]


async def drain_pages(fetch_page: FetchPage, params: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
    """
    Call ``fetch_page(page_token=..., **params)`` until no cursor comes back
    and return every item in order.

    Any exception from a page call propagates; nothing collected so far is
    returned.
    """
    params = dict(params or {})
    items: List[Dict[str, Any]] = []
    cursor: Optional[str] = None
    pages = 0

    while True:
        page = await fetch_page(page_token=cursor, **params)
        pages += 1
        items.extend(page.items)
        cursor = page.next_cursor
        if not cursor:
            break

    logger.debug("Drained %d item(s) over %d page(s)", len(items), pages)
    return items
