"""
ClassroomClient — async wrapper around the ``googleapiclient`` Classroom service.

All ``googleapiclient`` calls are synchronous (and may refresh the access
token on the way), so every request is offloaded with ``asyncio.to_thread()``
and bounded by a per-call deadline.  Each request gets its own
``httplib2.Http`` because the transport is not safe to share between worker
threads.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, Optional

import google_auth_httplib2
import httplib2
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build

from classroom.pagination import Endpoint, Page, adapt_page

logger = logging.getLogger(__name__)

ME = "me"

# Endpoint → callable returning the bound ``list`` method of the resource.
_LIST_METHODS: Dict[Endpoint, Callable[[Any], Callable[..., Any]]] = {
    Endpoint.COURSES: lambda svc: svc.courses().list,
    Endpoint.STUDENTS: lambda svc: svc.courses().students().list,
    Endpoint.TEACHERS: lambda svc: svc.courses().teachers().list,
    Endpoint.COURSEWORK: lambda svc: svc.courses().courseWork().list,
    Endpoint.SUBMISSIONS: lambda svc: svc.courses().courseWork().studentSubmissions().list,
}


class ClassroomClient:
    """Authorized, read-only view of Classroom for one user."""

    def __init__(
        self,
        service: Any,
        *,
        credentials: Optional[Credentials] = None,
        call_timeout: float = 20.0,
    ):
        self._service = service
        self._credentials = credentials
        self._call_timeout = call_timeout

    @classmethod
    async def from_credentials(cls, credentials: Credentials, *, call_timeout: float = 20.0) -> "ClassroomClient":
        service = await asyncio.to_thread(
            build,
            "classroom",
            "v1",
            credentials=credentials,
            cache_discovery=False,
        )
        return cls(service, credentials=credentials, call_timeout=call_timeout)

    def _new_http(self) -> Optional[google_auth_httplib2.AuthorizedHttp]:
        if self._credentials is None:
            return None
        return google_auth_httplib2.AuthorizedHttp(self._credentials, http=httplib2.Http())

    async def _execute(self, request: Any) -> Dict[str, Any]:
        return await asyncio.wait_for(
            asyncio.to_thread(request.execute, http=self._new_http()),
            timeout=self._call_timeout,
        )

    # ── Lists ───────────────────────────────────────────────────────────

    async def list_page(
        self,
        endpoint: Endpoint,
        *,
        page_token: Optional[str] = None,
        **params: Any,
    ) -> Page:
        """Fetch one page of ``endpoint`` and adapt it to a ``Page``."""
        if page_token:
            params["pageToken"] = page_token
        method = _LIST_METHODS[endpoint](self._service)
        payload = await self._execute(method(**params))
        page = adapt_page(endpoint, payload)
        logger.debug(
            "%s page: %d item(s), more=%s",
            endpoint.value,
            len(page.items),
            bool(page.next_cursor),
        )
        return page

    def pager(self, endpoint: Endpoint) -> Callable[..., Any]:
        """A ``fetch_page`` callable for ``drain_pages`` bound to ``endpoint``."""

        async def fetch_page(*, page_token: Optional[str] = None, **params: Any) -> Page:
            return await self.list_page(endpoint, page_token=page_token, **params)

        return fetch_page

    # ── Membership probes ───────────────────────────────────────────────

    async def get_teacher(self, course_id: str, user_id: str = ME) -> Dict[str, Any]:
        request = self._service.courses().teachers().get(courseId=course_id, userId=user_id)
        return await self._execute(request)

    async def get_student(self, course_id: str, user_id: str = ME) -> Dict[str, Any]:
        request = self._service.courses().students().get(courseId=course_id, userId=user_id)
        return await self._execute(request)

    # ── Profiles ────────────────────────────────────────────────────────

    async def get_user_profile(self, user_id: str = ME) -> Dict[str, Any]:
        request = self._service.userProfiles().get(userId=user_id)
        return await self._execute(request)
