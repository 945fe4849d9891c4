"""
Shared fixtures: a SQLite-backed vault and an in-memory Classroom fake.
"""

import asyncio
import base64
import json
import os
import tempfile
from typing import Any, Dict, List, Optional, Tuple

# Settings are read at import time; give the app a valid key and a local DB.
os.environ.setdefault("ENCRYPTION_KEY_BASE64", base64.b64encode(b"k" * 32).decode())
os.environ.setdefault(
    "DATABASE_URL",
    f"sqlite+aiosqlite:///{os.path.join(tempfile.gettempdir(), 'classroom_gateway_test.sqlite')}",
)

import httplib2
import pytest
import pytest_asyncio
from googleapiclient.errors import HttpError

from classroom.client import ClassroomClient
from classroom.pagination import Endpoint, Page
from connectors.encryption import CryptoEnvelope
from connectors.store import SqlCredentialStore
from connectors.token_manager import CredentialVault
from database.session import create_engine, create_session_factory, init_models


def make_http_error(status: int, reason: str = "backendError", message: str = "Request failed") -> HttpError:
    content = json.dumps(
        {
            "error": {
                "code": status,
                "message": message,
                "errors": [{"reason": reason, "message": message}],
            }
        }
    ).encode()
    return HttpError(httplib2.Response({"status": status}), content)


class FakeClassroom(ClassroomClient):
    """
    ClassroomClient with canned pages.

    ``pages[(endpoint, coursework_id)]`` is a list of pages (lists of raw
    items); cursors are page indexes.  ``failures`` maps the same keys to
    exceptions raised on the first call.
    """

    def __init__(self):
        super().__init__(service=None)
        self.pages: Dict[Tuple[Endpoint, Optional[str]], List[List[Dict[str, Any]]]] = {}
        self.failures: Dict[Tuple[Endpoint, Optional[str]], Exception] = {}
        self.delays: Dict[Tuple[Endpoint, Optional[str]], float] = {}
        self.calls: List[Tuple[Endpoint, Dict[str, Any]]] = []
        self.probe_calls: List[str] = []
        self.teacher_error: Optional[Exception] = None
        self.student_error: Optional[Exception] = None
        self.profile: Dict[str, Any] = {}
        self.active = 0
        self.max_active = 0

    async def list_page(self, endpoint, *, page_token=None, **params):
        self.calls.append((endpoint, dict(params, page_token=page_token)))
        key = (endpoint, params.get("courseWorkId"))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delays.get(key, 0))
            if key in self.failures:
                raise self.failures[key]
            pages = self.pages.get(key, [[]])
            index = int(page_token) if page_token else 0
            next_cursor = str(index + 1) if index + 1 < len(pages) else None
            return Page(items=pages[index], next_cursor=next_cursor)
        finally:
            self.active -= 1

    async def get_teacher(self, course_id, user_id="me"):
        self.probe_calls.append("teacher")
        if self.teacher_error is not None:
            raise self.teacher_error
        return {"courseId": course_id, "userId": user_id}

    async def get_student(self, course_id, user_id="me"):
        self.probe_calls.append("student")
        if self.student_error is not None:
            raise self.student_error
        return {"courseId": course_id, "userId": user_id}

    async def get_user_profile(self, user_id="me"):
        return self.profile


@pytest.fixture
def http_error():
    return make_http_error


@pytest.fixture
def fake_classroom() -> FakeClassroom:
    return FakeClassroom()


@pytest.fixture
def envelope() -> CryptoEnvelope:
    return CryptoEnvelope(os.urandom(32))


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'vault.sqlite'}")
    await init_models(engine)
    yield create_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def store(session_factory) -> SqlCredentialStore:
    return SqlCredentialStore(session_factory)


@pytest.fixture
def vault(store, envelope) -> CredentialVault:
    return CredentialVault(store, envelope)
