"""
HTTP routes — Google sign-in and read-only Classroom endpoints.

Route prefix: /api/v1
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query, status

from auth.jwt import create_state, create_token, verify_state
from api.dependencies import (
    get_classroom_client,
    get_connector,
    get_current_user_id,
    get_vault,
)
from classroom import service
from classroom.client import ClassroomClient
from classroom.errors import translate
from config.settings import config
from connectors.base import BaseConnector
from connectors.token_manager import CredentialVault
from utils.errors import RemoteAPIError

logger = logging.getLogger(__name__)

router = APIRouter()


def _split_states(raw: Optional[str]) -> Optional[List[str]]:
    if not raw:
        return None
    states = [s.strip() for s in raw.split(",") if s.strip()]
    return states or None


# ── Sign-in ────────────────────────────────────────────────────────────


@router.get("/auth/google", tags=["auth"])
async def google_auth_url(connector: BaseConnector = Depends(get_connector)) -> Dict[str, str]:
    """Authorization URL the frontend should redirect the user to."""
    if not connector.is_configured():
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Google OAuth is not configured (missing client id/secret)",
        )
    return {"auth_url": connector.get_auth_url(create_state())}


@router.get("/auth/google/callback", tags=["auth"])
async def google_callback(
    code: str = Query(...),
    state: str = Query(...),
    connector: BaseConnector = Depends(get_connector),
    vault: CredentialVault = Depends(get_vault),
) -> Dict[str, Any]:
    """
    Google redirects here after consent.

    Exchanges the code, records the user and their tokens, and returns an
    API bearer token for the internal user id.
    """
    verify_state(state)

    try:
        profile, tokens = await connector.handle_callback(code)
    except httpx.HTTPError as exc:
        envelope = translate(exc)
        logger.error("OAuth callback failed: %s %s", envelope.code, envelope.message)
        raise RemoteAPIError(envelope) from exc

    user_id = await vault.upsert_user(profile)
    await vault.upsert_tokens(user_id, connector.provider_name, tokens)
    user = await vault.get_user_by_id(user_id)

    logger.info("Signed in user=%s provider=%s", user_id, connector.provider_name)
    return {"token": create_token(user_id), "user": user}


@router.get("/me", tags=["auth"])
async def me(
    user_id: str = Depends(get_current_user_id),
    vault: CredentialVault = Depends(get_vault),
) -> Dict[str, Any]:
    user = await vault.get_user_by_id(user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown user")
    return {"user": user}


# ── Classroom ──────────────────────────────────────────────────────────


@router.get("/classroom/courses", tags=["classroom"])
async def courses(
    states: Optional[str] = Query(None, description="Comma-separated course states"),
    client: ClassroomClient = Depends(get_classroom_client),
) -> Dict[str, Any]:
    return {"courses": await service.list_courses(client, _split_states(states) or ["ACTIVE"])}


@router.get("/classroom/courses/{course_id}/role", tags=["classroom"])
async def course_role(
    course_id: str,
    client: ClassroomClient = Depends(get_classroom_client),
) -> Dict[str, Any]:
    return {"course_id": course_id, "role": await service.get_user_role(client, course_id)}


@router.get("/classroom/courses/{course_id}/students", tags=["classroom"])
async def course_students(
    course_id: str,
    client: ClassroomClient = Depends(get_classroom_client),
) -> Dict[str, Any]:
    return {"students": await service.list_course_students(client, course_id)}


@router.get("/classroom/courses/{course_id}/coursework", tags=["classroom"])
async def course_coursework(
    course_id: str,
    states: Optional[str] = Query(None, description="Comma-separated coursework states"),
    client: ClassroomClient = Depends(get_classroom_client),
) -> Dict[str, Any]:
    return {
        "coursework": await service.list_coursework(
            client, course_id, _split_states(states) or ["PUBLISHED"]
        )
    }


@router.get("/classroom/courses/{course_id}/submissions", tags=["classroom"])
async def course_submissions(
    course_id: str,
    course_work_id: Optional[str] = Query(None, alias="courseWorkId"),
    user_id: Optional[str] = Query(None, alias="userId"),
    states: Optional[str] = Query(None, description="Comma-separated submission states"),
    client: ClassroomClient = Depends(get_classroom_client),
) -> Dict[str, Any]:
    submissions = await service.list_submissions(
        client,
        course_id,
        coursework_id=course_work_id,
        user_id=user_id,
        states=_split_states(states),
        max_concurrency=config.submission_fanout_concurrency,
        timeout=config.aggregate_timeout_seconds,
    )
    return {"submissions": submissions}
