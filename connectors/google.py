"""
GoogleConnector — OAuth2 web flow for Google Classroom (read-only scopes).
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlencode

import httpx

from connectors.base import BaseConnector
from utils.errors import ErrorCode, RemoteAPIError
from utils.schemas import ErrorEnvelope, ProfileInfo, TokenSet

logger = logging.getLogger(__name__)

# Google OAuth2 endpoints
_GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
_GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
_GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

CLASSROOM_SCOPES = [
    "openid",
    "email",
    "profile",
    "https://www.googleapis.com/auth/classroom.courses.readonly",
    "https://www.googleapis.com/auth/classroom.rosters.readonly",
    "https://www.googleapis.com/auth/classroom.coursework.me.readonly",
    "https://www.googleapis.com/auth/classroom.coursework.students.readonly",
    "https://www.googleapis.com/auth/classroom.profile.emails",
    "https://www.googleapis.com/auth/classroom.profile.photos",
]


def _malformed(detail: str) -> RemoteAPIError:
    logger.error("Google OAuth returned a malformed response: %s", detail)
    return RemoteAPIError(
        ErrorEnvelope(
            code=ErrorCode.PROVIDER_ERROR.value,
            http_status=502,
            message=f"Google sign-in failed: {detail}",
        )
    )


def _json_object(resp: httpx.Response) -> Dict[str, Any]:
    try:
        body = resp.json()
    except ValueError as exc:
        raise _malformed(f"{resp.request.url.path} did not return JSON") from exc
    return body if isinstance(body, dict) else {}


class GoogleConnector(BaseConnector):
    """OAuth2 connector for Google sign-in with Classroom access."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_base: str,
        *,
        token_url: str = _GOOGLE_TOKEN_URL,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._client_id = client_id
        self._client_secret = client_secret
        self._redirect_base = redirect_base.rstrip("/")
        self._token_url = token_url
        self._http_client = http_client

    @property
    def provider_name(self) -> str:
        return "google"

    @property
    def scopes(self) -> List[str]:
        return list(CLASSROOM_SCOPES)

    def is_configured(self) -> bool:
        return bool(self._client_id and self._client_secret)

    def redirect_uri(self) -> str:
        return f"{self._redirect_base}/api/v1/auth/google/callback"

    def get_auth_url(self, state: str) -> str:
        params = {
            "client_id": self._client_id,
            "redirect_uri": self.redirect_uri(),
            "response_type": "code",
            "scope": " ".join(self.scopes),
            "access_type": "offline",          # gets refresh_token
            "include_granted_scopes": "true",
            "prompt": "consent",               # force consent to always get refresh_token
            "state": state,
        }
        return f"{_GOOGLE_AUTH_URL}?{urlencode(params)}"

    async def handle_callback(self, code: str) -> Tuple[ProfileInfo, TokenSet]:
        """Exchange auth code for tokens, then fetch the signed-in profile."""
        client = self._http_client or httpx.AsyncClient()
        try:
            # 1. Exchange code for tokens
            token_resp = await client.post(
                self._token_url,
                data={
                    "code": code,
                    "client_id": self._client_id,
                    "client_secret": self._client_secret,
                    "redirect_uri": self.redirect_uri(),
                    "grant_type": "authorization_code",
                },
            )
            token_resp.raise_for_status()
            token_data = _json_object(token_resp)
            access_token = token_data.get("access_token")
            if not access_token:
                raise _malformed("token response has no access_token")

            # 2. Fetch user info
            headers = {"Authorization": f"Bearer {access_token}"}
            user_resp = await client.get(_GOOGLE_USERINFO_URL, headers=headers)
            user_resp.raise_for_status()
            user_info = _json_object(user_resp)
            email = user_info.get("email")
            if not email:
                raise _malformed("userinfo response has no email")
        finally:
            if self._http_client is None:
                await client.aclose()

        expires_in = token_data.get("expires_in")
        expiry = (
            datetime.now(timezone.utc) + timedelta(seconds=int(expires_in))
            if isinstance(expires_in, (int, float)) and not isinstance(expires_in, bool)
            else None
        )
        if not token_data.get("refresh_token"):
            logger.warning("Google returned no refresh_token for %s", email)

        profile = ProfileInfo(
            email=email,
            name=user_info.get("name") or "",
            picture=user_info.get("picture") or "",
        )
        tokens = TokenSet(
            access_token=access_token,
            refresh_token=token_data.get("refresh_token"),
            expiry=expiry,
            scope=token_data.get("scope"),
        )
        return profile, tokens
