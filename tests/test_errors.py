"""
Tests for remote failure translation.
"""

import asyncio

import httpx
import pytest
from google.auth.exceptions import RefreshError

from classroom.errors import translate, translated
from utils.errors import (
    CredentialsNotFoundError,
    ErrorCode,
    RemoteAPIError,
    RoleRequiredError,
)
from utils.schemas import Role


def _httpx_error(status: int, body: dict) -> httpx.HTTPStatusError:
    request = httpx.Request("POST", "https://oauth2.googleapis.com/token")
    response = httpx.Response(status, json=body, request=request)
    return httpx.HTTPStatusError("error", request=request, response=response)


class TestDecisionTable:
    def test_404_is_ambiguous_not_found(self, http_error):
        env = translate(http_error(404, reason="notFound"))
        assert (env.code, env.http_status) == ("NOT_FOUND_OR_FORBIDDEN", 404)

    def test_401(self, http_error):
        env = translate(http_error(401, reason="authError"))
        assert (env.code, env.http_status) == ("AUTH_REAUTH", 401)

    def test_403(self, http_error):
        env = translate(http_error(403, reason="forbidden"))
        assert (env.code, env.http_status) == ("INSUFFICIENT_PERMISSIONS", 403)

    @pytest.mark.parametrize("status", [400, 403, 404, 500])
    def test_invalid_grant_wins_at_any_status(self, http_error, status):
        env = translate(http_error(status, reason="invalid_grant", message="Token has been revoked"))
        assert (env.code, env.http_status) == ("AUTH_REAUTH", 401)

    def test_refresh_error_invalid_grant(self):
        exc = RefreshError("invalid_grant: Token has been expired or revoked.", {"error": "invalid_grant"})
        env = translate(exc)
        assert (env.code, env.http_status) == ("AUTH_REAUTH", 401)

    def test_invalid_token_marker(self):
        env = translate(_httpx_error(400, {"error": "invalid_token"}))
        assert (env.code, env.http_status) == ("AUTH_REAUTH", 401)

    def test_other_status_keeps_status_and_reason(self, http_error):
        env = translate(http_error(503, reason="backendError", message="Backend unavailable"))
        assert env.code == "PROVIDER_ERROR"
        assert env.http_status == 503
        assert env.message == "backendError"

    def test_unknown_exception_defaults_to_500(self):
        env = translate(RuntimeError("socket closed"))
        assert (env.code, env.http_status, env.message) == ("PROVIDER_ERROR", 500, "socket closed")

    def test_timeout(self):
        env = translate(asyncio.TimeoutError())
        assert (env.code, env.http_status) == ("PROVIDER_ERROR", 504)

    def test_status_attribute_duck_typing(self):
        class Weird(Exception):
            status_code = 404

        assert translate(Weird()).code == "NOT_FOUND_OR_FORBIDDEN"

    def test_service_errors_keep_their_kind(self):
        env = translate(CredentialsNotFoundError("u1"))
        assert (env.code, env.http_status) == ("CREDENTIALS_NOT_FOUND", 401)


class TestTranslatedDecorator:
    @pytest.mark.asyncio
    async def test_wraps_remote_failures(self, http_error):
        @translated
        async def op():
            raise http_error(404)

        with pytest.raises(RemoteAPIError) as excinfo:
            await op()
        assert excinfo.value.code is ErrorCode.NOT_FOUND_OR_FORBIDDEN
        assert excinfo.value.envelope.http_status == 404

    @pytest.mark.asyncio
    async def test_passes_service_errors_through(self):
        @translated
        async def op():
            raise RoleRequiredError(required=Role.TEACHER, actual=Role.STUDENT)

        with pytest.raises(RoleRequiredError) as excinfo:
            await op()
        assert excinfo.value.envelope.code == "ROLE_REQUIRED"
        assert "TEACHER" in excinfo.value.message

    @pytest.mark.asyncio
    async def test_returns_value(self):
        @translated
        async def op(x):
            return x * 2

        assert await op(21) == 42
