"""
Translate raw Classroom / Google auth failures into ``ErrorEnvelope`` values.

Decision table, first match wins:

  1. status 401, or an ``invalid_grant`` / ``invalid_token`` marker → AUTH_REAUTH (401)
  2. status 403                                                   → INSUFFICIENT_PERMISSIONS (403)
  3. status 404                                                   → NOT_FOUND_OR_FORBIDDEN (404)
  4. anything else                                                → PROVIDER_ERROR (raw status or 500)

Classroom answers 404 both for missing resources and for resources the
caller's role cannot see; rule 3 does not tell them apart.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from typing import Any, Awaitable, Callable, List, Optional, TypeVar

import httpx
from google.auth.exceptions import RefreshError
from googleapiclient.errors import HttpError

from utils.errors import ErrorCode, RemoteAPIError, ServiceError
from utils.schemas import ErrorEnvelope

logger = logging.getLogger(__name__)

_REAUTH_MARKERS = ("invalid_grant", "invalid_token")

_REAUTH_MESSAGE = "Authentication expired. Please sign in again."
_FORBIDDEN_MESSAGE = "Insufficient permissions or Classroom API scopes."
_NOT_FOUND_MESSAGE = "Resource not found or not accessible with current role."
_TIMEOUT_MESSAGE = "Classroom did not respond in time."

T = TypeVar("T")


def _status_of(exc: BaseException) -> Optional[int]:
    if isinstance(exc, HttpError):
        return int(exc.resp.status)
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code
    for attr in ("status_code", "status", "code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


def _reasons_of(exc: BaseException) -> List[str]:
    """Candidate reason strings, most specific first."""
    reasons: List[str] = []
    if isinstance(exc, HttpError):
        details = exc.error_details
        if isinstance(details, list):
            for detail in details:
                if isinstance(detail, dict) and detail.get("reason"):
                    reasons.append(str(detail["reason"]))
        if exc.reason:
            reasons.append(str(exc.reason))
    elif isinstance(exc, httpx.HTTPStatusError):
        try:
            body = exc.response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and isinstance(body.get("error"), str):
            reasons.append(body["error"])
        elif isinstance(body, dict) and isinstance(body.get("error"), dict):
            message = body["error"].get("message")
            if message:
                reasons.append(str(message))
    elif isinstance(exc, RefreshError) and exc.args:
        reasons.append(str(exc.args[0]))

    text = str(exc)
    if text:
        reasons.append(text)
    return reasons


def translate(exc: BaseException) -> ErrorEnvelope:
    """Map a raw remote failure to its ``ErrorEnvelope``."""
    if isinstance(exc, ServiceError):
        return exc.envelope

    status = _status_of(exc)
    reasons = _reasons_of(exc)
    haystack = " ".join(reasons).lower()

    if status == 401 or any(marker in haystack for marker in _REAUTH_MARKERS):
        return ErrorEnvelope(code=ErrorCode.AUTH_REAUTH.value, http_status=401, message=_REAUTH_MESSAGE)
    if status == 403:
        return ErrorEnvelope(
            code=ErrorCode.INSUFFICIENT_PERMISSIONS.value, http_status=403, message=_FORBIDDEN_MESSAGE
        )
    if status == 404:
        return ErrorEnvelope(
            code=ErrorCode.NOT_FOUND_OR_FORBIDDEN.value, http_status=404, message=_NOT_FOUND_MESSAGE
        )
    if status is None and isinstance(exc, asyncio.TimeoutError):
        return ErrorEnvelope(code=ErrorCode.PROVIDER_ERROR.value, http_status=504, message=_TIMEOUT_MESSAGE)

    return ErrorEnvelope(
        code=ErrorCode.PROVIDER_ERROR.value,
        http_status=status or 500,
        message=reasons[0] if reasons else "Unknown error",
    )


def translated(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
    """
    Decorator for public Classroom operations: any non-``ServiceError``
    failure leaves as ``RemoteAPIError`` carrying its translated envelope.
    """

    @functools.wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> T:
        try:
            return await func(*args, **kwargs)
        except ServiceError:
            raise
        except Exception as exc:
            envelope = translate(exc)
            logger.warning(
                "%s failed: %s (%d) %s",
                func.__name__,
                envelope.code,
                envelope.http_status,
                envelope.message,
            )
            raise RemoteAPIError(envelope) from exc

    return wrapper
