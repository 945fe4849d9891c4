"""
JWT-style token creation and verification.

Tokens are base64-encoded JSON payloads signed with HMAC-SHA256.  Two kinds
are issued:

  • API bearer tokens carrying ``user_id`` (secret: ``config.jwt_secret``)
  • OAuth ``state`` values carrying a CSRF nonce (secret: ``config.oauth_state_secret``)
"""

from __future__ import annotations

import hashlib
import hmac
import json
import secrets
import time
from base64 import b64decode, b64encode
from typing import Any, Dict

from fastapi import HTTPException, status

from config.settings import config

_STATE_TTL = 600  # seconds


def _sign(payload: Dict[str, Any], secret: str) -> str:
    raw = json.dumps(payload).encode()
    sig = hmac.new(secret.encode(), raw, hashlib.sha256).hexdigest()
    return b64encode(raw).decode() + "." + sig


def _verify(token: str, secret: str) -> Dict[str, Any]:
    """Return the payload; raises ``ValueError`` on bad format, signature or expiry."""
    parts = token.split(".", 1)
    if len(parts) != 2:
        raise ValueError("bad format")
    raw = b64decode(parts[0])
    expected_sig = hmac.new(secret.encode(), raw, hashlib.sha256).hexdigest()
    if not hmac.compare_digest(parts[1].encode(), expected_sig.encode()):
        raise ValueError("bad signature")
    payload = json.loads(raw)
    if payload.get("exp", 0) < time.time():
        raise ValueError("expired")
    return payload


def create_token(user_id: str) -> str:
    """Create a signed token containing ``user_id`` and expiry."""
    return _sign(
        {"user_id": user_id, "exp": int(time.time()) + config.jwt_expiry_seconds},
        config.jwt_secret,
    )


def verify_token(token: str) -> str:
    """
    Verify token and return ``user_id``.

    Raises ``HTTPException(401)`` on invalid or expired tokens.
    """
    try:
        return _verify(token, config.jwt_secret)["user_id"]
    except (ValueError, KeyError) as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid or expired token: {exc}",
        )


def create_state() -> str:
    """Opaque OAuth state: random nonce + expiry, signed."""
    return _sign(
        {"nonce": secrets.token_urlsafe(16), "exp": int(time.time()) + _STATE_TTL},
        config.oauth_state_secret,
    )


def verify_state(state: str) -> None:
    """Raises ``HTTPException(400)`` unless ``state`` was issued by ``create_state``."""
    try:
        _verify(state, config.oauth_state_secret)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid or expired OAuth state: {exc}",
        )
