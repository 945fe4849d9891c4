"""
Build authorized Classroom clients from vault records.

The refresh token is opened from the vault and handed to google-auth
credentials, which renew the short-lived access token on demand.  Google
may rotate the refresh token during a renewal; the factory reports each
rotation to its ``on_rotation`` hook, which ``main.py`` wires to
``CredentialVault.upsert_tokens``.
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import Future
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

from google.oauth2.credentials import Credentials

from classroom.client import ClassroomClient
from connectors.token_manager import CredentialVault
from utils.errors import CredentialsNotFoundError
from utils.schemas import CredentialRecord, TokenSet

logger = logging.getLogger(__name__)

GOOGLE_PROVIDER = "google"

RotationHook = Callable[[str, str, TokenSet], Awaitable[Any]]
RefreshListener = Callable[["RotatingCredentials", Optional[str]], None]


class RotatingCredentials(Credentials):
    """``Credentials`` that report every successful refresh to a listener."""

    def __init__(self, *args: Any, on_refresh: Optional[RefreshListener] = None, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self._on_refresh = on_refresh

    def refresh(self, request: Any) -> None:
        previous = self.refresh_token
        super().refresh(request)
        if self._on_refresh is not None:
            self._on_refresh(self, previous)


def _to_google_expiry(expiry: Optional[datetime]) -> Optional[datetime]:
    """google-auth compares expiry against naive UTC."""
    if expiry is None:
        return None
    if expiry.tzinfo is not None:
        expiry = expiry.astimezone(timezone.utc).replace(tzinfo=None)
    return expiry


def _from_google_expiry(expiry: Optional[datetime]) -> Optional[datetime]:
    if expiry is None:
        return None
    return expiry.replace(tzinfo=timezone.utc) if expiry.tzinfo is None else expiry


class ClassroomClientFactory:
    def __init__(
        self,
        vault: CredentialVault,
        *,
        client_id: str,
        client_secret: str,
        token_uri: str = "https://oauth2.googleapis.com/token",
        call_timeout: float = 20.0,
        on_rotation: Optional[RotationHook] = None,
        provider: str = GOOGLE_PROVIDER,
    ):
        self._vault = vault
        self._client_id = client_id
        self._client_secret = client_secret
        self._token_uri = token_uri
        self._call_timeout = call_timeout
        self._on_rotation = on_rotation
        self._provider = provider

    async def get_authorized_client(self, user_id: str) -> ClassroomClient:
        """
        Raises
        ------
        CredentialsNotFoundError
            If the user has no stored record or no sealed refresh token.
        IntegrityError / DecryptionError
            If the sealed refresh token cannot be opened.
        """
        credentials = await self.get_credentials(user_id)
        return await ClassroomClient.from_credentials(credentials, call_timeout=self._call_timeout)

    async def get_credentials(self, user_id: str) -> RotatingCredentials:
        record = await self._vault.get_tokens_for(user_id, self._provider)
        if record is None or not record.has_refresh_token:
            raise CredentialsNotFoundError(user_id, self._provider)

        refresh_token = self._vault.decrypt_refresh_token(record)
        expiry = _to_google_expiry(record.expiry)
        # A stored access token is only reused while its expiry is known.
        access_token = record.access_token if expiry is not None else None

        return RotatingCredentials(
            token=access_token,
            refresh_token=refresh_token,
            token_uri=self._token_uri,
            client_id=self._client_id,
            client_secret=self._client_secret,
            expiry=expiry,
            on_refresh=self._refresh_listener(user_id, record, asyncio.get_running_loop()),
        )

    def _refresh_listener(
        self,
        user_id: str,
        record: CredentialRecord,
        loop: asyncio.AbstractEventLoop,
    ) -> RefreshListener:
        """Runs on the worker thread that performed the refresh."""

        def on_refresh(credentials: RotatingCredentials, previous: Optional[str]) -> None:
            logger.debug("Access token refreshed for user %s", user_id)
            if not credentials.refresh_token or credentials.refresh_token == previous:
                return

            if self._on_rotation is None:
                logger.warning(
                    "Refresh token rotated for user %s but no rotation hook is wired; "
                    "the stored token is now stale",
                    user_id,
                )
                return

            token_set = TokenSet(
                access_token=credentials.token,
                refresh_token=credentials.refresh_token,
                expiry=_from_google_expiry(credentials.expiry),
                scope=record.scope,
            )
            logger.info("Refresh token rotated for user %s; persisting", user_id)
            future = asyncio.run_coroutine_threadsafe(
                self._on_rotation(user_id, self._provider, token_set),
                loop,
            )
            future.add_done_callback(lambda f: _log_rotation_failure(user_id, f))

        return on_refresh


def _log_rotation_failure(user_id: str, future: Future) -> None:
    if future.cancelled():
        logger.error("Persisting rotated refresh token for user %s was cancelled", user_id)
        return
    exc = future.exception()
    if exc is not None:
        logger.error("Persisting rotated refresh token for user %s failed: %s", user_id, exc)
