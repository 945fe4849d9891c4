"""
Credential vault — store / look up users and their per-provider OAuth tokens.

This is the single interface the rest of the service uses for credentials.
Refresh tokens are sealed with the injected ``CryptoEnvelope`` before they
reach the store; their plaintext is never persisted.
"""

from __future__ import annotations

import logging
from typing import Optional

from connectors.encryption import CryptoEnvelope
from connectors.store import CredentialStore
from utils.schemas import CredentialRecord, ProfileInfo, TokenSet, UserAccount

logger = logging.getLogger(__name__)


class CredentialVault:
    def __init__(self, store: CredentialStore, envelope: CryptoEnvelope):
        self._store = store
        self._envelope = envelope

    async def upsert_user(self, profile: ProfileInfo) -> str:
        """
        Create the user on first sight of ``profile.email``; otherwise refresh
        the display fields and return the existing id unchanged.
        """
        return await self._store.upsert_user(
            email=profile.email,
            display_name=profile.name,
            picture_url=profile.picture,
        )

    async def upsert_tokens(self, user_id: str, provider: str, token_set: TokenSet) -> str:
        """
        Store the token set for ``(user_id, provider)``, overwriting any
        previous record but keeping its creation time.

        A token set without a refresh token leaves the previously sealed
        refresh token in place.
        """
        sealed = None
        if token_set.refresh_token:
            sealed = self._envelope.encrypt(token_set.refresh_token)
        else:
            logger.debug("No refresh token in %s token set for user %s", provider, user_id)

        return await self._store.upsert_tokens(
            user_id,
            provider,
            access_token=token_set.access_token,
            sealed_refresh_token=sealed,
            expiry=token_set.expiry,
            scope=token_set.scope,
        )

    async def get_tokens_for(self, user_id: str, provider: str) -> Optional[CredentialRecord]:
        return await self._store.get_tokens(user_id, provider)

    async def get_user_by_id(self, user_id: str) -> Optional[UserAccount]:
        return await self._store.get_user_by_id(user_id)

    async def get_user_by_email(self, email: str) -> Optional[UserAccount]:
        return await self._store.get_user_by_email(email)

    def decrypt_refresh_token(self, record: CredentialRecord) -> str:
        """Raises ``IntegrityError`` / ``DecryptionError`` if the sealed token cannot be opened."""
        return self._envelope.decrypt(
            record.encrypted_refresh_token,
            record.nonce,
            record.auth_tag,
        )
