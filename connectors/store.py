"""
CredentialStore — persistence contract for users and their OAuth credentials.

``SqlCredentialStore`` is the shipped implementation.  Every upsert runs as a
single transaction keyed on the record's natural key (email for users,
``(user_id, provider)`` for credentials).  A concurrent first insert of the
same key loses on the unique constraint and is retried once, at which point
it finds the winner's row and updates it.
"""

from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import exc as sa_exc
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from connectors.encryption import SealedSecret
from database.models import OAuthCredential, User
from utils.schemas import CredentialRecord, UserAccount

logger = logging.getLogger(__name__)

_UPSERT_ATTEMPTS = 2


class CredentialStore(ABC):
    """Abstract storage for user accounts and credential records."""

    @abstractmethod
    async def upsert_user(
        self,
        email: str,
        display_name: Optional[str],
        picture_url: Optional[str],
    ) -> str:
        """Create or update the user keyed by ``email``; return its id."""
        ...

    @abstractmethod
    async def upsert_tokens(
        self,
        user_id: str,
        provider: str,
        *,
        access_token: Optional[str],
        sealed_refresh_token: Optional[SealedSecret],
        expiry: Optional[datetime],
        scope: Optional[str],
    ) -> str:
        """
        Create or overwrite the ``(user_id, provider)`` record; return its id.

        ``sealed_refresh_token=None`` keeps whatever sealed token the record
        already holds.
        """
        ...

    @abstractmethod
    async def get_tokens(self, user_id: str, provider: str) -> Optional[CredentialRecord]:
        ...

    @abstractmethod
    async def get_user_by_id(self, user_id: str) -> Optional[UserAccount]:
        ...

    @abstractmethod
    async def get_user_by_email(self, email: str) -> Optional[UserAccount]:
        ...


class SqlCredentialStore(CredentialStore):
    """CredentialStore on async SQLAlchemy."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def upsert_user(
        self,
        email: str,
        display_name: Optional[str],
        picture_url: Optional[str],
    ) -> str:
        attempt = 0
        while True:
            attempt += 1
            try:
                async with self._session_factory() as session:
                    async with session.begin():
                        result = await session.execute(
                            select(User).where(User.email == email).with_for_update()
                        )
                        user = result.scalar_one_or_none()
                        now = datetime.now(timezone.utc)
                        if user is not None:
                            user.display_name = display_name
                            user.picture_url = picture_url
                            user.updated_at = now
                            created = False
                        else:
                            user = User(
                                id=str(uuid.uuid4()),
                                email=email,
                                display_name=display_name,
                                picture_url=picture_url,
                                created_at=now,
                                updated_at=now,
                            )
                            session.add(user)
                            created = True
                        user_id = user.id
            except sa_exc.IntegrityError:
                if attempt >= _UPSERT_ATTEMPTS:
                    raise
                logger.info("Concurrent first login for user row, retrying upsert")
                continue

            logger.info("%s user %s", "Created" if created else "Updated", user_id)
            return user_id

    async def upsert_tokens(
        self,
        user_id: str,
        provider: str,
        *,
        access_token: Optional[str],
        sealed_refresh_token: Optional[SealedSecret],
        expiry: Optional[datetime],
        scope: Optional[str],
    ) -> str:
        attempt = 0
        while True:
            attempt += 1
            try:
                async with self._session_factory() as session:
                    async with session.begin():
                        result = await session.execute(
                            select(OAuthCredential)
                            .where(
                                OAuthCredential.user_id == user_id,
                                OAuthCredential.provider == provider,
                            )
                            .with_for_update()
                        )
                        record = result.scalar_one_or_none()
                        now = datetime.now(timezone.utc)
                        created = record is None
                        if record is None:
                            record = OAuthCredential(
                                id=str(uuid.uuid4()),
                                user_id=user_id,
                                provider=provider,
                                created_at=now,
                            )
                            session.add(record)

                        record.access_token = access_token
                        if sealed_refresh_token is not None:
                            record.encrypted_refresh_token = sealed_refresh_token.ciphertext
                            record.nonce = sealed_refresh_token.nonce
                            record.auth_tag = sealed_refresh_token.auth_tag
                        record.expiry = expiry
                        record.scope = scope
                        record.updated_at = now
                        record_id = record.id
            except sa_exc.IntegrityError:
                if attempt >= _UPSERT_ATTEMPTS:
                    raise
                logger.info("Concurrent first credential write for user %s, retrying upsert", user_id)
                continue

            logger.info(
                "%s %s credentials for user %s",
                "Created" if created else "Updated",
                provider,
                user_id,
            )
            return record_id

    async def get_tokens(self, user_id: str, provider: str) -> Optional[CredentialRecord]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(OAuthCredential).where(
                    OAuthCredential.user_id == user_id,
                    OAuthCredential.provider == provider,
                )
            )
            record = result.scalar_one_or_none()
            return CredentialRecord.model_validate(record) if record is not None else None

    async def get_user_by_id(self, user_id: str) -> Optional[UserAccount]:
        async with self._session_factory() as session:
            user = await session.get(User, user_id)
            return UserAccount.model_validate(user) if user is not None else None

    async def get_user_by_email(self, email: str) -> Optional[UserAccount]:
        async with self._session_factory() as session:
            result = await session.execute(select(User).where(User.email == email))
            user = result.scalar_one_or_none()
            return UserAccount.model_validate(user) if user is not None else None
