"""
Tests for building authorized clients and persisting rotated refresh tokens.
"""

import asyncio
import os
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest
from google.oauth2.credentials import Credentials

from classroom.client import ClassroomClient
from connectors.client_factory import ClassroomClientFactory, RotatingCredentials
from connectors.encryption import CryptoEnvelope
from connectors.token_manager import CredentialVault
from utils.errors import CredentialsNotFoundError, IntegrityError
from utils.schemas import ProfileInfo, TokenSet


def _factory(vault, on_rotation=None):
    return ClassroomClientFactory(
        vault,
        client_id="client-id",
        client_secret="client-secret",
        on_rotation=on_rotation,
    )


async def _seed(vault, refresh_token="refresh-1", expiry=None):
    user_id = await vault.upsert_user(ProfileInfo(email="t@school.edu", name="Terry"))
    await vault.upsert_tokens(
        user_id,
        "google",
        TokenSet(access_token="access-1", refresh_token=refresh_token, expiry=expiry, scope="classroom"),
    )
    return user_id


@pytest.fixture
def fake_refresh(monkeypatch):
    """Make ``Credentials.refresh`` rotate to a given refresh token without network."""
    state = {"rotate_to": "rotated", "calls": 0}

    def refresh(self, request):
        state["calls"] += 1
        self.token = "access-2"
        self._refresh_token = state["rotate_to"] or self._refresh_token
        self.expiry = datetime.utcnow() + timedelta(hours=1)

    monkeypatch.setattr(Credentials, "refresh", refresh)
    return state


class TestCredentials:
    @pytest.mark.asyncio
    async def test_missing_record(self, vault):
        with pytest.raises(CredentialsNotFoundError) as excinfo:
            await _factory(vault).get_authorized_client("nobody")
        assert excinfo.value.envelope.http_status == 401

    @pytest.mark.asyncio
    async def test_record_without_refresh_token(self, vault):
        user_id = await _seed(vault, refresh_token=None)
        with pytest.raises(CredentialsNotFoundError):
            await _factory(vault).get_credentials(user_id)

    @pytest.mark.asyncio
    async def test_decrypted_refresh_token_is_used(self, vault):
        expiry = datetime.now(timezone.utc) + timedelta(minutes=30)
        user_id = await _seed(vault, expiry=expiry)

        creds = await _factory(vault).get_credentials(user_id)

        assert isinstance(creds, RotatingCredentials)
        assert creds.refresh_token == "refresh-1"
        assert creds.token == "access-1"
        assert creds.client_id == "client-id"
        assert creds.expiry.tzinfo is None

    @pytest.mark.asyncio
    async def test_access_token_dropped_without_expiry(self, vault):
        user_id = await _seed(vault)
        creds = await _factory(vault).get_credentials(user_id)
        assert creds.token is None

    @pytest.mark.asyncio
    async def test_wrong_key_is_integrity_error(self, store, vault):
        user_id = await _seed(vault)
        other_vault = CredentialVault(store, CryptoEnvelope(os.urandom(32)))

        with pytest.raises(IntegrityError):
            await _factory(other_vault).get_credentials(user_id)

    @pytest.mark.asyncio
    async def test_builds_client(self, vault):
        user_id = await _seed(vault)

        with patch.object(ClassroomClient, "from_credentials", new=AsyncMock(return_value="client")) as build:
            assert await _factory(vault).get_authorized_client(user_id) == "client"

        credentials = build.await_args.args[0]
        assert credentials.refresh_token == "refresh-1"
        assert build.await_args.kwargs == {"call_timeout": 20.0}


class TestRotation:
    @pytest.mark.asyncio
    async def test_rotation_reaches_hook(self, vault, fake_refresh):
        user_id = await _seed(vault)
        received = []
        done = asyncio.Event()

        async def hook(uid, provider, token_set):
            received.append((uid, provider, token_set))
            done.set()

        creds = await _factory(vault, on_rotation=hook).get_credentials(user_id)
        await asyncio.to_thread(creds.refresh, None)
        await asyncio.wait_for(done.wait(), timeout=2)

        uid, provider, token_set = received[0]
        assert (uid, provider) == (user_id, "google")
        assert token_set.refresh_token == "rotated"
        assert token_set.access_token == "access-2"
        assert token_set.expiry.tzinfo is not None
        assert token_set.scope == "classroom"

    @pytest.mark.asyncio
    async def test_rotated_token_is_persisted(self, vault, fake_refresh):
        user_id = await _seed(vault)
        done = asyncio.Event()

        async def persist(uid, provider, token_set):
            await vault.upsert_tokens(uid, provider, token_set)
            done.set()

        creds = await _factory(vault, on_rotation=persist).get_credentials(user_id)
        await asyncio.to_thread(creds.refresh, None)
        await asyncio.wait_for(done.wait(), timeout=2)

        record = await vault.get_tokens_for(user_id, "google")
        assert vault.decrypt_refresh_token(record) == "rotated"
        assert record.access_token == "access-2"

    @pytest.mark.asyncio
    async def test_unchanged_token_does_not_fire(self, vault, fake_refresh):
        fake_refresh["rotate_to"] = None
        user_id = await _seed(vault)
        received = []

        async def hook(uid, provider, token_set):
            received.append(token_set)

        creds = await _factory(vault, on_rotation=hook).get_credentials(user_id)
        await asyncio.to_thread(creds.refresh, None)
        await asyncio.sleep(0.05)

        assert fake_refresh["calls"] == 1
        assert received == []

    @pytest.mark.asyncio
    async def test_rotation_without_hook_keeps_stored_token(self, vault, fake_refresh):
        user_id = await _seed(vault)

        creds = await _factory(vault).get_credentials(user_id)
        await asyncio.to_thread(creds.refresh, None)

        record = await vault.get_tokens_for(user_id, "google")
        assert vault.decrypt_refresh_token(record) == "refresh-1"
