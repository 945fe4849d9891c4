"""
Tests for the credential vault on a SQLite-backed store.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from utils.schemas import ProfileInfo, TokenSet


def _profile(email="ada@school.edu", name="Ada", picture="https://img/ada.png") -> ProfileInfo:
    return ProfileInfo(email=email, name=name, picture=picture)


class TestUsers:
    @pytest.mark.asyncio
    async def test_upsert_user_is_idempotent_on_email(self, vault):
        first = await vault.upsert_user(_profile())
        second = await vault.upsert_user(_profile(name="Ada Lovelace", picture="https://img/new.png"))

        assert first == second
        user = await vault.get_user_by_email("ada@school.edu")
        assert user.id == first
        assert user.display_name == "Ada Lovelace"
        assert user.picture_url == "https://img/new.png"

    @pytest.mark.asyncio
    async def test_update_keeps_created_at(self, vault):
        user_id = await vault.upsert_user(_profile())
        created = (await vault.get_user_by_id(user_id)).created_at
        await vault.upsert_user(_profile(name="Renamed"))
        user = await vault.get_user_by_id(user_id)
        assert user.created_at == created
        assert user.updated_at >= created

    @pytest.mark.asyncio
    async def test_distinct_emails_get_distinct_ids(self, vault):
        a = await vault.upsert_user(_profile(email="a@school.edu"))
        b = await vault.upsert_user(_profile(email="b@school.edu"))
        assert a != b

    @pytest.mark.asyncio
    async def test_unknown_user(self, vault):
        assert await vault.get_user_by_id("missing") is None
        assert await vault.get_user_by_email("nobody@school.edu") is None

    @pytest.mark.asyncio
    async def test_concurrent_first_login_creates_one_user(self, vault):
        ids = await asyncio.gather(
            vault.upsert_user(_profile(name="Tab one")),
            vault.upsert_user(_profile(name="Tab two")),
        )
        assert ids[0] == ids[1]
        user = await vault.get_user_by_email("ada@school.edu")
        assert user.id == ids[0]


class TestTokens:
    @pytest.mark.asyncio
    async def test_refresh_token_is_sealed(self, vault):
        user_id = await vault.upsert_user(_profile())
        await vault.upsert_tokens(
            user_id,
            "google",
            TokenSet(access_token="ya29.a", refresh_token="1//refresh", scope="email profile"),
        )

        record = await vault.get_tokens_for(user_id, "google")
        assert record.access_token == "ya29.a"
        assert record.scope == "email profile"
        assert record.has_refresh_token
        assert b"1//refresh" not in record.encrypted_refresh_token
        assert vault.decrypt_refresh_token(record) == "1//refresh"

    @pytest.mark.asyncio
    async def test_overwrite_keeps_id_and_created_at(self, vault):
        user_id = await vault.upsert_user(_profile())
        first_id = await vault.upsert_tokens(
            user_id, "google", TokenSet(access_token="old", refresh_token="rt-1")
        )
        before = await vault.get_tokens_for(user_id, "google")

        expiry = datetime.now(timezone.utc) + timedelta(hours=1)
        second_id = await vault.upsert_tokens(
            user_id, "google", TokenSet(access_token="new", refresh_token="rt-2", expiry=expiry)
        )
        after = await vault.get_tokens_for(user_id, "google")

        assert first_id == second_id
        assert after.created_at == before.created_at
        assert after.access_token == "new"
        assert after.expiry is not None
        assert vault.decrypt_refresh_token(after) == "rt-2"
        assert after.nonce != before.nonce

    @pytest.mark.asyncio
    async def test_missing_refresh_token_keeps_sealed_one(self, vault):
        user_id = await vault.upsert_user(_profile())
        await vault.upsert_tokens(user_id, "google", TokenSet(access_token="a1", refresh_token="rt-1"))
        await vault.upsert_tokens(user_id, "google", TokenSet(access_token="a2"))

        record = await vault.get_tokens_for(user_id, "google")
        assert record.access_token == "a2"
        assert vault.decrypt_refresh_token(record) == "rt-1"

    @pytest.mark.asyncio
    async def test_first_write_without_refresh_token_stores_none(self, vault):
        user_id = await vault.upsert_user(_profile())
        await vault.upsert_tokens(user_id, "google", TokenSet(access_token="a1"))

        record = await vault.get_tokens_for(user_id, "google")
        assert record.encrypted_refresh_token is None
        assert record.nonce is None
        assert record.auth_tag is None
        assert not record.has_refresh_token

    @pytest.mark.asyncio
    async def test_no_record(self, vault):
        user_id = await vault.upsert_user(_profile())
        assert await vault.get_tokens_for(user_id, "google") is None

    @pytest.mark.asyncio
    async def test_concurrent_token_writes_leave_one_record(self, vault):
        user_id = await vault.upsert_user(_profile())
        ids = await asyncio.gather(
            vault.upsert_tokens(user_id, "google", TokenSet(access_token="a", refresh_token="rt-a")),
            vault.upsert_tokens(user_id, "google", TokenSet(access_token="b", refresh_token="rt-b")),
        )
        assert ids[0] == ids[1]
        record = await vault.get_tokens_for(user_id, "google")
        assert vault.decrypt_refresh_token(record) in {"rt-a", "rt-b"}
