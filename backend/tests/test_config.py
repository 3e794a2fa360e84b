"""Tests for settings checks, the database session scope and the scheduled token cleanup job."""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from gainz.config import Settings
from gainz.core.errors import EmailDeliveryError, UnauthorizedError
from gainz.db.session import session_scope
from gainz.repositories.credentials import SqlAlchemyCredentialStore
from gainz.services.maintenance import scheduled_token_cleanup


def test_defaults():
    s = Settings(jwt_secret="s")
    assert s.access_token_expire_minutes == 15
    assert s.refresh_token_expire_days == 7
    assert s.reset_token_expire_minutes == 60
    assert s.email_verification_expire_minutes == 10
    assert s.use_rs256 is False


def test_missing_jwt_secret_fails_startup_check():
    with pytest.raises(RuntimeError):
        Settings(jwt_secret="", jwt_private_key="", jwt_public_key="").validate_jwt_config()


def test_rsa_pair_is_enough():
    s = Settings(jwt_secret="", jwt_private_key="priv", jwt_public_key="pub")
    assert s.use_rs256 is True
    s.validate_jwt_config()


def test_half_rsa_pair_fails_in_production():
    s = Settings(app_env="production", jwt_secret="s", jwt_private_key="priv", jwt_public_key="")
    with pytest.raises(RuntimeError):
        s.validate_jwt_config()


@pytest.mark.asyncio
async def test_scheduled_cleanup_runs_against_database(database):
    async with session_scope() as session:
        store = SqlAlchemyCredentialStore(session)
        user = await store.create_user("cleanup@x.com", "hash")
        await store.create_token("stale-hash", "refresh", user.id, datetime.now(timezone.utc) - timedelta(days=1))
        await store.create_token("live-hash", "refresh", user.id, datetime.now(timezone.utc) + timedelta(days=1))

    assert await scheduled_token_cleanup() == 1

    async with session_scope() as session:
        store = SqlAlchemyCredentialStore(session)
        assert await store.get_token("stale-hash") is None
        assert await store.get_token("live-hash") is not None


@pytest.mark.asyncio
async def test_scheduled_cleanup_never_raises():
    with patch("gainz.services.maintenance.session_scope", side_effect=RuntimeError("db down")):
        assert await scheduled_token_cleanup() == 0


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error,kept",
    [
        (UnauthorizedError("Token has been revoked", reason="revoked", commit=True), True),
        (UnauthorizedError("Invalid refresh token", reason="unknown"), False),
        (EmailDeliveryError(), False),
        (RuntimeError("boom"), False),
    ],
)
async def test_session_scope_keeps_writes_only_for_committing_errors(database, error, kept):
    with pytest.raises(type(error)):
        async with session_scope() as session:
            await SqlAlchemyCredentialStore(session).create_user("scope@x.com", "hash")
            raise error

    async with session_scope() as session:
        user = await SqlAlchemyCredentialStore(session).get_user_by_email("scope@x.com")
    assert (user is not None) is kept
