"""SqlAlchemyCredentialStore against an in-memory aiosqlite database."""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import gainz.models  # noqa: F401
from gainz.core.errors import UnauthorizedError
from gainz.db.base import Base
from gainz.repositories.credentials import SqlAlchemyCredentialStore
from gainz.services.tokens import TokenService

from conftest import TEST_SECRET


@pytest_asyncio.fixture
async def session():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with maker() as s:
        yield s
    await engine.dispose()


@pytest.fixture
def sql_store(session):
    return SqlAlchemyCredentialStore(session)


def _in(minutes: int) -> datetime:
    return datetime.now(timezone.utc) + timedelta(minutes=minutes)


@pytest.mark.asyncio
async def test_create_and_get_user(sql_store):
    user = await sql_store.create_user("a@x.com", "hash", "123456", _in(10))
    assert len(user.id) == 36
    assert user.token_version == 0
    assert user.is_email_verified is False
    assert (await sql_store.get_user_by_id(user.id)).email == "a@x.com"
    assert (await sql_store.get_user_by_email("a@x.com")).id == user.id
    assert await sql_store.get_user_by_email("b@x.com") is None


@pytest.mark.asyncio
async def test_increment_token_version(sql_store):
    user = await sql_store.create_user("a@x.com", "hash")
    assert await sql_store.increment_token_version(user.id) == 1
    assert await sql_store.increment_token_version(user.id) == 2
    assert user.token_version == 2
    assert await sql_store.increment_token_version("missing") is None


@pytest.mark.asyncio
async def test_token_rows(sql_store):
    user = await sql_store.create_user("a@x.com", "hash")
    await sql_store.create_token("h-live", "refresh", user.id, _in(60))
    await sql_store.create_token("h-stale", "refresh", user.id, _in(-60))
    await sql_store.create_token("h-reset", "reset", user.id, _in(60))
    now = datetime.now(timezone.utc)

    assert (await sql_store.get_token("h-live", type="refresh", live_at=now)).user_id == user.id
    assert await sql_store.get_token("h-live", type="reset") is None
    assert await sql_store.get_token("h-stale", live_at=now) is None
    assert await sql_store.get_token("h-stale") is not None

    assert await sql_store.delete_expired_tokens(now) == 1
    assert await sql_store.delete_user_tokens(user.id, "refresh") == 1
    assert await sql_store.get_token("h-reset") is not None
    assert await sql_store.delete_token("h-reset") == 1
    assert await sql_store.delete_token("h-reset") == 0


@pytest.mark.asyncio
async def test_get_user_by_reset_token(sql_store):
    user = await sql_store.create_user("a@x.com", "hash")
    user.reset_password_token = "f" * 64
    user.reset_password_expiry = _in(30)
    await sql_store.save_user(user)

    assert (await sql_store.get_user_by_reset_token("f" * 64, datetime.now(timezone.utc))).id == user.id
    assert await sql_store.get_user_by_reset_token("f" * 64, _in(31)) is None
    assert await sql_store.get_user_by_reset_token("e" * 64, datetime.now(timezone.utc)) is None


@pytest.mark.asyncio
async def test_token_service_on_sql_store(sql_store):
    """Revoke-all through the SQL store: old refresh tokens read as revoked, new ones work."""
    tokens = TokenService(sql_store, TEST_SECRET)
    user = await sql_store.create_user("a@x.com", "hash")
    old = await tokens.issue_refresh_token(user.id)
    assert (await tokens.verify_refresh_token(old))["userId"] == user.id

    await tokens.revoke_all_user_tokens(user.id)

    with pytest.raises(UnauthorizedError) as exc_info:
        await tokens.verify_refresh_token(old)
    assert exc_info.value.reason == "revoked"
    fresh = await tokens.issue_refresh_token(user.id)
    assert (await tokens.verify_refresh_token(fresh))["version"] == 1
