"""Pytest configuration and shared fixtures.

Flows and API tests run against an in-memory credential store; the SQLAlchemy
store has its own tests on aiosqlite.
"""

import os
from datetime import datetime

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from unittest.mock import AsyncMock

# Set env before app imports so config/engine use it
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-secret-key")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("GRPC_ENABLED", "false")

from gainz.api.deps import get_credential_store, get_email_provider
from gainz.core.datetime_utils import utc_now
from gainz.db.session import dispose_db, init_db
from gainz.models.token import Token
from gainz.models.user import User, new_user_id
from gainz.services.auth import AuthService
from gainz.services.tokens import TokenService

TEST_SECRET = "test-secret-key"
TEST_PASSWORD = "Password123!"


class InMemoryCredentialStore:
    """Dict-backed CredentialStore with the same semantics as the SQL one."""

    def __init__(self) -> None:
        self.users: dict[str, User] = {}
        self.tokens: dict[str, Token] = {}

    async def get_user_by_id(self, user_id: str) -> User | None:
        return self.users.get(user_id)

    async def get_user_by_email(self, email: str) -> User | None:
        return next((u for u in self.users.values() if u.email == email), None)

    async def get_user_by_reset_token(self, token_hash: str, now: datetime) -> User | None:
        for user in self.users.values():
            if (
                user.reset_password_token == token_hash
                and user.reset_password_expiry is not None
                and user.reset_password_expiry > now
            ):
                return user
        return None

    async def create_user(
        self,
        email: str,
        password_hash: str,
        email_verification_code: str | None = None,
        email_verification_expiry: datetime | None = None,
    ) -> User:
        now = utc_now()
        user = User(
            id=new_user_id(),
            email=email,
            password_hash=password_hash,
            token_version=0,
            is_email_verified=False,
            email_verification_code=email_verification_code,
            email_verification_expiry=email_verification_expiry,
            created_at=now,
            updated_at=now,
        )
        self.users[user.id] = user
        return user

    async def save_user(self, user: User) -> None:
        user.updated_at = utc_now()
        self.users[user.id] = user

    async def increment_token_version(self, user_id: str) -> int | None:
        user = self.users.get(user_id)
        if user is None:
            return None
        user.token_version += 1
        return user.token_version

    async def create_token(self, token_hash: str, type: str, user_id: str, expires_at: datetime) -> Token:
        if token_hash in self.tokens:
            raise ValueError("duplicate token_hash")
        row = Token(token_hash=token_hash, type=type, user_id=user_id, expires_at=expires_at, created_at=utc_now())
        self.tokens[token_hash] = row
        return row

    async def get_token(
        self, token_hash: str, type: str | None = None, live_at: datetime | None = None
    ) -> Token | None:
        row = self.tokens.get(token_hash)
        if row is None:
            return None
        if type is not None and row.type != type:
            return None
        if live_at is not None and not row.expires_at > live_at:
            return None
        return row

    async def delete_token(self, token_hash: str) -> int:
        return 1 if self.tokens.pop(token_hash, None) is not None else 0

    async def delete_user_tokens(self, user_id: str, type: str) -> int:
        doomed = [h for h, t in self.tokens.items() if t.user_id == user_id and t.type == type]
        for h in doomed:
            del self.tokens[h]
        return len(doomed)

    async def delete_expired_tokens(self, now: datetime) -> int:
        doomed = [h for h, t in self.tokens.items() if t.expires_at < now]
        for h in doomed:
            del self.tokens[h]
        return len(doomed)


@pytest.fixture
def store() -> InMemoryCredentialStore:
    return InMemoryCredentialStore()


@pytest.fixture
def tokens(store) -> TokenService:
    return TokenService(store, TEST_SECRET)


@pytest.fixture
def email_provider() -> AsyncMock:
    """EmailProvider double: every send succeeds and is recorded."""
    provider = AsyncMock()
    provider.send_verification_email.return_value = True
    provider.send_password_reset_email.return_value = True
    return provider


@pytest.fixture
def auth_service(store, tokens, email_provider) -> AuthService:
    return AuthService(store, tokens, email_provider, bcrypt_rounds=4)


@pytest_asyncio.fixture
async def registered(auth_service):
    """Register a@x.com and return the AuthResult."""
    return await auth_service.register("a@x.com", TEST_PASSWORD, TEST_PASSWORD)


@pytest_asyncio.fixture
async def client(store, email_provider):
    """AsyncClient on the authentication app, wired to the in-memory store."""
    from gainz.main import app

    app.dependency_overrides[get_credential_store] = lambda: store
    app.dependency_overrides[get_email_provider] = lambda: email_provider
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def relay_client(store):
    """AsyncClient on the authorization app, wired to the in-memory store."""
    from gainz.authorization_main import app

    app.dependency_overrides[get_credential_store] = lambda: store
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def database():
    """Fresh tables on the app's in-memory SQLite engine; disposed (and so emptied) afterwards."""
    await init_db()
    yield
    await dispose_db()


@pytest_asyncio.fixture
async def db_client(database, email_provider):
    """AsyncClient on the authentication app using the real per-request session (get_db)."""
    from gainz.main import app

    app.dependency_overrides[get_email_provider] = lambda: email_provider
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.clear()
