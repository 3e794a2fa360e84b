"""Credential store: users and persisted tokens.

Flows depend on the ``CredentialStore`` protocol so tests can substitute an
in-memory implementation. ``SqlAlchemyCredentialStore`` is the Postgres one;
it only flushes, the request session commits.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from gainz.models.token import Token
from gainz.models.user import User, new_user_id


class CredentialStore(Protocol):
    async def get_user_by_id(self, user_id: str) -> User | None: ...

    async def get_user_by_email(self, email: str) -> User | None: ...

    async def get_user_by_reset_token(self, token_hash: str, now: datetime) -> User | None: ...

    async def create_user(
        self,
        email: str,
        password_hash: str,
        email_verification_code: str | None = None,
        email_verification_expiry: datetime | None = None,
    ) -> User: ...

    async def save_user(self, user: User) -> None: ...

    async def increment_token_version(self, user_id: str) -> int | None: ...

    async def create_token(self, token_hash: str, type: str, user_id: str, expires_at: datetime) -> Token: ...

    async def get_token(
        self, token_hash: str, type: str | None = None, live_at: datetime | None = None
    ) -> Token | None: ...

    async def delete_token(self, token_hash: str) -> int: ...

    async def delete_user_tokens(self, user_id: str, type: str) -> int: ...

    async def delete_expired_tokens(self, now: datetime) -> int: ...


class SqlAlchemyCredentialStore:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_user_by_id(self, user_id: str) -> User | None:
        r = await self._session.execute(select(User).where(User.id == user_id))
        return r.scalar_one_or_none()

    async def get_user_by_email(self, email: str) -> User | None:
        r = await self._session.execute(select(User).where(User.email == email))
        return r.scalar_one_or_none()

    async def get_user_by_reset_token(self, token_hash: str, now: datetime) -> User | None:
        r = await self._session.execute(
            select(User).where(
                User.reset_password_token == token_hash,
                User.reset_password_expiry > now,
            )
        )
        return r.scalar_one_or_none()

    async def create_user(
        self,
        email: str,
        password_hash: str,
        email_verification_code: str | None = None,
        email_verification_expiry: datetime | None = None,
    ) -> User:
        user = User(
            id=new_user_id(),
            email=email,
            password_hash=password_hash,
            token_version=0,
            is_email_verified=False,
            email_verification_code=email_verification_code,
            email_verification_expiry=email_verification_expiry,
        )
        self._session.add(user)
        await self._session.flush()
        await self._session.refresh(user)
        return user

    async def save_user(self, user: User) -> None:
        self._session.add(user)
        await self._session.flush()

    async def increment_token_version(self, user_id: str) -> int | None:
        """Bump token_version in a single UPDATE; return the new version, None if no such user."""
        r = await self._session.execute(
            update(User)
            .where(User.id == user_id)
            .values(token_version=User.token_version + 1)
            .returning(User.token_version)
        )
        row = r.first()
        if row is None:
            return None
        # keep any identity-mapped instance consistent with the row
        user = await self._session.get(User, user_id)
        if user is not None:
            await self._session.refresh(user, attribute_names=["token_version"])
        return row[0]

    async def create_token(self, token_hash: str, type: str, user_id: str, expires_at: datetime) -> Token:
        row = Token(token_hash=token_hash, type=type, user_id=user_id, expires_at=expires_at)
        self._session.add(row)
        await self._session.flush()
        return row

    async def get_token(
        self, token_hash: str, type: str | None = None, live_at: datetime | None = None
    ) -> Token | None:
        """Return the token row; ``live_at`` restricts to rows expiring after that instant."""
        q = select(Token).where(Token.token_hash == token_hash)
        if type is not None:
            q = q.where(Token.type == type)
        if live_at is not None:
            q = q.where(Token.expires_at > live_at)
        r = await self._session.execute(q)
        return r.scalar_one_or_none()

    async def delete_token(self, token_hash: str) -> int:
        r = await self._session.execute(delete(Token).where(Token.token_hash == token_hash))
        return r.rowcount or 0

    async def delete_user_tokens(self, user_id: str, type: str) -> int:
        r = await self._session.execute(
            delete(Token).where(Token.user_id == user_id, Token.type == type)
        )
        return r.rowcount or 0

    async def delete_expired_tokens(self, now: datetime) -> int:
        r = await self._session.execute(delete(Token).where(Token.expires_at < now))
        return r.rowcount or 0
