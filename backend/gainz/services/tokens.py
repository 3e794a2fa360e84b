"""Signed token issuance and verification, with per-user token versioning.

Access tokens are pure JWTs. Refresh and reset tokens are also persisted
(by SHA256 fingerprint) so they can be revoked one by one; refresh tokens
additionally embed the user's ``token_version`` so that a single counter bump
revokes all of them at once.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta
from typing import Any, Callable

from jose import ExpiredSignatureError, JWTError, jwt

from gainz.config import Settings
from gainz.core.datetime_utils import utc_now
from gainz.core.errors import ConfigurationError, InternalServerError, NotFoundError, UnauthorizedError
from gainz.core.metrics import TOKEN_VERIFICATION_FAILURES, TOKENS_ISSUED
from gainz.core.security import token_fingerprint
from gainz.models.token import TOKEN_TYPE_REFRESH, TOKEN_TYPE_RESET
from gainz.repositories.credentials import CredentialStore

logger = logging.getLogger(__name__)

DEFAULT_ACCESS_TOKEN_TTL = timedelta(minutes=15)
DEFAULT_REFRESH_TOKEN_TTL = timedelta(days=7)
DEFAULT_RESET_TOKEN_TTL = timedelta(hours=1)


class TokenService:
    def __init__(
        self,
        store: CredentialStore,
        secret: str = "",
        algorithm: str = "HS256",
        *,
        private_key: str = "",
        public_key: str = "",
        access_token_ttl: timedelta = DEFAULT_ACCESS_TOKEN_TTL,
        refresh_token_ttl: timedelta = DEFAULT_REFRESH_TOKEN_TTL,
        reset_token_ttl: timedelta = DEFAULT_RESET_TOKEN_TTL,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if private_key.strip() and public_key.strip():
            self._signing_key = private_key.strip()
            self._verification_key = public_key.strip()
            self._algorithm = "RS256"
        elif secret:
            self._signing_key = secret
            self._verification_key = secret
            self._algorithm = algorithm
        else:
            raise ConfigurationError("JWT secret is not configured")
        self._store = store
        self.access_token_ttl = access_token_ttl
        self.refresh_token_ttl = refresh_token_ttl
        self.reset_token_ttl = reset_token_ttl
        self._clock = clock

    @classmethod
    def from_settings(cls, store: CredentialStore, settings: Settings) -> "TokenService":
        return cls(
            store,
            settings.jwt_secret,
            settings.jwt_algorithm,
            private_key=settings.jwt_private_key,
            public_key=settings.jwt_public_key,
            access_token_ttl=timedelta(minutes=settings.access_token_expire_minutes),
            refresh_token_ttl=timedelta(days=settings.refresh_token_expire_days),
            reset_token_ttl=timedelta(minutes=settings.reset_token_expire_minutes),
        )

    def _sign(self, payload: dict[str, Any], lifetime: timedelta) -> tuple[str, datetime]:
        now = self._clock()
        expires_at = now + lifetime
        claims = {
            **payload,
            "iat": int(now.timestamp()),
            "exp": int(expires_at.timestamp()),
            "jti": secrets.token_hex(8),
        }
        try:
            result = jwt.encode(claims, self._signing_key, algorithm=self._algorithm)
        except JWTError as e:
            logger.error("Failed to sign token: %s", e)
            raise InternalServerError("Failed to generate token") from e
        return (result if isinstance(result, str) else result.decode("utf-8")), expires_at

    def issue_access_token(self, user_id: str) -> str:
        token, _ = self._sign({"userId": user_id}, self.access_token_ttl)
        TOKENS_ISSUED.labels(type="access").inc()
        return token

    async def issue_refresh_token(self, user_id: str, lifetime: timedelta | None = None) -> str:
        user = await self._store.get_user_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        token, expires_at = self._sign(
            {"userId": user_id, "version": user.token_version, "type": TOKEN_TYPE_REFRESH},
            lifetime or self.refresh_token_ttl,
        )
        await self._store.create_token(token_fingerprint(token), TOKEN_TYPE_REFRESH, user_id, expires_at)
        TOKENS_ISSUED.labels(type=TOKEN_TYPE_REFRESH).inc()
        return token

    async def issue_reset_token(self, user_id: str, lifetime: timedelta | None = None) -> tuple[str, datetime]:
        """Return (token, expires_at); the caller mirrors the expiry onto the user row."""
        token, expires_at = self._sign(
            {"userId": user_id, "type": TOKEN_TYPE_RESET},
            lifetime or self.reset_token_ttl,
        )
        await self._store.create_token(token_fingerprint(token), TOKEN_TYPE_RESET, user_id, expires_at)
        TOKENS_ISSUED.labels(type=TOKEN_TYPE_RESET).inc()
        return token, expires_at

    def verify_signature(self, token: str) -> dict[str, Any]:
        """Check signature and expiry only. No store access."""
        if not token:
            raise self._reject("Token is required", "missing")
        try:
            payload = jwt.decode(token, self._verification_key, algorithms=[self._algorithm])
        except ExpiredSignatureError:
            raise self._reject("Invalid or expired token", "expired")
        except JWTError:
            raise self._reject("Invalid or expired token", "invalid")
        if not isinstance(payload.get("userId"), str) or not payload["userId"]:
            raise self._reject("Invalid or expired token", "invalid")
        return payload

    async def verify_refresh_token(self, token: str) -> dict[str, Any]:
        payload = self.verify_signature(token)
        if payload.get("type") != TOKEN_TYPE_REFRESH:
            raise self._reject("Invalid refresh token", "invalid")
        fingerprint = token_fingerprint(token)

        # Version is checked before the row: revoke_all deletes rows too, and a
        # revoked token must still be reported as revoked rather than unknown.
        user = await self._store.get_user_by_id(payload["userId"])
        if user is None or user.token_version != payload.get("version"):
            await self._store.delete_token(fingerprint)
            # the row deletion outlives the rejected request
            raise self._reject("Token has been revoked", "revoked", commit=True)

        row = await self._store.get_token(fingerprint, type=TOKEN_TYPE_REFRESH, live_at=self._clock())
        if row is None:
            raise self._reject("Invalid refresh token", "unknown")
        return payload

    async def verify_reset_token(self, token: str) -> dict[str, Any]:
        payload = self.verify_signature(token)
        if payload.get("type") != TOKEN_TYPE_RESET:
            raise self._reject("Invalid or expired reset token", "invalid")
        row = await self._store.get_token(token_fingerprint(token), type=TOKEN_TYPE_RESET, live_at=self._clock())
        if row is None:
            raise self._reject("Invalid or expired reset token", "unknown")
        return payload

    async def revoke_token(self, token: str) -> None:
        await self._store.delete_token(token_fingerprint(token))

    async def revoke_all_user_tokens(self, user_id: str) -> None:
        # Bump first: if the delete below fails, the stale rows are still rejected on version.
        version = await self._store.increment_token_version(user_id)
        if version is None:
            raise NotFoundError("User not found")
        deleted = await self._store.delete_user_tokens(user_id, TOKEN_TYPE_REFRESH)
        logger.info("Revoked all refresh tokens for user %s (version=%s, rows=%s)", user_id, version, deleted)

    async def cleanup_expired_tokens(self) -> int:
        try:
            deleted = await self._store.delete_expired_tokens(self._clock())
        except Exception as e:
            logger.error("Failed to clean up expired tokens: %s", e)
            return 0
        if deleted:
            logger.info("Cleaned up %s expired tokens", deleted)
        return deleted

    @staticmethod
    def _reject(message: str, reason: str, commit: bool = False) -> UnauthorizedError:
        TOKEN_VERIFICATION_FAILURES.labels(reason=reason).inc()
        return UnauthorizedError(message, reason=reason, commit=commit)
