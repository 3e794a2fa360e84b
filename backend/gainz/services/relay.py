"""Authorization relay: bearer token -> verified identity for downstream services.

Downstream services call the relay (REST or RPC) once per request and then
trust the identity it republishes in the ``X-User-Info`` header instead of
verifying tokens themselves.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from dataclasses import dataclass
from typing import Any

from gainz.core.datetime_utils import ensure_utc
from gainz.core.errors import NotFoundError, UnauthorizedError
from gainz.models.token import TOKEN_TYPE_REFRESH, TOKEN_TYPE_RESET
from gainz.models.user import User
from gainz.repositories.credentials import CredentialStore
from gainz.services.tokens import TokenService

logger = logging.getLogger(__name__)

IDENTITY_HEADER = "X-User-Info"


@dataclass(frozen=True)
class Identity:
    id: str
    email: str


def public_user(user: User) -> dict[str, Any]:
    """User record safe to hand to other services: no hash, OTP or reset secrets."""
    created_at = ensure_utc(user.created_at)
    updated_at = ensure_utc(user.updated_at)
    last_login = ensure_utc(user.last_login)
    return {
        "id": user.id,
        "email": user.email,
        "isEmailVerified": bool(user.is_email_verified),
        "lastLogin": last_login.isoformat() if last_login else None,
        "createdAt": created_at.isoformat() if created_at else None,
        "updatedAt": updated_at.isoformat() if updated_at else None,
    }


def encode_identity_header(user: dict[str, Any]) -> str:
    identity = {"id": user["id"], "userId": user["id"], "email": user["email"]}
    return base64.b64encode(json.dumps(identity).encode("utf-8")).decode("ascii")


def decode_identity_header(value: str | None) -> Identity | None:
    """Decode ``X-User-Info``; None when absent or unreadable."""
    if not value:
        return None
    try:
        data = json.loads(base64.b64decode(value, validate=True).decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning("Error parsing %s header: %s", IDENTITY_HEADER, e)
        return None
    if not isinstance(data, dict):
        return None
    user_id = data.get("id") or data.get("userId")
    email = data.get("email")
    if not user_id or not email:
        return None
    return Identity(id=str(user_id), email=str(email))


class AuthorizationRelay:
    def __init__(self, tokens: TokenService, store: CredentialStore) -> None:
        self._tokens = tokens
        self._store = store

    async def validate(self, token: str | None) -> dict[str, Any]:
        """Return the public user for a live access token.

        UnauthorizedError for missing, malformed, expired or non-access tokens;
        NotFoundError when the token is valid but its user is gone.
        """
        if not token:
            raise UnauthorizedError("Token is required", reason="missing")
        payload = self._tokens.verify_signature(token)
        if payload.get("type") in (TOKEN_TYPE_REFRESH, TOKEN_TYPE_RESET):
            raise UnauthorizedError("Invalid or expired token", reason="invalid")
        user = await self._store.get_user_by_id(payload["userId"])
        if user is None:
            raise NotFoundError("User not found")
        return public_user(user)
