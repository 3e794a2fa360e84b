"""Client used by downstream services (profiles, uploads) to call the authorization relay."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from gainz.core.errors import InternalServerError, NotFoundError, UnauthorizedError
from gainz.services.relay import IDENTITY_HEADER, Identity, decode_identity_header

logger = logging.getLogger(__name__)

VALIDATE_PATH = "/api/v1/validate"


class AuthorizationClient:
    def __init__(self, base_url: str, http_client: httpx.AsyncClient) -> None:
        self._base_url = base_url.rstrip("/")
        self._http = http_client

    async def validate(self, token: str) -> tuple[Identity, dict[str, Any]]:
        """Return (identity, user) for ``token``; raise the relay's error kind otherwise."""
        try:
            response = await self._http.post(f"{self._base_url}{VALIDATE_PATH}", json={"token": token})
        except httpx.HTTPError as e:
            logger.error("Authorization service unreachable: %s", e)
            raise InternalServerError("Authorization service unavailable") from e

        try:
            body = response.json()
        except ValueError:
            body = {}
        message = body.get("message") if isinstance(body, dict) else None
        if response.status_code == 401:
            raise UnauthorizedError(message or "Invalid or expired token")
        if response.status_code == 404:
            raise NotFoundError(message or "User not found")
        if response.status_code != 200 or not body.get("valid"):
            logger.error("Authorization service returned %s: %s", response.status_code, response.text[:200])
            raise InternalServerError("Authorization service error")

        user = body["user"]
        identity = decode_identity_header(response.headers.get(IDENTITY_HEADER))
        if identity is None:
            identity = Identity(id=str(user["id"]), email=str(user["email"]))
        return identity, user
