"""FastAPI dependencies: credential store, token/auth/relay services, caller identity."""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from gainz.config import settings
from gainz.core.errors import UnauthorizedError
from gainz.db.session import get_db
from gainz.repositories.credentials import CredentialStore, SqlAlchemyCredentialStore
from gainz.services.auth import AuthService
from gainz.services.authorization_client import AuthorizationClient
from gainz.services.email import EmailProvider, HttpEmailProvider, LoggingEmailProvider
from gainz.services.http_client import get_http_client
from gainz.services.relay import IDENTITY_HEADER, AuthorizationRelay, Identity, decode_identity_header
from gainz.services.tokens import TokenService


async def get_credential_store(
    session: Annotated[AsyncSession, Depends(get_db)],
) -> CredentialStore:
    return SqlAlchemyCredentialStore(session)


def get_token_service(
    store: Annotated[CredentialStore, Depends(get_credential_store)],
) -> TokenService:
    return TokenService.from_settings(store, settings)


def get_email_provider() -> EmailProvider:
    if not settings.email_api_token:
        return LoggingEmailProvider(settings)
    return HttpEmailProvider(settings, get_http_client())


def get_auth_service(
    store: Annotated[CredentialStore, Depends(get_credential_store)],
    tokens: Annotated[TokenService, Depends(get_token_service)],
    email: Annotated[EmailProvider, Depends(get_email_provider)],
) -> AuthService:
    return AuthService(store, tokens, email, bcrypt_rounds=settings.bcrypt_rounds)


def get_relay(
    store: Annotated[CredentialStore, Depends(get_credential_store)],
    tokens: Annotated[TokenService, Depends(get_token_service)],
) -> AuthorizationRelay:
    return AuthorizationRelay(tokens, store)


def _bearer_token(request: Request) -> str:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise UnauthorizedError("Not authenticated", reason="missing")
    token = auth_header[7:].strip()
    if not token:
        raise UnauthorizedError("Not authenticated", reason="missing")
    return token


async def get_current_user_id(
    request: Request,
    tokens: Annotated[TokenService, Depends(get_token_service)],
) -> str:
    """User id from a bearer access token, verified locally (this service holds the key)."""
    payload = tokens.verify_signature(_bearer_token(request))
    if payload.get("type") is not None:
        raise UnauthorizedError("Invalid or expired token")
    return payload["userId"]


def get_forwarded_identity(request: Request) -> Identity | None:
    """Identity republished by the gateway/relay in X-User-Info, if any."""
    return decode_identity_header(request.headers.get(IDENTITY_HEADER))


def require_forwarded_identity(
    identity: Annotated[Identity | None, Depends(get_forwarded_identity)],
) -> Identity:
    if identity is None:
        raise UnauthorizedError("Not authenticated", reason="missing")
    return identity


def get_authorization_client() -> AuthorizationClient:
    return AuthorizationClient(settings.authorization_service_url, get_http_client())


async def authenticate_via_relay(
    request: Request,
    client: Annotated[AuthorizationClient, Depends(get_authorization_client)],
) -> Identity:
    """For downstream services reached directly: one relay call per request, no local token checks."""
    identity, _ = await client.validate(_bearer_token(request))
    return identity
