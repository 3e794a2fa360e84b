"""gRPC token validation (grpc.aio) with JSON-encoded messages.

Both services expose the same call under their own names:
``authentication.AuthenticationService/ValidateToken`` and
``authorization.AuthorizationService/GetUserByToken``.
Request ``{"token": str}``; response ``{"success", "user", "error", "code"}`` where
``code`` is a ``grpc.StatusCode`` name. Failures are reported in the response body
with an OK transport status so callers always get the structured message.
"""

from __future__ import annotations

import json
import logging
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Any, AsyncIterator, Callable

import grpc

from gainz.config import settings
from gainz.core.errors import NotFoundError, UnauthorizedError
from gainz.db.session import session_scope
from gainz.repositories.credentials import SqlAlchemyCredentialStore
from gainz.services.relay import AuthorizationRelay
from gainz.services.tokens import TokenService

logger = logging.getLogger(__name__)

AUTHENTICATION_SERVICE = "authentication.AuthenticationService"
AUTHENTICATION_METHOD = "ValidateToken"
AUTHORIZATION_SERVICE = "authorization.AuthorizationService"
AUTHORIZATION_METHOD = "GetUserByToken"

RPC_USER_FIELDS = ("id", "email", "isEmailVerified", "createdAt", "updatedAt")

RelayScope = Callable[[], AbstractAsyncContextManager[AuthorizationRelay]]


@asynccontextmanager
async def database_relay_scope() -> AsyncIterator[AuthorizationRelay]:
    """One session per call, like a request."""
    async with session_scope() as session:
        store = SqlAlchemyCredentialStore(session)
        yield AuthorizationRelay(TokenService.from_settings(store, settings), store)


def _decode(data: bytes) -> dict[str, Any]:
    try:
        message = json.loads(data or b"{}")
    except (json.JSONDecodeError, UnicodeDecodeError):
        return {}
    return message if isinstance(message, dict) else {}


def _encode(message: dict[str, Any]) -> bytes:
    return json.dumps(message).encode("utf-8")


def _failure(code: grpc.StatusCode, error: str) -> dict[str, Any]:
    return {"success": False, "user": None, "error": error, "code": code.name}


class TokenValidationServicer:
    def __init__(self, relay_scope: RelayScope = database_relay_scope) -> None:
        self._relay_scope = relay_scope

    async def validate(self, request: dict[str, Any], context: Any) -> dict[str, Any]:
        token = request.get("token")
        if not token or not isinstance(token, str):
            return _failure(grpc.StatusCode.INVALID_ARGUMENT, "Token is required")
        try:
            async with self._relay_scope() as relay:
                user = await relay.validate(token)
        except UnauthorizedError as e:
            return _failure(grpc.StatusCode.UNAUTHENTICATED, e.message)
        except NotFoundError as e:
            return _failure(grpc.StatusCode.NOT_FOUND, e.message)
        except Exception:
            logger.exception("gRPC token validation error")
            return _failure(grpc.StatusCode.INTERNAL, "Internal server error")
        return {
            "success": True,
            "user": {field: user.get(field) for field in RPC_USER_FIELDS},
            "error": "",
            "code": grpc.StatusCode.OK.name,
        }


def build_server(
    service_name: str,
    method_name: str,
    port: int,
    servicer: TokenValidationServicer | None = None,
) -> grpc.aio.Server:
    servicer = servicer or TokenValidationServicer()
    handler = grpc.method_handlers_generic_handler(
        service_name,
        {
            method_name: grpc.unary_unary_rpc_method_handler(
                servicer.validate,
                request_deserializer=_decode,
                response_serializer=_encode,
            )
        },
    )
    server = grpc.aio.server()
    server.add_generic_rpc_handlers((handler,))
    server.add_insecure_port(f"[::]:{port}")
    return server


async def start_server(service_name: str, method_name: str, port: int) -> grpc.aio.Server:
    server = build_server(service_name, method_name, port)
    await server.start()
    logger.info("%s gRPC server listening on port %s", service_name, port)
    return server
