from gainz.rpc.server import (
    AUTHENTICATION_METHOD,
    AUTHENTICATION_SERVICE,
    AUTHORIZATION_METHOD,
    AUTHORIZATION_SERVICE,
    TokenValidationServicer,
    build_server,
    start_server,
)

__all__ = [
    "AUTHENTICATION_METHOD",
    "AUTHENTICATION_SERVICE",
    "AUTHORIZATION_METHOD",
    "AUTHORIZATION_SERVICE",
    "TokenValidationServicer",
    "build_server",
    "start_server",
]
