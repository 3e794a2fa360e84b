"""
Per-IP rate limits for credential endpoints (slowapi).
Login and password-reset routes get stricter limits than the default to slow down brute force.
"""

from __future__ import annotations

import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from gainz.config import settings

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "Too many requests, please try again later"

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.default_rate_limit],
    enabled=settings.rate_limit_enabled,
)


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Log every rejected request, then answer 429 in the usual {message} shape."""
    logger.warning(
        "Rate limit exceeded: ip=%s method=%s path=%s limit=%s",
        get_remote_address(request),
        request.method,
        request.url.path,
        exc.detail,
    )
    return JSONResponse(status_code=429, content={"status": "error", "message": RATE_LIMIT_MESSAGE})
