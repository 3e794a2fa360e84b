"""Unit tests for rate_limit module (per-IP limits on credential endpoints)."""

import logging
from unittest.mock import MagicMock

import pytest
from fastapi import FastAPI, Request
from httpx import ASGITransport, AsyncClient
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from gainz.config import settings
from gainz.core.rate_limit import RATE_LIMIT_MESSAGE, limiter, rate_limit_exceeded_handler


def _request(path: str = "/api/v1/auth/login") -> Request:
    return Request(
        {
            "type": "http",
            "method": "POST",
            "path": path,
            "headers": [],
            "query_string": b"",
            "client": ("10.0.0.7", 1234),
            "server": ("test", 80),
            "scheme": "http",
        }
    )


def test_limits_from_settings():
    assert settings.default_rate_limit == "100/15minutes"
    assert settings.login_rate_limit == "5/15minutes"
    assert settings.password_reset_rate_limit == "3/hour"


def test_limiter_disabled_in_tests():
    assert limiter.enabled is False


def test_exceeded_handler_logs_and_returns_429(caplog):
    limit = MagicMock(error_message=None, limit="5 per 15 minute")
    with caplog.at_level(logging.WARNING, logger="gainz.core.rate_limit"):
        response = rate_limit_exceeded_handler(_request(), RateLimitExceeded(limit))
    assert response.status_code == 429
    assert response.body == b'{"status":"error","message":"' + RATE_LIMIT_MESSAGE.encode() + b'"}'
    assert "10.0.0.7" in caplog.text
    assert "/api/v1/auth/login" in caplog.text


@pytest.mark.asyncio
async def test_limit_is_enforced_per_ip():
    """A limited route answers 429 once the window is used up."""
    strict = Limiter(key_func=get_remote_address, enabled=True)
    app = FastAPI()
    app.state.limiter = strict
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    @app.post("/login")
    @strict.limit("2/minute")
    async def login(request: Request):
        return {"message": "ok"}

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        assert (await ac.post("/login")).status_code == 200
        assert (await ac.post("/login")).status_code == 200
        r = await ac.post("/login")
    assert r.status_code == 429
    assert r.json() == {"status": "error", "message": RATE_LIMIT_MESSAGE}
