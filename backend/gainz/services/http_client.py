"""Process-wide httpx.AsyncClient for outbound calls (mail API, authorization relay).

Opened in the app lifespan and reused by every request.
"""
from __future__ import annotations

import httpx

USER_AGENT = "gainz-credentials/0.1"

_client: httpx.AsyncClient | None = None


def open_http_client(timeout: float = 10.0, connect_timeout: float = 5.0) -> httpx.AsyncClient:
    global _client
    if _client is None:
        _client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=connect_timeout),
            headers={"User-Agent": USER_AGENT},
        )
    return _client


def get_http_client() -> httpx.AsyncClient:
    if _client is None:
        raise RuntimeError("HTTP client not opened; the app lifespan must call open_http_client() first.")
    return _client


async def close_http_client() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
