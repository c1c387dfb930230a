"""Process-wide connection pools: Redis and the outbound HTTP client.

Both are module-level singletons created in the app lifespan and handed to
routes through FastAPI dependencies.
"""

from __future__ import annotations

import httpx
import redis.asyncio as redis

_redis: redis.Redis | None = None
_http: httpx.AsyncClient | None = None


# ---------------------------------------------------------------------------
# Redis
# ---------------------------------------------------------------------------


async def init_redis(url: str) -> None:
    """Initialize the Redis connection pool."""
    global _redis  # noqa: PLW0603
    _redis = redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=50,
    )


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _redis  # noqa: PLW0603
    if _redis:
        await _redis.aclose()
        _redis = None


def get_redis() -> redis.Redis:
    """Get the Redis client. Raises RuntimeError before init_redis()."""
    if _redis is None:
        msg = "Redis not initialized. Call init_redis() first."
        raise RuntimeError(msg)
    return _redis


# ---------------------------------------------------------------------------
# Outbound HTTP (GitHub, ElevenLabs, wallet providers, bot endpoints)
# ---------------------------------------------------------------------------


async def init_http_client(timeout: float, transport: httpx.AsyncBaseTransport | None = None) -> None:
    """Create the shared AsyncClient. `transport` is injectable for tests."""
    global _http  # noqa: PLW0603
    _http = httpx.AsyncClient(
        timeout=httpx.Timeout(timeout),
        follow_redirects=True,
        transport=transport,
    )


async def close_http_client() -> None:
    """Close the shared AsyncClient."""
    global _http  # noqa: PLW0603
    if _http:
        await _http.aclose()
        _http = None


def get_http_client() -> httpx.AsyncClient:
    """Get the shared AsyncClient (FastAPI dependency)."""
    if _http is None:
        msg = "HTTP client not initialized. Call init_http_client() first."
        raise RuntimeError(msg)
    return _http
