"""Redis connection configuration."""

from __future__ import annotations

from redis.asyncio import Redis

from mz_admin.core.settings import settings

_client: Redis | None = None


def get_redis() -> Redis:
    """Return the shared redis client for dependency injection.

    The client holds a connection pool and is created lazily on first use.
    """
    global _client
    if _client is None:
        _client = Redis.from_url(settings.redis_url, decode_responses=True)
    return _client


async def close_redis() -> None:
    """Close the shared client and release its pool."""
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
