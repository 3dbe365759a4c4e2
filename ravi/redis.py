"""Redis connection utilities."""

from functools import lru_cache

from redis import ConnectionPool, Redis

from ravi.config import get_settings


@lru_cache
def get_redis_pool(url: str) -> ConnectionPool:
    """Get a cached Redis connection pool for a URL."""
    return ConnectionPool.from_url(
        url,
        decode_responses=True,
        max_connections=10,
    )


def get_redis_connection(url: str | None = None) -> Redis:
    """Get a Redis connection from the pool.

    Falls back to ``settings.redis_url`` when no URL is given.
    """
    url = url or get_settings().redis_url
    if not url:
        raise ValueError("No Redis URL configured (set REDIS_URL)")
    return Redis(connection_pool=get_redis_pool(url))


# Events are kept for 30 days
EVENTS_TTL_SECONDS = 60 * 60 * 24 * 30
