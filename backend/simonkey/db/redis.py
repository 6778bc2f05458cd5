"""
Redis Connection and Utilities

Provides Redis connection pooling and a small JSON cache used when rankings
are shared between several API workers.

Usage:
    from simonkey.db.redis import get_redis, RedisCache

    # Get Redis connection
    redis = await get_redis()
    await redis.set("key", "value")

    # JSON cache with a key prefix
    cache = RedisCache(prefix="ranking")
    await cache.set("materia-1:auto", [...], ttl=300)
"""

import json
from typing import Any, Optional

import redis.asyncio as redis

from simonkey.config import settings, yaml_config


# Get Redis configuration from yaml config
redis_config: dict[str, Any] = yaml_config.get("redis", {})
DEFAULT_CACHE_TTL: int = redis_config.get("cache_ttl", 300)
MAX_CONNECTIONS: int = redis_config.get("max_connections", 10)


# Connection pool (lazily initialized)
_redis_pool: Optional[redis.ConnectionPool] = None


async def get_redis_pool() -> redis.ConnectionPool:
    """Get or create the Redis connection pool."""
    global _redis_pool
    if _redis_pool is None:
        _redis_pool = redis.ConnectionPool.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            max_connections=MAX_CONNECTIONS,
        )
    return _redis_pool


async def get_redis() -> redis.Redis:
    """
    Get a Redis connection from the pool.

    Usage:
        redis = await get_redis()
        await redis.set("key", "value")
    """
    pool = await get_redis_pool()
    return redis.Redis(connection_pool=pool)


async def close_redis_pool() -> None:
    """Close the Redis connection pool."""
    global _redis_pool
    if _redis_pool is not None:
        await _redis_pool.disconnect()
        _redis_pool = None


class RedisCache:
    """
    Redis-based JSON cache.

    Values are serialized with json, so only plain dicts, lists and scalars
    can be stored.
    """

    def __init__(self, prefix: str = "cache") -> None:
        self.prefix = prefix

    def _full_key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    async def get(self, key: str) -> Optional[Any]:
        """Get a value from cache."""
        r = await get_redis()
        value = await r.get(self._full_key(key))
        if value:
            return json.loads(value)
        return None

    async def set(self, key: str, value: Any, ttl: int = DEFAULT_CACHE_TTL) -> None:
        """Set a value in cache."""
        r = await get_redis()
        await r.setex(self._full_key(key), ttl, json.dumps(value))

    async def delete(self, key: str) -> None:
        """Delete a value from cache."""
        r = await get_redis()
        await r.delete(self._full_key(key))

    async def clear_pattern(self, pattern: str) -> None:
        """Clear all keys matching a pattern."""
        r = await get_redis()
        keys = await r.keys(self._full_key(pattern))
        if keys:
            await r.delete(*keys)
