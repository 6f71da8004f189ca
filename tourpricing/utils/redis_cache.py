"""Redis cache utilities for tourpricing."""

from __future__ import annotations

import logging
from typing import Protocol

import redis.asyncio as redis

from tourpricing.config import get_config

logger = logging.getLogger(__name__)


class KeyValueCache(Protocol):
    """The cache operations the query path and pipeline rely on."""

    async def get(self, key: str) -> str | None:
        ...

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        ...

    async def incr(self, key: str) -> int:
        ...


class RedisCache:
    """String cache over an async Redis client.

    Values are text (JSON). Keys are namespaced with the configured prefix.
    """

    def __init__(self, client: redis.Redis, key_prefix: str = ""):
        self.client = client
        self.key_prefix = key_prefix

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    async def get(self, key: str) -> str | None:
        """Get value from Redis cache.

        Returns:
            Cached text or None if not found/expired
        """
        value = await self.client.get(self._key(key))
        if value is None:
            return None
        return value.decode("utf-8") if isinstance(value, bytes) else value

    async def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        """Set value in Redis cache, with expiry when ttl_seconds is given."""
        if ttl_seconds is None:
            await self.client.set(self._key(key), value)
        else:
            await self.client.setex(self._key(key), ttl_seconds, value)

    async def incr(self, key: str) -> int:
        """Atomically increment an integer key (created at 0 when missing)."""
        return int(await self.client.incr(self._key(key)))

    async def ping(self) -> bool:
        return bool(await self.client.ping())


# Global Redis cache (lazy initialized)
_cache: RedisCache | None = None


def get_cache() -> RedisCache:
    """Get the shared Redis cache (singleton).

    Returns:
        RedisCache bound to REDIS_URL
    """
    global _cache

    if _cache is None:
        cache_config = get_config().cache
        client = redis.from_url(
            cache_config.redis_url,
            encoding="utf-8",
            decode_responses=True,
        )
        _cache = RedisCache(client, key_prefix=cache_config.key_prefix)

    return _cache


async def close_cache() -> None:
    """Close the shared Redis connection pool on shutdown."""
    global _cache

    if _cache is not None:
        await _cache.client.aclose()
        _cache = None
