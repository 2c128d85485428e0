from __future__ import annotations

import json
import time
from typing import Any, Callable, Protocol

import redis.asyncio as aioredis
import structlog

from brokerwatch.config import Settings
from brokerwatch.core.errors import ConfigurationError

logger = structlog.get_logger()


class MetricsCache(Protocol):
    async def get(self, key: str) -> Any | None: ...

    async def set(self, key: str, value: Any, ttl: int) -> None: ...

    async def delete(self, key: str) -> None: ...


class MemoryCache:
    """In-process TTL cache."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[Any, float]] = {}

    async def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            self._entries.pop(key, None)
            return None
        return value

    async def set(self, key: str, value: Any, ttl: int) -> None:
        self._entries[key] = (value, self._clock() + ttl)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)


class RedisCache:
    """Redis-backed cache, shared between API replicas."""

    def __init__(
        self,
        redis_url: str,
        max_connections: int = 50,
        redis_client: aioredis.Redis | None = None,
    ) -> None:
        self._redis_url = redis_url
        self._pool: aioredis.ConnectionPool | None = None
        self._client: aioredis.Redis | None = redis_client

        if redis_client is None:
            self._pool = aioredis.ConnectionPool.from_url(
                redis_url,
                max_connections=max_connections,
                decode_responses=True,
            )

    async def _get_client(self) -> aioredis.Redis:
        if self._client is None:
            self._client = aioredis.Redis(connection_pool=self._pool)
        return self._client

    async def get(self, key: str) -> Any | None:
        """Get value from cache."""
        client = await self._get_client()
        value = await client.get(key)
        if value:
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                logger.warning("cache_value_not_json", key=key)
                return None
        return None

    async def set(self, key: str, value: Any, ttl: int) -> None:
        """Set value in cache with TTL in seconds."""
        client = await self._get_client()
        await client.setex(key, ttl, json.dumps(value))

    async def delete(self, key: str) -> None:
        client = await self._get_client()
        await client.delete(key)

    async def close(self) -> None:
        """Close Redis connection."""
        if self._client:
            await self._client.aclose()
        if self._pool is not None:
            await self._pool.disconnect()


def build_cache(settings: Settings) -> MetricsCache:
    if settings.cache_backend == "memory":
        return MemoryCache()
    if settings.cache_backend == "redis":
        return RedisCache(settings.redis_url, max_connections=settings.redis_max_connections)
    raise ConfigurationError(
        f"Unsupported cache backend: {settings.cache_backend}",
        {"cache_backend": settings.cache_backend},
    )
