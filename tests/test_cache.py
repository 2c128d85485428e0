from typing import Any

import pytest
from brokerwatch.cache import MemoryCache, RedisCache, build_cache
from brokerwatch.config import Settings
from brokerwatch.core.errors import ConfigurationError


class StubRedisClient:
    def __init__(self) -> None:
        self.values: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.closed = False

    async def get(self, key: str) -> Any:
        return self.values.get(key)

    async def setex(self, key: str, ttl: int, value: str) -> None:
        self.values[key] = value
        self.ttls[key] = ttl

    async def delete(self, key: str) -> None:
        self.values.pop(key, None)

    async def aclose(self) -> None:
        self.closed = True


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.mark.asyncio
async def test_memory_cache_expires_after_ttl() -> None:
    clock = FakeClock()
    cache = MemoryCache(clock=clock)

    await cache.set("k", {"v": 1}, 60)
    clock.now = 59.9
    assert await cache.get("k") == {"v": 1}

    clock.now = 60.0
    assert await cache.get("k") is None


@pytest.mark.asyncio
async def test_memory_cache_delete() -> None:
    cache = MemoryCache()

    await cache.set("k", 1, 60)
    await cache.delete("k")

    assert await cache.get("k") is None


@pytest.mark.asyncio
async def test_redis_cache_round_trips_json_with_ttl() -> None:
    stub = StubRedisClient()
    cache = RedisCache("redis://test", redis_client=stub)

    await cache.set("broker-metrics:current", {"brokers": {}}, 60)

    assert stub.ttls["broker-metrics:current"] == 60
    assert await cache.get("broker-metrics:current") == {"brokers": {}}

    await cache.delete("broker-metrics:current")
    assert await cache.get("broker-metrics:current") is None

    await cache.close()
    assert stub.closed


@pytest.mark.asyncio
async def test_redis_cache_ignores_non_json_values() -> None:
    stub = StubRedisClient()
    stub.values["k"] = "not-json{"
    cache = RedisCache("redis://test", redis_client=stub)

    assert await cache.get("k") is None


def test_build_cache_backends() -> None:
    assert isinstance(build_cache(Settings(cache_backend="memory")), MemoryCache)
    assert isinstance(build_cache(Settings(cache_backend="redis")), RedisCache)

    with pytest.raises(ConfigurationError):
        build_cache(Settings(cache_backend="memcached"))
