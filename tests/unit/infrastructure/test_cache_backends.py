from __future__ import annotations

from datetime import datetime, timedelta
import json
from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from servicehub.core.exceptions import CacheUnavailableException
from servicehub.infrastructure.cache import (
    CircuitBreaker,
    CircuitState,
    MemoryCacheBackend,
    RedisCacheBackend,
    TieredCache,
)


def _scan(keys):
    async def scan_iter(match=None):
        for key in keys:
            yield key

    return scan_iter


class TestMemoryCacheBackend:
    @pytest.mark.asyncio
    async def test_set_then_get_returns_value_until_expiry(self, memory_cache, clock) -> None:
        await memory_cache.set("k", {"v": 1}, ttl=5)

        assert await memory_cache.get("k") == {"v": 1}
        clock.advance(5)
        assert await memory_cache.get("k") is None

    @pytest.mark.asyncio
    async def test_non_positive_ttl_keeps_entry(self, memory_cache, clock) -> None:
        await memory_cache.set("k", "v", ttl=0)
        clock.advance(10_000)

        assert await memory_cache.get("k") == "v"

    @pytest.mark.asyncio
    async def test_returned_values_are_copies(self, memory_cache) -> None:
        await memory_cache.set("k", {"items": [1]}, ttl=60)
        first = await memory_cache.get("k")
        first["items"].append(2)

        assert await memory_cache.get("k") == {"items": [1]}

    @pytest.mark.asyncio
    async def test_clear_by_pattern(self, memory_cache) -> None:
        await memory_cache.set("Directory:get:1", 1)
        await memory_cache.set("Directory:get:2", 2)
        await memory_cache.set("Other:get:1", 3)

        assert await memory_cache.clear("Directory:*") == 2
        assert await memory_cache.keys() == ["Other:get:1"]


class TestRedisCacheBackend:
    @pytest.mark.asyncio
    async def test_get_decodes_json(self) -> None:
        client = AsyncMock()
        client.get.return_value = json.dumps({"id": "p1"})

        assert await RedisCacheBackend(client).get("k") == {"id": "p1"}

    @pytest.mark.asyncio
    async def test_set_uses_setex_for_positive_ttl(self) -> None:
        client = AsyncMock()
        backend = RedisCacheBackend(client)

        await backend.set("k", {"a": 1}, ttl=30)
        await backend.set("forever", "v", ttl=0)

        client.setex.assert_awaited_once_with("k", 30, json.dumps({"a": 1}))
        client.set.assert_awaited_once_with("forever", json.dumps("v"))

    @pytest.mark.asyncio
    async def test_clear_deletes_scanned_keys(self) -> None:
        client = AsyncMock()
        client.scan_iter = _scan(["a:1", "a:2"])
        client.delete.return_value = 1

        assert await RedisCacheBackend(client).clear("a:*") == 2
        assert client.delete.await_count == 2

    @pytest.mark.asyncio
    async def test_redis_errors_surface_as_cache_unavailable(self) -> None:
        client = AsyncMock()
        client.get.side_effect = RedisConnectionError("refused")
        backend = RedisCacheBackend(client)

        with pytest.raises(CacheUnavailableException):
            await backend.get("k")
        assert backend.circuit_breaker.failure_count == 1

    @pytest.mark.asyncio
    async def test_open_circuit_skips_redis(self) -> None:
        client = AsyncMock()
        client.get.side_effect = RedisConnectionError("refused")
        backend = RedisCacheBackend(client, CircuitBreaker(failure_threshold=2))

        for _ in range(2):
            with pytest.raises(CacheUnavailableException):
                await backend.get("k")
        with pytest.raises(CacheUnavailableException, match="circuit open"):
            await backend.get("k")

        assert client.get.await_count == 2


class TestCircuitBreaker:
    def test_half_open_after_recovery_timeout_then_closes_on_success(self) -> None:
        now = [datetime(2030, 1, 1, 12, 0, 0)]
        breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=30, clock=lambda: now[0])

        breaker.record_failure()
        assert breaker.state == CircuitState.OPEN

        now[0] += timedelta(seconds=31)
        assert breaker.state == CircuitState.HALF_OPEN

        breaker.record_success()
        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 0

    def test_failure_while_half_open_reopens(self) -> None:
        now = [datetime(2030, 1, 1, 12, 0, 0)]
        breaker = CircuitBreaker(failure_threshold=3, recovery_timeout=10, clock=lambda: now[0])
        for _ in range(3):
            breaker.record_failure()
        now[0] += timedelta(seconds=11)
        assert breaker.state == CircuitState.HALF_OPEN

        breaker.record_failure()

        assert breaker.state == CircuitState.OPEN


class TestTieredCache:
    @pytest.mark.asyncio
    async def test_reads_primary_when_available(self, memory_cache) -> None:
        client = AsyncMock()
        client.get.return_value = json.dumps("from-redis")
        cache = TieredCache(primary=RedisCacheBackend(client), secondary=memory_cache)

        assert await cache.read("k") == (True, "from-redis")
        assert cache.get_stats()["fallback_reads"] == 0

    @pytest.mark.asyncio
    async def test_fallback_disabled_reports_miss(self, memory_cache) -> None:
        await memory_cache.set("k", "stale", ttl=60)
        client = AsyncMock()
        client.get.side_effect = RedisConnectionError("refused")
        cache = TieredCache(primary=RedisCacheBackend(client), secondary=memory_cache)

        assert await cache.read("k", use_fallback=False) == (False, None)
        assert cache.get_stats()["errors"] == 1

    @pytest.mark.asyncio
    async def test_invalidate_sweeps_both_tiers(self, memory_cache) -> None:
        await memory_cache.set("P:get:1", 1)
        client = AsyncMock()
        client.scan_iter = _scan(["P:get:2"])
        client.delete.return_value = 1
        cache = TieredCache(primary=RedisCacheBackend(client), secondary=memory_cache)

        assert await cache.invalidate("P:get:*") == 2
        assert await memory_cache.get("P:get:1") is None

    @pytest.mark.asyncio
    async def test_invalidate_never_raises_when_primary_fails(self, memory_cache) -> None:
        await memory_cache.set("P:get:1", 1)
        primary = AsyncMock()
        primary.clear.side_effect = CacheUnavailableException("down")
        cache = TieredCache(primary=primary, secondary=memory_cache)

        assert await cache.invalidate("P:*") == 1
        assert cache.get_stats()["errors"] == 1

    @pytest.mark.asyncio
    async def test_stats_track_hit_rate(self, memory_only_cache) -> None:
        await memory_only_cache.write("k", "v", 60)
        await memory_only_cache.read("k")
        await memory_only_cache.read("missing")

        stats = memory_only_cache.get_stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["hit_rate"] == "50.00%"
        assert stats["primary"] is None
