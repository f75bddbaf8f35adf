from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from servicehub.core.config import settings
from servicehub.infrastructure.cache import MemoryCacheBackend, RedisCacheBackend, tiered


@pytest.mark.asyncio
async def test_memory_only_when_redis_unavailable(monkeypatch) -> None:
    monkeypatch.setattr(tiered, "get_async_cache_redis_client", AsyncMock(return_value=None))

    cache = await tiered.build_tiered_cache()

    assert cache.primary is None
    assert isinstance(cache.secondary, MemoryCacheBackend)


@pytest.mark.asyncio
async def test_redis_primary_with_memory_fallback(monkeypatch) -> None:
    client = AsyncMock()
    monkeypatch.setattr(tiered, "get_async_cache_redis_client", AsyncMock(return_value=client))
    monkeypatch.setattr(settings, "cache_use_memory_fallback", True)

    cache = await tiered.build_tiered_cache()

    assert isinstance(cache.primary, RedisCacheBackend)
    assert cache.primary.client is client
    assert isinstance(cache.secondary, MemoryCacheBackend)


@pytest.mark.asyncio
async def test_fallback_store_can_be_disabled(monkeypatch) -> None:
    monkeypatch.setattr(tiered, "get_async_cache_redis_client", AsyncMock(return_value=AsyncMock()))
    monkeypatch.setattr(settings, "cache_use_memory_fallback", False)

    cache = await tiered.build_tiered_cache()

    assert cache.secondary is None
