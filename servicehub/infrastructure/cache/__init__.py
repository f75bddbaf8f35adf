from servicehub.infrastructure.cache.memory_cache import MemoryCacheBackend
from servicehub.infrastructure.cache.redis_cache import (
    CacheBackend,
    CircuitBreaker,
    CircuitState,
    RedisCacheBackend,
)
from servicehub.infrastructure.cache.tiered import TieredCache, build_tiered_cache

__all__ = (
    "CacheBackend",
    "CircuitBreaker",
    "CircuitState",
    "MemoryCacheBackend",
    "RedisCacheBackend",
    "TieredCache",
    "build_tiered_cache",
)
