# servicehub/infrastructure/cache/tiered.py
"""
Primary + secondary cache pair used by the cache interceptors.

Reads and writes go to the primary (Redis) and fall back to the secondary
(in-memory) store when the primary is absent or unreachable. Invalidation
clears the primary and sweeps the secondary. Cache failures are logged and
swallowed here; callers never see them.
"""

import logging
from typing import Any, Dict, Optional, Tuple

from servicehub.core.cache_redis import get_async_cache_redis_client
from servicehub.core.config import settings
from servicehub.core.exceptions import CacheUnavailableException
from servicehub.infrastructure.cache.memory_cache import MemoryCacheBackend
from servicehub.infrastructure.cache.redis_cache import CacheBackend, RedisCacheBackend
from servicehub.monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)


class TieredCache:
    def __init__(
        self,
        primary: Optional[CacheBackend] = None,
        secondary: Optional[MemoryCacheBackend] = None,
    ) -> None:
        self.primary = primary
        self.secondary = secondary
        self._stats: Dict[str, int] = self._initialize_stats()

    def _initialize_stats(self) -> Dict[str, int]:
        return {
            "hits": 0,
            "misses": 0,
            "sets": 0,
            "invalidations": 0,
            "fallback_reads": 0,
            "fallback_writes": 0,
            "errors": 0,
        }

    async def read(self, key: str, *, use_fallback: bool = True) -> Tuple[bool, Any]:
        """Return ``(hit, value)``; a primary outage reads the secondary when allowed."""
        value: Any = None
        try:
            if self.primary is None:
                raise CacheUnavailableException("No primary cache configured")
            value = await self.primary.get(key)
        except CacheUnavailableException as exc:
            if use_fallback and self.secondary is not None:
                self._stats["fallback_reads"] += 1
                prometheus_metrics.record_cache_fallback("get")
                try:
                    value = await self.secondary.get(key)
                except Exception as memory_error:
                    self._stats["errors"] += 1
                    logger.error(
                        "Cache memory fallback error",
                        extra={"cache_key": key, "error": str(memory_error)},
                    )
                    value = None
            else:
                self._stats["errors"] += 1
                logger.error("Cache Redis error", extra={"cache_key": key, "error": str(exc)})
        except Exception as exc:
            self._stats["errors"] += 1
            logger.error("Cache read error", extra={"cache_key": key, "error": str(exc)})
            value = None

        if value is not None:
            self._stats["hits"] += 1
            return True, value
        self._stats["misses"] += 1
        return False, None

    async def write(self, key: str, value: Any, ttl: int, *, use_fallback: bool = True) -> bool:
        """Best-effort write; returns whether any store accepted the value."""
        try:
            if self.primary is None:
                raise CacheUnavailableException("No primary cache configured")
            await self.primary.set(key, value, ttl)
            self._stats["sets"] += 1
            return True
        except CacheUnavailableException as exc:
            if not (use_fallback and self.secondary is not None):
                self._stats["errors"] += 1
                logger.error("Cache Redis set error", extra={"cache_key": key, "error": str(exc)})
                return False
        except Exception as exc:
            self._stats["errors"] += 1
            logger.error("Cache set error", extra={"cache_key": key, "error": str(exc)})
            return False

        try:
            await self.secondary.set(key, value, ttl)
        except Exception as memory_error:
            self._stats["errors"] += 1
            logger.error(
                "Cache memory set error",
                extra={"cache_key": key, "error": str(memory_error)},
            )
            return False
        self._stats["fallback_writes"] += 1
        self._stats["sets"] += 1
        prometheus_metrics.record_cache_fallback("set")
        return True

    async def invalidate(self, pattern: str) -> int:
        """Clear keys matching ``pattern`` from both tiers; never raises."""
        deleted = 0
        primary_failed = self.primary is None
        if self.primary is not None:
            try:
                deleted += await self.primary.clear(pattern)
            except Exception as exc:
                primary_failed = True
                self._stats["errors"] += 1
                logger.error(
                    "Cache invalidation error", extra={"pattern": pattern, "error": str(exc)}
                )

        if self.secondary is not None:
            try:
                keys = await self.secondary.keys(pattern)
                for key in keys:
                    if await self.secondary.delete(key):
                        deleted += 1
                if primary_failed:
                    prometheus_metrics.record_cache_fallback("clear")
            except Exception as memory_error:
                self._stats["errors"] += 1
                logger.error(
                    "Memory cache invalidation error",
                    extra={"pattern": pattern, "error": str(memory_error)},
                )

        self._stats["invalidations"] += deleted
        logger.debug(f"Invalidated {deleted} cache entries matching pattern: {pattern}")
        return deleted

    def get_stats(self) -> Dict[str, Any]:
        total_requests = self._stats["hits"] + self._stats["misses"]
        hit_rate = (self._stats["hits"] / total_requests * 100) if total_requests > 0 else 0
        return {
            **self._stats,
            "hit_rate": f"{hit_rate:.2f}%",
            "total_requests": total_requests,
            "primary": type(self.primary).__name__ if self.primary is not None else None,
        }

    def reset_stats(self) -> None:
        self._stats = self._initialize_stats()


async def build_tiered_cache() -> TieredCache:
    """Build the cache pair from settings; memory-only when Redis is unreachable."""
    client = await get_async_cache_redis_client()
    primary = RedisCacheBackend(client) if client is not None else None
    if primary is None:
        logger.warning("Redis not available, using in-memory cache only")
    secondary = MemoryCacheBackend() if settings.cache_use_memory_fallback or primary is None else None
    return TieredCache(primary=primary, secondary=secondary)
