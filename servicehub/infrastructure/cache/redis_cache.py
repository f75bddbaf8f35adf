# servicehub/infrastructure/cache/redis_cache.py
"""
Primary cache backend on Redis/DragonflyDB.

Every failure to reach Redis, including an open circuit, surfaces as
CacheUnavailableException so the cache interceptors can fall back to the
in-memory store.
"""

from datetime import datetime
from enum import Enum
import json
import logging
import threading
from typing import Any, Awaitable, Callable, Optional, Protocol, TypeVar

from redis.asyncio import Redis as AsyncRedis
from redis.exceptions import RedisError

from servicehub.core.exceptions import CacheUnavailableException

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CacheBackend(Protocol):
    async def get(self, key: str) -> Optional[Any]: ...

    async def set(self, key: str, value: Any, ttl: int = 300) -> None: ...

    async def clear(self, pattern: str = "*") -> int: ...


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing, reject calls
    HALF_OPEN = "half_open"  # Testing if service recovered


class CircuitBreaker:
    """
    Circuit breaker for the Redis connection.

    After ``failure_threshold`` consecutive failures the circuit opens and
    calls are rejected without touching Redis until ``recovery_timeout``
    seconds have passed; the next call then probes the connection.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: int = 60,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._clock = clock

        self._failure_count: int = 0
        self._last_failure_time: Optional[datetime] = None
        self._state: CircuitState = CircuitState.CLOSED
        self._lock = threading.Lock()

    @property
    def state(self) -> CircuitState:
        """Get current circuit state."""
        with self._lock:
            if self._state == CircuitState.OPEN and self._last_failure_time:
                time_since_failure = (self._clock() - self._last_failure_time).total_seconds()
                if time_since_failure >= self.recovery_timeout:
                    self._state = CircuitState.HALF_OPEN
            return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    def record_success(self) -> None:
        with self._lock:
            self._failure_count = 0
            if self._state == CircuitState.HALF_OPEN:
                self._state = CircuitState.CLOSED
                logger.info("Circuit breaker recovered, closing circuit")

    def record_failure(self) -> None:
        with self._lock:
            self._failure_count += 1
            self._last_failure_time = self._clock()
            if self._state == CircuitState.HALF_OPEN or (
                self._failure_count >= self.failure_threshold
            ):
                self._state = CircuitState.OPEN
                logger.warning(f"Circuit breaker opened after {self._failure_count} failures")


class RedisCacheBackend:
    """JSON-over-Redis cache with SETEX writes and SCAN-based pattern clears."""

    def __init__(
        self,
        client: AsyncRedis,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ) -> None:
        self.client = client
        self.circuit_breaker = circuit_breaker or CircuitBreaker()

    async def _call(self, operation: str, func: Callable[[], Awaitable[T]]) -> T:
        if self.circuit_breaker.state == CircuitState.OPEN:
            raise CacheUnavailableException(f"Redis circuit open; skipping {operation}")
        try:
            result = await func()
        except (RedisError, OSError) as exc:
            self.circuit_breaker.record_failure()
            raise CacheUnavailableException(f"Redis {operation} failed: {exc}") from exc
        self.circuit_breaker.record_success()
        return result

    async def get(self, key: str) -> Optional[Any]:
        raw = await self._call("get", lambda: self.client.get(key))
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, key: str, value: Any, ttl: int = 300) -> None:
        serialized = json.dumps(value, default=str)
        if ttl > 0:
            await self._call("set", lambda: self.client.setex(key, ttl, serialized))
        else:
            await self._call("set", lambda: self.client.set(key, serialized))

    async def clear(self, pattern: str = "*") -> int:
        async def _scan_and_delete() -> int:
            count = 0
            async for key in self.client.scan_iter(match=pattern):
                count += int(await self.client.delete(key))
            return count

        count = await self._call("clear", _scan_and_delete)
        logger.info(f"Deleted {count} keys matching pattern: {pattern}")
        return count
