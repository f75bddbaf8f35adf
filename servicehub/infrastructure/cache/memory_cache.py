# servicehub/infrastructure/cache/memory_cache.py
"""
In-memory cache store.

Secondary store used when the primary Redis backend is unreachable. Same
contract as the Redis backend (get/set/clear) plus ``keys`` and ``delete``
so callers can sweep matching entries themselves.
"""

import fnmatch
import json
import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


class MemoryCacheBackend:
    """
    Process-local TTL store.

    Values are stored JSON-encoded so a hit returns the same shape a Redis
    hit would, and callers cannot mutate cached state through a returned
    object.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: Dict[str, Tuple[str, Optional[float]]] = {}
        self._lock = threading.Lock()

    def _purge_if_expired(self, key: str) -> bool:
        entry = self._entries.get(key)
        if entry is None:
            return True
        expires_at = entry[1]
        if expires_at is not None and self._clock() >= expires_at:
            del self._entries[key]
            return True
        return False

    async def get(self, key: str) -> Optional[Any]:
        with self._lock:
            if self._purge_if_expired(key):
                return None
            payload = self._entries[key][0]
        return json.loads(payload)

    async def set(self, key: str, value: Any, ttl: int = 300) -> None:
        """
        Set value in cache with TTL.

        Args:
            key: Cache key
            value: JSON-serializable value
            ttl: Time to live in seconds; 0 or less keeps the entry until cleared
        """
        payload = json.dumps(value, default=str)
        expires_at = self._clock() + ttl if ttl > 0 else None
        with self._lock:
            self._entries[key] = (payload, expires_at)
        logger.debug(f"Cached {key} with TTL {ttl}s (memory)")

    async def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    async def keys(self, pattern: str = "*") -> List[str]:
        with self._lock:
            live = [key for key in list(self._entries) if not self._purge_if_expired(key)]
        return [key for key in live if fnmatch.fnmatchcase(key, pattern)]

    async def purge_expired(self) -> int:
        """Drop every expired entry; returns how many were removed."""
        with self._lock:
            before = len(self._entries)
            for key in list(self._entries):
                self._purge_if_expired(key)
            return before - len(self._entries)

    async def clear(self, pattern: str = "*") -> int:
        deleted = 0
        for key in await self.keys(pattern):
            if await self.delete(key):
                deleted += 1
        logger.debug(f"Deleted {deleted} memory keys matching pattern: {pattern}")
        return deleted

    def __len__(self) -> int:
        return len(self._entries)
