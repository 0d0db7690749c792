"""
Region-keyed response cache with a freshness TTL.

Expiry is checked only on access: a stale entry is deleted by the lookup
that finds it. There is no background sweeper.

The clock is injectable so tests can step time without sleeping.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Clock = Callable[[], float]


@dataclass
class CacheEntry(Generic[T]):
    timestamp: float
    data: T


class TTLCache(Generic[T]):
    def __init__(self, ttl_seconds: float, clock: Clock = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, CacheEntry[T]] = {}

    def get(self, key: str) -> Optional[T]:
        entry = self._entries.get(key)
        if entry is None:
            return None

        age = self._clock() - entry.timestamp
        if age < self.ttl_seconds:
            logger.info("Cache hit for %s (age: %.1fs)", key, age)
            return entry.data

        del self._entries[key]
        logger.debug("Cache entry for %s expired (age: %.1fs)", key, age)
        return None

    def set(self, key: str, data: T) -> None:
        self._entries[key] = CacheEntry(timestamp=self._clock(), data=data)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
