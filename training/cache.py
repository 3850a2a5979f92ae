"""
Expiring in-process cache with an explicit hit/miss result.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Hashable

from cachetools import TTLCache

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheLookup:
    hit: bool
    value: Any = None


MISS = CacheLookup(hit=False)


class ExpiringCache:
    """
    Bounded cache whose entries expire `max_age` seconds after being stored.

    The clock is injectable so expiry can be driven deterministically.
    """

    def __init__(self, maxsize: int, max_age: float, clock: Callable[[], float] = time.monotonic):
        self.maxsize = maxsize
        self.max_age = max_age
        self._entries = TTLCache(maxsize=maxsize, ttl=max_age, timer=clock)

    def lookup(self, key: Hashable) -> CacheLookup:
        try:
            return CacheLookup(hit=True, value=self._entries[key])
        except KeyError:
            return MISS

    def store(self, key: Hashable, value: Any) -> None:
        self._entries[key] = value

    def invalidate(self, key: Hashable) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def get_or_load(self, key: Hashable, loader: Callable[[], Any]) -> Any:
        """Return the cached value for key, calling loader on a miss."""
        cached = self.lookup(key)
        if cached.hit:
            return cached.value
        logger.debug("Cache miss for %s", key)
        value = loader()
        self.store(key, value)
        return value

    def __len__(self):
        return len(self._entries)
