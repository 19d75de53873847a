"""
Bounded LRU cache for built taste profiles.

Keys include the history and catalog generations, so a write to either
store makes older entries unreachable; they age out of the LRU order.
"""

import logging
import threading
from collections import OrderedDict
from typing import Hashable, Optional

from .config import PROFILE_CACHE_SIZE
from .profile import TasteProfile

logger = logging.getLogger(__name__)


class ProfileCache:
    """Thread-safe LRU of TasteProfile objects with hit/miss statistics."""

    def __init__(self, max_size: int = PROFILE_CACHE_SIZE):
        self.max_size = max(1, max_size)
        self._cache: OrderedDict[Hashable, TasteProfile] = OrderedDict()
        self._lock = threading.Lock()

        self.hits = 0
        self.misses = 0
        self.evictions = 0

    def get(self, key: Hashable) -> Optional[TasteProfile]:
        with self._lock:
            profile = self._cache.get(key)
            if profile is None:
                self.misses += 1
                return None
            self._cache.move_to_end(key)
            self.hits += 1
            return profile

    def put(self, key: Hashable, profile: TasteProfile) -> None:
        with self._lock:
            self._cache[key] = profile
            self._cache.move_to_end(key)
            while len(self._cache) > self.max_size:
                evicted, _ = self._cache.popitem(last=False)
                self.evictions += 1
                logger.debug(f"Evicted cached profile {evicted}")

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._cache

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def stats(self) -> dict:
        with self._lock:
            return {
                "size": len(self._cache),
                "max_size": self.max_size,
                "hits": self.hits,
                "misses": self.misses,
                "evictions": self.evictions,
                "hit_rate": self.hit_rate,
            }
