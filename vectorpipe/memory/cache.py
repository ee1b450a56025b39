# vectorpipe/memory/cache.py

"""
In-process vector cache.

Bounded LRU with a per-entry TTL, keyed by `cache_key(model, dimension,
content)`. Only successful embeddings are stored; fallback vectors never
enter the cache.
"""

import logging
import threading
import time
from collections import OrderedDict
from typing import Callable, Optional, Tuple

from pydantic import BaseModel

from vectorpipe.memory.vector import Vector

logger = logging.getLogger(__name__)


class CacheStats(BaseModel):
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    size: int = 0

    @property
    def total_requests(self) -> int:
        return self.hits + self.misses

    @property
    def hit_rate(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.hits / self.total_requests


class VectorCache:
    """
    Thread-safe LRU cache of embeddings.

    Expired entries are dropped lazily on lookup. When full, the least
    recently used entry is evicted.
    """

    def __init__(
        self,
        max_entries: int,
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):

        if max_entries <= 0:
            raise ValueError(f"Invalid cache size: {max_entries}")

        if ttl_seconds <= 0:
            raise ValueError(f"Invalid cache TTL: {ttl_seconds}")

        self._max_entries = max_entries
        self._ttl_seconds = ttl_seconds
        self._clock = clock

        self._lock = threading.Lock()
        self._entries: "OrderedDict[str, Tuple[Vector, float]]" = OrderedDict()

        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def get(self, key: str) -> Optional[Vector]:

        with self._lock:

            entry = self._entries.get(key)

            if entry is None:
                self._misses += 1
                return None

            vector, expires_at = entry

            if self._clock() >= expires_at:
                del self._entries[key]
                self._misses += 1
                return None

            self._entries.move_to_end(key)
            self._hits += 1

            return vector

    def put(self, key: str, vector: Vector):

        with self._lock:

            self._entries[key] = (vector, self._clock() + self._ttl_seconds)
            self._entries.move_to_end(key)

            while len(self._entries) > self._max_entries:
                evicted, _ = self._entries.popitem(last=False)
                self._evictions += 1
                logger.debug("Cache entry evicted", extra={"cache_key": evicted})

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self):
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def stats(self) -> CacheStats:

        with self._lock:

            return CacheStats(
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
                size=len(self._entries),
            )
