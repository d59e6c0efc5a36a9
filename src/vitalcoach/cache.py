"""Process-local TTL cache used for deduplication and aggregation results."""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


@dataclass
class CacheRecord:
    """A cached value and the time it was inserted."""

    key: str
    value: Any
    inserted_at: float

    def is_expired(self, now: float, ttl_seconds: float) -> bool:
        """Check if the record has outlived the TTL."""
        return (now - self.inserted_at) >= ttl_seconds


@dataclass
class CacheStats:
    """Hit/miss counters for a cache."""

    size: int
    max_items: int | None
    hits: int
    misses: int

    @property
    def hit_rate(self) -> float:
        """Hit rate as a percentage (0 when nothing was looked up)."""
        total = self.hits + self.misses
        return (self.hits / total * 100) if total else 0.0


class TTLCache:
    """String-keyed cache where entries expire a fixed time after insertion.

    Expired entries are evicted lazily on lookup; there is no background
    sweep. When ``max_items`` is set, inserting past the cap evicts the
    oldest inserted entry.
    """

    def __init__(
        self,
        ttl_seconds: float,
        clock: Clock = time.monotonic,
        max_items: int | None = None,
    ) -> None:
        """Initialize the cache.

        Args:
            ttl_seconds: Time-to-live for every entry.
            clock: Callable returning the current time in seconds.
            max_items: Optional size cap. None means unbounded.
        """
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if max_items is not None and max_items < 1:
            raise ValueError("max_items must be at least 1")
        self.ttl_seconds = ttl_seconds
        self.max_items = max_items
        self._clock = clock
        self._records: dict[str, CacheRecord] = {}
        self._hits = 0
        self._misses = 0

    def _lookup(self, key: str) -> CacheRecord | None:
        record = self._records.get(key)
        if record is None:
            return None
        if record.is_expired(self._clock(), self.ttl_seconds):
            del self._records[key]
            return None
        return record

    def get(self, key: str, default: Any = None) -> Any:
        """Return the cached value, or ``default`` when absent or expired."""
        record = self._lookup(key)
        if record is None:
            self._misses += 1
            return default
        self._hits += 1
        return record.value

    def has(self, key: str) -> bool:
        """Check for a live entry without touching hit/miss counters."""
        return self._lookup(key) is not None

    def set(self, key: str, value: Any) -> None:
        """Store a value, resetting its insertion time."""
        self._records.pop(key, None)
        self._records[key] = CacheRecord(key=key, value=value, inserted_at=self._clock())

        if self.max_items is not None:
            while len(self._records) > self.max_items:
                oldest = next(iter(self._records))
                del self._records[oldest]

    def invalidate(self, key: str) -> bool:
        """Remove a single key. Returns True if it was present."""
        return self._records.pop(key, None) is not None

    def invalidate_pattern(self, prefix: str) -> int:
        """Remove every key starting with ``prefix``. Returns count removed."""
        keys = [key for key in self._records if key.startswith(prefix)]
        for key in keys:
            del self._records[key]
        if keys:
            logger.debug("Invalidated %d cache keys with prefix %s", len(keys), prefix)
        return len(keys)

    def clear(self) -> None:
        """Drop all entries and reset counters."""
        self._records.clear()
        self._hits = 0
        self._misses = 0

    def stats(self) -> CacheStats:
        """Return current size and hit/miss counters."""
        return CacheStats(
            size=len(self._records),
            max_items=self.max_items,
            hits=self._hits,
            misses=self._misses,
        )

    def __len__(self) -> int:
        return len(self._records)
