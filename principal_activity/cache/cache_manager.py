"""
In-memory snapshot cache with TTL expiry and pattern invalidation.

Features:
- TTL-based entry expiration with lazy cleanup on read
- Glob pattern-based key invalidation
- Per-entry hit counters and global hit/miss statistics
- Injectable clock for deterministic tests

The cache is owned by a single engine instance and touched only from its
event loop, so no locking is done. There is no size bound: every distinct
canonical query adds an entry until it expires or the cache is cleared.
"""

import fnmatch
import logging
import time
from collections.abc import Callable
from dataclasses import asdict, dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """One cached snapshot."""

    key: str
    payload: Any
    written_at: float
    hits: int = 0

    def age(self, now: float) -> float:
        return now - self.written_at


@dataclass
class CacheStats:
    """Hit/miss counters and entry ages for one cache."""

    hits: int = 0
    misses: int = 0
    size: int = 0
    hit_rate: float = 0.0
    oldest_entry_age: float | None = None
    ttl_seconds: float = 0.0
    hottest_key: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


class CacheManager:
    """TTL cache keyed by canonical query descriptors."""

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize cache manager.

        Args:
            ttl_seconds: Seconds an entry stays fresh. Defaults to 300 (5 minutes).
            clock: Monotonic time source in seconds.
        """
        self._entries: dict[str, CacheEntry] = {}
        self._ttl = ttl_seconds
        self._clock = clock
        self._hits = 0
        self._misses = 0

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str) -> Any | None:
        """
        Get payload from cache.

        An entry read after its TTL has elapsed is evicted and reported absent.

        Args:
            key: Canonical cache key

        Returns:
            Cached payload or None if not found/expired
        """
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None

        if entry.age(self._clock()) > self._ttl:
            del self._entries[key]
            self._misses += 1
            logger.debug(f"Cache entry expired: {key}")
            return None

        entry.hits += 1
        self._hits += 1
        return entry.payload

    def set(self, key: str, payload: Any) -> None:
        """
        Store payload under key, overwriting any existing entry.

        Args:
            key: Canonical cache key
            payload: Snapshot to cache
        """
        self._entries[key] = CacheEntry(key=key, payload=payload, written_at=self._clock())

    def entry(self, key: str) -> CacheEntry | None:
        """Inspect an entry without counting a hit or expiring it."""
        return self._entries.get(key)

    def delete(self, key: str) -> None:
        """
        Delete specific key from cache.

        Args:
            key: Cache key to delete
        """
        self._entries.pop(key, None)

    def invalidate_pattern(self, pattern: str) -> int:
        """
        Invalidate all keys matching a glob pattern.

        Examples:
            - "timeline:*" matches every timeline snapshot
            - "timeline:scope=p-1*" matches snapshots scoped to p-1 first

        Args:
            pattern: Glob pattern to match

        Returns:
            Number of keys invalidated
        """
        keys_to_delete = [key for key in self._entries if fnmatch.fnmatchcase(key, pattern)]
        for key in keys_to_delete:
            del self._entries[key]
        return len(keys_to_delete)

    def clear(self) -> None:
        """Clear entire cache."""
        self._entries.clear()

    def stats(self) -> CacheStats:
        """
        Get cache statistics.

        Returns:
            CacheStats with counters, oldest entry age and the most-read key
        """
        total_requests = self._hits + self._misses
        hit_rate = self._hits / total_requests if total_requests > 0 else 0.0

        oldest_entry_age = None
        hottest_key = None
        if self._entries:
            now = self._clock()
            oldest_entry_age = max(entry.age(now) for entry in self._entries.values())
            hottest = max(self._entries.values(), key=lambda e: e.hits)
            if hottest.hits:
                hottest_key = hottest.key

        return CacheStats(
            hits=self._hits,
            misses=self._misses,
            size=len(self._entries),
            hit_rate=hit_rate,
            oldest_entry_age=oldest_entry_age,
            ttl_seconds=self._ttl,
            hottest_key=hottest_key,
        )

    def cleanup_expired(self) -> int:
        """
        Clean up all expired entries.

        Returns:
            Number of expired entries removed
        """
        now = self._clock()
        expired_keys = [key for key, entry in self._entries.items() if entry.age(now) > self._ttl]
        for key in expired_keys:
            del self._entries[key]
        return len(expired_keys)
