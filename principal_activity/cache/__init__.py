"""
In-memory cache layer for the Principal Activity Engine.

Provides:
- CacheManager: TTL-based snapshot cache with pattern invalidation
- CacheEntry / CacheStats: entry and statistics records
- InFlightRegistry: one pending fetch per cache key
"""

from .cache_manager import CacheEntry, CacheManager, CacheStats
from .inflight import InFlightRegistry

__all__ = [
    "CacheEntry",
    "CacheManager",
    "CacheStats",
    "InFlightRegistry",
]
