"""In-process LRU cache with per-entry TTL."""

import time
from collections import OrderedDict
from typing import Any, Callable, Optional

import structlog
from pydantic import BaseModel

logger = structlog.get_logger()


class CacheStats(BaseModel):
    """Cache statistics."""

    hits: int = 0
    misses: int = 0
    evictions: int = 0
    memory_items: int = 0

    @property
    def hit_rate(self) -> float:
        """Calculate hit rate percentage."""
        total = self.hits + self.misses
        return (self.hits / total * 100) if total > 0 else 0.0


class CacheEntry(BaseModel):
    """A single cache entry."""

    key: str
    value: Any
    cache_type: str
    created_at: float
    expires_at: float
    hit_count: int = 0


class CacheManager:
    """Bounded LRU memory cache. Entries expire after their TTL.

    Values are kept as-is (no serialization); callers must not mutate a
    value after storing it.
    """

    def __init__(
        self,
        max_items: int = 100,
        default_ttl_seconds: int = 300,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize cache manager.

        Args:
            max_items: Maximum items held (LRU eviction)
            default_ttl_seconds: TTL used when ``set`` is not given one
            clock: Monotonic time source, injectable for tests
        """
        self._memory: OrderedDict[str, CacheEntry] = OrderedDict()
        self._max_items = max_items
        self._default_ttl = default_ttl_seconds
        self._clock = clock
        self._stats = CacheStats()

    async def get(self, key: str) -> Optional[Any]:
        """Get value from cache.

        Args:
            key: Cache key

        Returns:
            Cached value or None if not found/expired
        """
        entry = self._memory.get(key)
        if entry is not None:
            if self._clock() < entry.expires_at:
                # Move to end (most recently used)
                self._memory.move_to_end(key)
                entry.hit_count += 1
                self._stats.hits += 1
                logger.debug("Cache hit", key=key[:50])
                return entry.value
            del self._memory[key]

        self._stats.misses += 1
        logger.debug("Cache miss", key=key[:50])
        return None

    async def set(
        self,
        key: str,
        value: Any,
        ttl_seconds: Optional[int] = None,
        cache_type: str = "default",
    ) -> None:
        """Store value in cache.

        Args:
            key: Cache key
            value: Value to cache
            ttl_seconds: Time to live in seconds (defaults to the manager's TTL)
            cache_type: Category of cached item
        """
        ttl = self._default_ttl if ttl_seconds is None else ttl_seconds
        now = self._clock()

        self._memory[key] = CacheEntry(
            key=key,
            value=value,
            cache_type=cache_type,
            created_at=now,
            expires_at=now + ttl,
        )
        self._memory.move_to_end(key)

        # Evict oldest if over limit
        while len(self._memory) > self._max_items:
            self._memory.popitem(last=False)
            self._stats.evictions += 1

        logger.debug("Cache set", key=key[:50], ttl=ttl, type=cache_type)

    async def invalidate(self, key: str) -> bool:
        """Drop a single entry. Returns whether it was present."""
        return self._memory.pop(key, None) is not None

    async def clear(self, cache_type: Optional[str] = None) -> int:
        """Clear cache entries.

        Args:
            cache_type: If specified, only clear entries of this type

        Returns:
            Number of entries cleared
        """
        if cache_type:
            keys_to_remove = [k for k, v in self._memory.items() if v.cache_type == cache_type]
            for key in keys_to_remove:
                del self._memory[key]
            count = len(keys_to_remove)
        else:
            count = len(self._memory)
            self._memory.clear()

        logger.info("Cache cleared", type=cache_type, count=count)
        return count

    async def cleanup_expired(self) -> int:
        """Remove expired entries from cache.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        expired_keys = [k for k, v in self._memory.items() if v.expires_at <= now]
        for key in expired_keys:
            del self._memory[key]
        return len(expired_keys)

    def get_stats(self) -> CacheStats:
        """Get cache statistics.

        Returns:
            CacheStats with hit/miss counts and item count
        """
        self._stats.memory_items = len(self._memory)
        return self._stats.model_copy()


# Global cache manager instance
_cache_manager: Optional[CacheManager] = None


def get_cache_manager() -> CacheManager:
    """Get the global cache manager instance.

    Returns:
        CacheManager instance (creates if needed)
    """
    global _cache_manager
    if _cache_manager is None:
        from marketplace.config.settings import settings

        _cache_manager = CacheManager(
            max_items=settings.cache_max_items,
            default_ttl_seconds=settings.comparison_cache_ttl_seconds,
        )
    return _cache_manager


def reset_cache_manager() -> None:
    """Reset the global cache manager (for testing)."""
    global _cache_manager
    _cache_manager = None
