"""Tests for the comparison cache manager."""

import pytest

from marketplace.cache.manager import CacheManager, get_cache_manager, reset_cache_manager


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestCacheManager:
    """Tests for CacheManager class."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def cache_manager(self, clock):
        return CacheManager(max_items=3, default_ttl_seconds=300, clock=clock)

    @pytest.mark.asyncio
    async def test_set_and_get(self, cache_manager):
        """Test basic set and get operations."""
        await cache_manager.set("compare_a_b", {"bestValue": 1}, cache_type="comparison")

        result = await cache_manager.get("compare_a_b")
        assert result == {"bestValue": 1}

    @pytest.mark.asyncio
    async def test_get_missing_key(self, cache_manager):
        result = await cache_manager.get("nonexistent")
        assert result is None

    @pytest.mark.asyncio
    async def test_entry_expires_after_default_ttl(self, cache_manager, clock):
        await cache_manager.set("key", "value")

        clock.advance(299)
        assert await cache_manager.get("key") == "value"

        clock.advance(1)
        assert await cache_manager.get("key") is None

    @pytest.mark.asyncio
    async def test_explicit_ttl_overrides_default(self, cache_manager, clock):
        await cache_manager.set("key", "value", ttl_seconds=10)

        clock.advance(11)
        assert await cache_manager.get("key") is None

    @pytest.mark.asyncio
    async def test_lru_eviction(self, cache_manager):
        """Least recently used entry is dropped once max_items is exceeded."""
        await cache_manager.set("a", 1)
        await cache_manager.set("b", 2)
        await cache_manager.set("c", 3)

        # Touch "a" so "b" becomes the oldest
        await cache_manager.get("a")
        await cache_manager.set("d", 4)

        assert await cache_manager.get("b") is None
        assert await cache_manager.get("a") == 1
        assert await cache_manager.get("d") == 4
        assert cache_manager.get_stats().evictions == 1

    @pytest.mark.asyncio
    async def test_stats(self, cache_manager):
        await cache_manager.set("key", "value")
        await cache_manager.get("key")
        await cache_manager.get("missing")

        stats = cache_manager.get_stats()
        assert stats.hits == 1
        assert stats.misses == 1
        assert stats.memory_items == 1
        assert stats.hit_rate == 50.0

    @pytest.mark.asyncio
    async def test_clear_by_type(self, cache_manager):
        await cache_manager.set("a", 1, cache_type="comparison")
        await cache_manager.set("b", 2, cache_type="other")

        cleared = await cache_manager.clear("comparison")

        assert cleared == 1
        assert await cache_manager.get("a") is None
        assert await cache_manager.get("b") == 2

    @pytest.mark.asyncio
    async def test_invalidate(self, cache_manager):
        await cache_manager.set("a", 1)

        assert await cache_manager.invalidate("a") is True
        assert await cache_manager.invalidate("a") is False

    @pytest.mark.asyncio
    async def test_cleanup_expired(self, cache_manager, clock):
        await cache_manager.set("short", 1, ttl_seconds=5)
        await cache_manager.set("long", 2, ttl_seconds=500)

        clock.advance(10)
        removed = await cache_manager.cleanup_expired()

        assert removed == 1
        assert cache_manager.get_stats().memory_items == 1


class TestGlobalCacheManager:
    def test_get_cache_manager_is_shared(self):
        assert get_cache_manager() is get_cache_manager()

    def test_reset_cache_manager(self):
        first = get_cache_manager()
        reset_cache_manager()
        assert get_cache_manager() is not first
