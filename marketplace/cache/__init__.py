"""Cache module."""

from .manager import CacheManager, CacheStats, get_cache_manager, reset_cache_manager

__all__ = [
    "CacheManager",
    "CacheStats",
    "get_cache_manager",
    "reset_cache_manager",
]
