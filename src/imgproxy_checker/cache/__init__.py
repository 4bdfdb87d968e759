"""
Size cache package.

Provides a factory function to create the configured size cache.
"""

from pathlib import Path

from .base import CacheEntry, FreshnessPolicy, SizeCache
from .memory import InMemorySizeCache
from .sqlite import SqliteSizeCache


def create_size_cache(
    cache_type: str = "sqlite",
    path: str | Path = "./data/image_data.db",
) -> SizeCache:
    """
    Factory function to create a size cache.

    Args:
        cache_type: Type of cache ("sqlite" or "memory")
        path: Database file for the SQLite cache

    Returns:
        Configured SizeCache instance

    Raises:
        ValueError: If cache_type is not recognized
        CacheError: If the SQLite database cannot be opened
    """
    if cache_type == "sqlite":
        return SqliteSizeCache(path=path)
    elif cache_type == "memory":
        return InMemorySizeCache()
    else:
        raise ValueError(f"Unknown size cache type: {cache_type}")


__all__ = [
    "CacheEntry",
    "FreshnessPolicy",
    "InMemorySizeCache",
    "SizeCache",
    "SqliteSizeCache",
    "create_size_cache",
]
