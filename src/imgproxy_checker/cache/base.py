"""
Abstract base class for size caches.

Enables swapping between SQLite (local), in-memory, or a shared database.
"""

from abc import ABC, abstractmethod
from datetime import timedelta

from pydantic import BaseModel, Field


class CacheEntry(BaseModel):
    """A stored size measurement for one image of one page."""

    page_url: str = Field(description="Page the image was found on")
    image_url: str = Field(description="Measured image URL")
    original_size: int = Field(description="Original size in bytes")
    optimized_size: int = Field(description="Optimized size in bytes")
    fetched_at: int = Field(description="Unix epoch seconds of the measurement")


class FreshnessPolicy:
    """Decides whether a cached measurement can be reused."""

    def __init__(self, ttl: timedelta = timedelta(hours=24)):
        self.ttl = ttl

    def is_fresh(self, fetched_at: float, now: float) -> bool:
        """Return True if a measurement taken at ``fetched_at`` is younger than the TTL."""
        return now - fetched_at < self.ttl.total_seconds()

    def __repr__(self) -> str:
        return f"FreshnessPolicy(ttl={self.ttl!r})"


class SizeCache(ABC):
    """Abstract interface for size caches.

    Implementations raise ``CacheError`` for storage failures.
    """

    @abstractmethod
    async def get(self, page_url: str, image_url: str) -> CacheEntry | None:
        """
        Look up a measurement.

        Args:
            page_url: Page URL
            image_url: Image URL

        Returns:
            The stored entry regardless of age, or None
        """
        pass

    @abstractmethod
    async def upsert(self, entry: CacheEntry) -> None:
        """Insert or replace the entry for ``(entry.page_url, entry.image_url)``."""
        pass

    @abstractmethod
    async def count(self) -> int:
        """Return the number of stored entries."""
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Delete every stored entry."""
        pass

    def close(self) -> None:
        """Release storage resources. Default: no-op."""
