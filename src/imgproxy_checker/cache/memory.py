"""In-memory size cache, for tests and throwaway runs."""

import threading

from .base import CacheEntry, SizeCache


class InMemorySizeCache(SizeCache):
    """Dict-backed implementation of SizeCache."""

    def __init__(self):
        self._entries: dict[tuple[str, str], CacheEntry] = {}
        self._lock = threading.Lock()

    async def get(self, page_url: str, image_url: str) -> CacheEntry | None:
        with self._lock:
            return self._entries.get((page_url, image_url))

    async def upsert(self, entry: CacheEntry) -> None:
        with self._lock:
            self._entries[(entry.page_url, entry.image_url)] = entry

    async def count(self) -> int:
        with self._lock:
            return len(self._entries)

    async def clear(self) -> None:
        with self._lock:
            self._entries.clear()
