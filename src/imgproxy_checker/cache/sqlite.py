"""SQLite size cache implementation.

Stores one row per (page URL, image URL) pair in a local database file.
Ideal for single-instance deployments.
"""

import asyncio
import sqlite3
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any

from loguru import logger

from ..errors import CacheError
from .base import CacheEntry, SizeCache

CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS image_data (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    page_url TEXT NOT NULL,
    image_url TEXT NOT NULL,
    original_size INTEGER NOT NULL,
    optimized_size INTEGER NOT NULL,
    fetched_at INTEGER NOT NULL,
    UNIQUE (page_url, image_url)
);
"""

UPSERT_SQL = """
INSERT INTO image_data (page_url, image_url, original_size, optimized_size, fetched_at)
VALUES (?, ?, ?, ?, ?)
ON CONFLICT (page_url, image_url) DO UPDATE SET
    original_size = excluded.original_size,
    optimized_size = excluded.optimized_size,
    fetched_at = excluded.fetched_at;
"""

SELECT_SQL = """
SELECT original_size, optimized_size, fetched_at
FROM image_data
WHERE page_url = ? AND image_url = ?;
"""


class SqliteSizeCache(SizeCache):
    """SQLite implementation of SizeCache."""

    def __init__(self, path: str | Path = "./data/image_data.db"):
        """Open (and create if needed) the cache database.

        Args:
            path: Database file, or ":memory:" for a private in-memory database

        Raises:
            CacheError: If the database cannot be opened or initialized

        """
        self.path = str(path)
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)

        self._lock = threading.Lock()
        try:
            self.conn = sqlite3.connect(self.path, check_same_thread=False)
            with self.conn:
                self.conn.execute(CREATE_TABLE_SQL)
        except sqlite3.Error as e:
            raise CacheError(f"Could not open size cache at {self.path}") from e
        logger.debug("SQLite size cache ready at {}", self.path)

    async def get(self, page_url: str, image_url: str) -> CacheEntry | None:
        """Fetch the stored row for a page/image pair.

        Args:
            page_url: Page URL
            image_url: Image URL

        Returns:
            The stored entry, or None if there is no row.

        """
        try:
            row = await self._run(self._fetch_one, SELECT_SQL, (page_url, image_url))
        except sqlite3.Error as e:
            raise CacheError(f"Cache lookup failed for {image_url}") from e

        if row is None:
            return None
        original_size, optimized_size, fetched_at = row
        return CacheEntry(
            page_url=page_url,
            image_url=image_url,
            original_size=original_size,
            optimized_size=optimized_size,
            fetched_at=fetched_at,
        )

    async def upsert(self, entry: CacheEntry) -> None:
        """Insert or update the row for ``(page_url, image_url)``."""
        params = (
            entry.page_url,
            entry.image_url,
            entry.original_size,
            entry.optimized_size,
            entry.fetched_at,
        )
        try:
            await self._run(self._write, UPSERT_SQL, params)
        except sqlite3.Error as e:
            raise CacheError(f"Cache write failed for {entry.image_url}") from e

    async def count(self) -> int:
        """Return the number of cached measurements."""
        try:
            (count,) = await self._run(self._fetch_one, "SELECT COUNT(*) FROM image_data;", ())
        except sqlite3.Error as e:
            raise CacheError("Cache count failed") from e
        return count

    async def clear(self) -> None:
        """Delete every cached measurement.

        Warning:
            This permanently removes all rows and cannot be undone.

        """
        try:
            await self._run(self._write, "DELETE FROM image_data;", ())
        except sqlite3.Error as e:
            raise CacheError("Cache clear failed") from e
        logger.info("Cleared size cache at {}", self.path)

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self.conn.close()
        logger.debug("Closed SQLite size cache at {}", self.path)

    async def _run(self, func: Callable[..., Any], *args: Any) -> Any:
        # sqlite3 blocks, so queries run in the default executor
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, *args)

    def _fetch_one(self, sql: str, params: tuple) -> tuple | None:
        with self._lock:
            return self.conn.execute(sql, params).fetchone()

    def _write(self, sql: str, params: tuple) -> None:
        with self._lock, self.conn:
            self.conn.execute(sql, params)
