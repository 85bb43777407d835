"""Device-local key-value cache backed by SQLite.

Holds the last-known catalog collections and session identity for a warm start.
It is never authoritative: the next successful remote fetch overwrites it.
"""

import json
import logging
from pathlib import Path
from typing import Any

import aiosqlite

from walkmate.core.config import settings


logger = logging.getLogger(__name__)


class LocalCache:
    """Async JSON key-value store in a single SQLite table."""

    def __init__(self, path: str | None = None) -> None:
        self.path = Path(path or settings.local_cache_path).resolve()
        self._conn: aiosqlite.Connection | None = None

    async def open(self) -> None:
        """Open the cache file, creating the table on first use."""
        if self._conn is not None:
            return

        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(str(self.path))
        await self._conn.execute("PRAGMA journal_mode = WAL")
        await self._conn.execute("CREATE TABLE IF NOT EXISTS kv (key TEXT PRIMARY KEY, value TEXT NOT NULL)")
        await self._conn.commit()
        logger.info("Opened local cache", extra={"path": str(self.path)})

    async def close(self) -> None:
        """Close the underlying connection."""
        if self._conn is None:
            return
        try:
            await self._conn.close()
        except Exception as e:
            logger.warning("Error closing local cache", extra={"error": str(e)})
        finally:
            self._conn = None

    async def _connection(self) -> aiosqlite.Connection:
        if self._conn is None:
            await self.open()
        assert self._conn is not None
        return self._conn

    async def get(self, key: str, default: Any = None) -> Any:
        """Return the decoded value for key, or default when absent or unreadable."""
        conn = await self._connection()
        cursor = await conn.execute("SELECT value FROM kv WHERE key = ?", (key,))
        row = await cursor.fetchone()
        if row is None:
            return default
        try:
            return json.loads(row[0])
        except json.JSONDecodeError:
            logger.warning("Discarding corrupt cache entry", extra={"key": key})
            return default

    async def set(self, key: str, value: Any) -> None:
        """Store value under key, replacing any previous value."""
        conn = await self._connection()
        await conn.execute(
            "INSERT INTO kv (key, value) VALUES (?, ?) ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            (key, json.dumps(value, default=str)),
        )
        await conn.commit()

    async def delete(self, key: str) -> None:
        """Remove key if present."""
        conn = await self._connection()
        await conn.execute("DELETE FROM kv WHERE key = ?", (key,))
        await conn.commit()

    async def clear(self) -> None:
        """Remove every entry."""
        conn = await self._connection()
        await conn.execute("DELETE FROM kv")
        await conn.commit()
        logger.info("Cleared local cache")
