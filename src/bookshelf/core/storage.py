"""Key-value slots holding the serialized catalog."""

from __future__ import annotations

import asyncio
import os
import sqlite3
import time
from contextlib import closing
from pathlib import Path
from typing import Protocol

import structlog

from .errors import StorageError

log = structlog.get_logger()


class KeyValueStorage(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...


class MemoryStorage:
    """Process-local slots. Nothing survives a restart."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.slots: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self.slots.get(key)

    async def set(self, key: str, value: str) -> None:
        self.slots[key] = value


class SqliteStorage:
    """Store string values by key in a local SQLite database.

    Each call opens its own connection in a worker thread, so the storage
    can be shared by coroutines running on any event loop.
    """

    def __init__(self, db_path: Path | None = None):
        if db_path is None:
            data_dir = Path(os.environ.get("BOOKSHELF_DATA_DIR", ".bookshelf"))
            data_dir.mkdir(parents=True, exist_ok=True)
            db_path = data_dir / "bookshelf.db"

        self.db_path = db_path
        try:
            with closing(self._connect()) as conn, conn:
                conn.execute(
                    """CREATE TABLE IF NOT EXISTS kv (
                        key TEXT PRIMARY KEY,
                        value TEXT NOT NULL,
                        updated_at REAL
                    )"""
                )
        except sqlite3.Error as e:
            raise StorageError(e) from e

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(str(self.db_path))

    def _get(self, key: str) -> str | None:
        with closing(self._connect()) as conn:
            row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None

    def _set(self, key: str, value: str) -> None:
        with closing(self._connect()) as conn, conn:
            conn.execute(
                "INSERT OR REPLACE INTO kv (key, value, updated_at) VALUES (?, ?, ?)",
                (key, value, time.time()),
            )

    async def get(self, key: str) -> str | None:
        try:
            value = await asyncio.to_thread(self._get, key)
        except (sqlite3.Error, OSError) as e:
            log.error("storage_read_failed", key=key, error=str(e))
            raise StorageError(e) from e
        log.debug("storage_read", key=key, found=value is not None)
        return value

    async def set(self, key: str, value: str) -> None:
        try:
            await asyncio.to_thread(self._set, key, value)
        except (sqlite3.Error, OSError) as e:
            log.error("storage_write_failed", key=key, error=str(e))
            raise StorageError(e) from e
        log.debug("storage_write", key=key, size=len(value))
