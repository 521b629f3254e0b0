"""Tests for the key-value storage backends."""
import asyncio

import pytest

from bookshelf.core.errors import StorageError
from bookshelf.core.storage import SqliteStorage


def test_sqlite_get_missing(tmp_path):
    storage = SqliteStorage(tmp_path / "kv.db")
    assert asyncio.run(storage.get("books")) is None


def test_sqlite_set_overwrites(tmp_path):
    storage = SqliteStorage(tmp_path / "kv.db")

    async def scenario():
        await storage.set("books", "[1]")
        await storage.set("books", "[1, 2]")
        return await storage.get("books")

    assert asyncio.run(scenario()) == "[1, 2]"
    assert asyncio.run(SqliteStorage(tmp_path / "kv.db").get("books")) == "[1, 2]"


def test_sqlite_default_path(tmp_path, monkeypatch):
    monkeypatch.setenv("BOOKSHELF_DATA_DIR", str(tmp_path / "data"))
    storage = SqliteStorage()
    assert storage.db_path == tmp_path / "data" / "bookshelf.db"
    assert storage.db_path.exists()


def test_sqlite_unavailable(tmp_path):
    """A database that cannot be opened surfaces as StorageError."""
    with pytest.raises(StorageError):
        SqliteStorage(tmp_path / "missing-dir" / "kv.db")


def test_sqlite_write_failure(tmp_path):
    storage = SqliteStorage(tmp_path / "kv.db")
    storage.db_path = tmp_path / "gone" / "kv.db"

    with pytest.raises(StorageError) as excinfo:
        asyncio.run(storage.set("books", "[]"))
    assert excinfo.value.cause is not None
