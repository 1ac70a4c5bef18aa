"""
Key-value stores for ledger state. Keys are strings, values are bytes.

SqliteKVStore persists to one SQLite file (restart-safe); InMemoryKVStore is
for tests and throwaway sessions. Any backend failure surfaces as
StorageUnavailable.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from pathlib import Path
from typing import Mapping, Protocol

from trading_core.errors import StorageUnavailable

logger = logging.getLogger("papertrade.storage")


class KeyValueStore(Protocol):
    """Protocol for ledger storage backends."""

    def get(self, key: str) -> bytes | None:
        """Return the stored value, or None when the key is absent."""
        ...

    def put(self, key: str, value: bytes) -> None:
        ...

    def put_many(self, items: Mapping[str, bytes]) -> None:
        """Write all items or none of them."""
        ...


class InMemoryKVStore:
    """Dict-backed store. Not persistent."""

    def __init__(self) -> None:
        self._data: dict[str, bytes] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> bytes | None:
        with self._lock:
            return self._data.get(key)

    def put(self, key: str, value: bytes) -> None:
        with self._lock:
            self._data[key] = bytes(value)

    def put_many(self, items: Mapping[str, bytes]) -> None:
        with self._lock:
            self._data.update({k: bytes(v) for k, v in items.items()})


class SqliteKVStore:
    """SQLite-backed store. One file per path; put_many runs in one transaction."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._init_schema()
        except (OSError, sqlite3.Error) as exc:
            raise StorageUnavailable(f"Cannot open state store {self._path}: {exc}") from exc

    @property
    def path(self) -> Path:
        return self._path

    def _conn(self) -> sqlite3.Connection:
        return sqlite3.connect(str(self._path), timeout=10.0)

    def _init_schema(self) -> None:
        with self._conn() as c:
            c.execute(
                """
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value BLOB NOT NULL
                )
                """
            )

    def get(self, key: str) -> bytes | None:
        try:
            with self._conn() as c:
                row = c.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as exc:
            logger.error("Read failed for %s: %s", key, exc)
            raise StorageUnavailable(f"Read failed for {key}: {exc}") from exc
        return bytes(row[0]) if row else None

    def put(self, key: str, value: bytes) -> None:
        self.put_many({key: value})

    def put_many(self, items: Mapping[str, bytes]) -> None:
        try:
            with self._conn() as c:
                c.executemany(
                    "INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)",
                    [(k, sqlite3.Binary(v)) for k, v in items.items()],
                )
        except sqlite3.Error as exc:
            logger.error("Write failed for %s: %s", sorted(items), exc)
            raise StorageUnavailable(f"Write failed: {exc}") from exc
