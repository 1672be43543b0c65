"""
SQLite-backed ordered store.

All regions share one database file. Entries live in a single ``WITHOUT
ROWID`` table clustered on ``(region, key)``; BLOB keys compare with
``memcmp``, so ``ORDER BY key`` follows big-endian position order.

Writes run inside the connection's implicit transaction and become durable
when :meth:`SqliteOrderedStore.flush` commits. A pop reads and deletes its
entry in the same transaction under the store lock, which makes it atomic.
"""

from __future__ import annotations

import logging
import os
import sqlite3
from collections.abc import Iterator
from pathlib import Path
from threading import RLock

from .config import SqliteConfig
from .exceptions import StoreError
from .store_protocol import Entry

_LOGGER = logging.getLogger(__name__)

_SCHEMA = (
    "CREATE TABLE IF NOT EXISTS regions (name TEXT PRIMARY KEY) WITHOUT ROWID",
    "CREATE TABLE IF NOT EXISTS entries ("
    " region TEXT NOT NULL,"
    " key BLOB NOT NULL,"
    " value BLOB NOT NULL,"
    " PRIMARY KEY (region, key)"
    ") WITHOUT ROWID",
)


class SqliteRegion:
    """Ordered region stored as rows of the shared ``entries`` table."""

    def __init__(self, store: "SqliteOrderedStore", name: str) -> None:
        self._store = store
        self.name = name

    def insert(self, key: bytes, value: bytes) -> None:
        self._store._execute(
            "INSERT OR REPLACE INTO entries (region, key, value) VALUES (?, ?, ?)",
            (self.name, bytes(key), bytes(value)),
        )

    def get(self, key: bytes) -> bytes | None:
        row = self._store._fetchone(
            "SELECT value FROM entries WHERE region = ? AND key = ?",
            (self.name, bytes(key)),
        )
        return None if row is None else bytes(row[0])

    def first(self) -> Entry | None:
        return self._extreme("ASC")

    def last(self) -> Entry | None:
        return self._extreme("DESC")

    def pop_min(self) -> Entry | None:
        return self._pop("ASC")

    def pop_max(self) -> Entry | None:
        return self._pop("DESC")

    def clear(self) -> None:
        self._store._execute("DELETE FROM entries WHERE region = ?", (self.name,))

    def items(self) -> Iterator[Entry]:
        rows = self._store._fetchall(
            "SELECT key, value FROM entries WHERE region = ? ORDER BY key ASC",
            (self.name,),
        )
        return iter([(bytes(key), bytes(value)) for key, value in rows])

    def __len__(self) -> int:
        row = self._store._fetchone(
            "SELECT COUNT(*) FROM entries WHERE region = ?", (self.name,)
        )
        return int(row[0]) if row else 0

    def flush(self) -> None:
        self._store.flush()

    def _extreme(self, direction: str) -> Entry | None:
        row = self._store._fetchone(
            f"SELECT key, value FROM entries WHERE region = ? ORDER BY key {direction} LIMIT 1",
            (self.name,),
        )
        if row is None:
            return None
        return bytes(row[0]), bytes(row[1])

    def _pop(self, direction: str) -> Entry | None:
        with self._store._lock:
            entry = self._extreme(direction)
            if entry is None:
                return None
            self._store._execute(
                "DELETE FROM entries WHERE region = ? AND key = ?", (self.name, entry[0])
            )
            return entry


class SqliteOrderedStore:
    """
    Ordered store kept in one SQLite database file.

    Parameters
    ----------
    path:
        Directory holding the database file. Created when missing.
    config:
        File name and pragma settings.
    """

    def __init__(self, path: str | os.PathLike[str], config: SqliteConfig | None = None) -> None:
        self.config = config or SqliteConfig()
        self._lock = RLock()
        directory = Path(path).expanduser().resolve()
        self._db_path = directory / self.config.filename
        try:
            directory.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(
                str(self._db_path),
                timeout=self.config.timeout_seconds,
                check_same_thread=False,
            )
            self._conn.execute(f"PRAGMA journal_mode={self.config.journal_mode}")
            self._conn.execute(f"PRAGMA synchronous={self.config.synchronous}")
            for statement in _SCHEMA:
                self._conn.execute(statement)
            self._conn.commit()
        except (OSError, sqlite3.Error) as exc:
            raise StoreError(f"Failed to open SQLite store at {self._db_path}: {exc}") from exc
        _LOGGER.debug("Opened SQLite store path=%s", self._db_path)

    @property
    def path(self) -> Path:
        """Return the resolved database file path."""
        return self._db_path

    def open_region(self, name: str) -> SqliteRegion:
        """Open or create the region called ``name``."""
        self._execute("INSERT OR IGNORE INTO regions (name) VALUES (?)", (name,))
        self.flush()
        return SqliteRegion(self, name)

    def region_names(self) -> list[str]:
        """Return the names of all regions created in this database."""
        return [str(row[0]) for row in self._fetchall("SELECT name FROM regions ORDER BY name", ())]

    def flush(self) -> None:
        """Commit the pending transaction, rolling it back if the commit fails."""
        with self._lock:
            try:
                self._conn.commit()
            except sqlite3.Error as exc:
                try:
                    self._conn.rollback()
                except sqlite3.Error:
                    _LOGGER.warning("Rollback after failed commit also failed path=%s", self._db_path)
                raise StoreError(f"Failed to flush SQLite store {self._db_path}: {exc}") from exc

    def close(self) -> None:
        """Close the connection, discarding writes that were never flushed."""
        with self._lock:
            try:
                self._conn.close()
            except sqlite3.Error as exc:
                raise StoreError(f"Failed to close SQLite store {self._db_path}: {exc}") from exc

    def _execute(self, sql: str, params: tuple[object, ...]) -> None:
        with self._lock:
            try:
                self._conn.execute(sql, params)
            except sqlite3.Error as exc:
                raise StoreError(f"SQLite write failed on {self._db_path}: {exc}") from exc

    def _fetchone(self, sql: str, params: tuple[object, ...]) -> tuple[object, ...] | None:
        with self._lock:
            try:
                return self._conn.execute(sql, params).fetchone()
            except sqlite3.Error as exc:
                raise StoreError(f"SQLite read failed on {self._db_path}: {exc}") from exc

    def _fetchall(self, sql: str, params: tuple[object, ...]) -> list[tuple[object, ...]]:
        with self._lock:
            try:
                return self._conn.execute(sql, params).fetchall()
            except sqlite3.Error as exc:
                raise StoreError(f"SQLite read failed on {self._db_path}: {exc}") from exc
