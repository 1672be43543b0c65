"""
Configuration models for hash queues and their durable stores.

This module centralizes the tunable settings used when opening a queue:

* which ordered store backend holds the queue region
* SQLite file name, journal mode and synchronous level
* snapshot file name and fsync behavior for the in-process store
* whether the codec schema tag is checked at open time
"""

from __future__ import annotations

from dataclasses import dataclass, field

META_REGION_PREFIX = "__hashqueue_meta__:"
"""Reserved prefix for the companion region holding a queue's schema tag."""

_JOURNAL_MODES = frozenset({"DELETE", "TRUNCATE", "PERSIST", "MEMORY", "WAL", "OFF"})
_SYNCHRONOUS_LEVELS = frozenset({"OFF", "NORMAL", "FULL", "EXTRA"})


def validate_region_name(name: str) -> str:
    """
    Validate a queue region name.

    Names must be non-empty and must not collide with the reserved metadata
    prefix, otherwise a queue could read another queue's schema tag.
    """
    if not isinstance(name, str) or not name:
        raise ValueError("Queue name must be a non-empty string.")
    if name.startswith(META_REGION_PREFIX):
        raise ValueError(f"Queue name cannot start with reserved prefix {META_REGION_PREFIX!r}.")
    return name


def meta_region_name(name: str) -> str:
    """Return the companion metadata region name for queue ``name``."""
    return f"{META_REGION_PREFIX}{name}"


@dataclass(slots=True)
class SqliteConfig:
    """
    Settings for the SQLite-backed ordered store.

    Parameters
    ----------
    filename:
        Database file name created inside the queue directory.
    journal_mode:
        SQLite ``journal_mode`` pragma. ``WAL`` keeps readers off the writer's
        path and makes commits a single append.
    synchronous:
        SQLite ``synchronous`` pragma. ``FULL`` makes every commit durable
        before the flush returns.
    timeout_seconds:
        How long a connection waits on a locked database file.
    """

    filename: str = "hashqueue.sqlite3"
    journal_mode: str = "WAL"
    synchronous: str = "FULL"
    timeout_seconds: float = 5.0

    def __post_init__(self) -> None:
        """Validate pragma values before they are interpolated into SQL."""
        if not self.filename:
            raise ValueError("SqliteConfig.filename must be non-empty.")
        self.journal_mode = self.journal_mode.upper()
        self.synchronous = self.synchronous.upper()
        if self.journal_mode not in _JOURNAL_MODES:
            raise ValueError(f"Unsupported SQLite journal_mode: {self.journal_mode!r}.")
        if self.synchronous not in _SYNCHRONOUS_LEVELS:
            raise ValueError(f"Unsupported SQLite synchronous level: {self.synchronous!r}.")
        if self.timeout_seconds <= 0:
            raise ValueError("SqliteConfig.timeout_seconds must be > 0.")


@dataclass(slots=True)
class SnapshotConfig:
    """
    Snapshot settings for the in-process ordered store.

    Each flush rewrites the snapshot file atomically; the file is reloaded
    when the store is constructed again.
    """

    filename: str = "snapshot.json"
    fsync: bool = True

    def __post_init__(self) -> None:
        if not self.filename:
            raise ValueError("SnapshotConfig.filename must be non-empty.")


@dataclass(slots=True)
class QueueConfig:
    """
    Top-level settings used by :meth:`hashqueue.queue.HashQueue.open`.

    Parameters
    ----------
    backend:
        Store backend name (``"sqlite"``, ``"memory"`` or ``"redis"``).
    sqlite:
        Settings applied when ``backend`` is ``"sqlite"``.
    snapshot:
        Settings applied when ``backend`` is ``"memory"``.
    check_schema:
        If true, ``open`` rejects regions whose stored schema tag differs from
        the codec's ``schema_id``.
    """

    backend: str = "sqlite"
    sqlite: SqliteConfig = field(default_factory=SqliteConfig)
    snapshot: SnapshotConfig = field(default_factory=SnapshotConfig)
    check_schema: bool = True

    def __post_init__(self) -> None:
        if not str(self.backend).strip():
            raise ValueError("QueueConfig.backend must be non-empty.")
