"""
Ordered store protocol used by :class:`hashqueue.queue.HashQueue`.

The queue depends on this method surface rather than a specific storage
engine, so SQLite, in-process snapshot and Redis backends are interchangeable
without changing queue semantics.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Protocol

Entry = tuple[bytes, bytes]


class OrderedRegion(Protocol):
    """
    One named, ordered ``bytes -> bytes`` mapping inside a store.

    Keys are compared byte-wise. Implementations raise
    :class:`hashqueue.exceptions.StoreError` for any engine failure.
    """

    name: str

    def insert(self, key: bytes, value: bytes) -> None:
        """Insert or replace one entry."""

    def get(self, key: bytes) -> bytes | None:
        """Return the value stored under ``key``, or ``None``."""

    def first(self) -> Entry | None:
        """Return the minimum-key entry without removing it."""

    def last(self) -> Entry | None:
        """Return the maximum-key entry without removing it."""

    def pop_min(self) -> Entry | None:
        """Atomically read and remove the minimum-key entry."""

    def pop_max(self) -> Entry | None:
        """Atomically read and remove the maximum-key entry."""

    def clear(self) -> None:
        """Remove every entry in the region."""

    def items(self) -> Iterator[Entry]:
        """Iterate entries in ascending key order."""

    def __len__(self) -> int:
        """Return the entry count."""

    def flush(self) -> None:
        """Force pending writes of the owning store to the durable medium."""


class OrderedStore(Protocol):
    """Behavioral contract for ordered durable store backends."""

    def open_region(self, name: str) -> OrderedRegion:
        """Open or create the region called ``name``."""

    def flush(self) -> None:
        """Force all pending writes to the durable medium."""

    def close(self) -> None:
        """Release the store handle."""
