"""
Thread-safe in-process ordered store.

Regions are kept as sorted key lists plus value dictionaries. When a snapshot
path is configured the store is durable: every ``flush`` rewrites the snapshot
atomically and construction reloads it. Queues opened by path share one
store per snapshot file through :func:`open_snapshot_store`. Without a path
the store is purely in-memory, which suits tests and throwaway queues.
"""

from __future__ import annotations

import bisect
import os
from collections.abc import Iterator
from pathlib import Path
from threading import RLock

from .exceptions import StoreError
from .persistence import SnapshotPersistence
from .store_protocol import Entry

_REGISTRY: dict[Path, "MemoryOrderedStore"] = {}
_REGISTRY_LOCK = RLock()


class MemoryRegion:
    """Ordered region view backed by :class:`MemoryOrderedStore` state."""

    def __init__(self, store: "MemoryOrderedStore", name: str) -> None:
        self._store = store
        self.name = name

    def insert(self, key: bytes, value: bytes) -> None:
        key = bytes(key)
        with self._store._lock:
            keys, entries = self._store._region_state(self.name)
            if key not in entries:
                bisect.insort(keys, key)
            entries[key] = bytes(value)

    def get(self, key: bytes) -> bytes | None:
        with self._store._lock:
            _, entries = self._store._region_state(self.name)
            return entries.get(bytes(key))

    def first(self) -> Entry | None:
        with self._store._lock:
            keys, entries = self._store._region_state(self.name)
            if not keys:
                return None
            return keys[0], entries[keys[0]]

    def last(self) -> Entry | None:
        with self._store._lock:
            keys, entries = self._store._region_state(self.name)
            if not keys:
                return None
            return keys[-1], entries[keys[-1]]

    def pop_min(self) -> Entry | None:
        with self._store._lock:
            keys, entries = self._store._region_state(self.name)
            if not keys:
                return None
            key = keys.pop(0)
            return key, entries.pop(key)

    def pop_max(self) -> Entry | None:
        with self._store._lock:
            keys, entries = self._store._region_state(self.name)
            if not keys:
                return None
            key = keys.pop()
            return key, entries.pop(key)

    def clear(self) -> None:
        with self._store._lock:
            keys, entries = self._store._region_state(self.name)
            keys.clear()
            entries.clear()

    def items(self) -> Iterator[Entry]:
        with self._store._lock:
            keys, entries = self._store._region_state(self.name)
            snapshot = [(key, entries[key]) for key in keys]
        return iter(snapshot)

    def __len__(self) -> int:
        with self._store._lock:
            return len(self._store._region_state(self.name)[0])

    def flush(self) -> None:
        self._store.flush()


class MemoryOrderedStore:
    """
    In-process ordered store with optional snapshot durability.

    Parameters
    ----------
    snapshot_path:
        File the store is persisted to on :meth:`flush`. ``None`` disables
        persistence.
    fsync:
        If true, snapshot writes are fsynced before ``flush`` returns.
    """

    def __init__(self, snapshot_path: str | os.PathLike[str] | None = None, *, fsync: bool = True) -> None:
        self._lock = RLock()
        self._handles = 0
        self._keys: dict[str, list[bytes]] = {}
        self._entries: dict[str, dict[bytes, bytes]] = {}
        self._persistence = (
            SnapshotPersistence(snapshot_path, fsync=fsync) if snapshot_path is not None else None
        )
        if self._persistence is not None:
            try:
                loaded = self._persistence.load()
            except (OSError, ValueError) as exc:
                raise StoreError(f"Failed to load snapshot {self._persistence.path}: {exc}") from exc
            for name, entries in (loaded or {}).items():
                self._entries[name] = dict(entries)
                self._keys[name] = sorted(entries)

    def _region_state(self, name: str) -> tuple[list[bytes], dict[bytes, bytes]]:
        return self._keys.setdefault(name, []), self._entries.setdefault(name, {})

    def open_region(self, name: str) -> MemoryRegion:
        """Open or create the region called ``name``."""
        with self._lock:
            self._region_state(name)
        return MemoryRegion(self, name)

    def flush(self) -> None:
        """Write the snapshot file when persistence is enabled."""
        if self._persistence is None:
            return
        with self._lock:
            regions = {name: dict(entries) for name, entries in self._entries.items()}
            try:
                self._persistence.save(regions)
            except OSError as exc:
                raise StoreError(f"Failed to flush snapshot {self._persistence.path}: {exc}") from exc

    def close(self) -> None:
        """
        Release one handle obtained from :func:`open_snapshot_store`.

        The shared store leaves the registry when its last handle closes, so
        the next open reloads the snapshot file. Stores built directly are
        not registered and closing them does nothing.
        """
        with _REGISTRY_LOCK:
            if self._handles == 0:
                return
            self._handles -= 1
            if self._handles == 0 and self._persistence is not None:
                if _REGISTRY.get(self._persistence.path) is self:
                    del _REGISTRY[self._persistence.path]


def open_snapshot_store(snapshot_path: str | os.PathLike[str], *, fsync: bool = True) -> MemoryOrderedStore:
    """
    Return the process-wide store for ``snapshot_path``.

    Every flush rewrites the whole snapshot file, so all queues persisted to
    one file must share a single store; separate stores would overwrite each
    other's regions. Each call takes a handle that :meth:`close` releases.
    """
    resolved = Path(snapshot_path).expanduser().resolve()
    with _REGISTRY_LOCK:
        store = _REGISTRY.get(resolved)
        if store is None:
            store = MemoryOrderedStore(resolved, fsync=fsync)
            _REGISTRY[resolved] = store
        store._handles += 1
        return store
