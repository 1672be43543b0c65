"""
Snapshot persistence for the in-process ordered store.

Persistence is intentionally simple and robust:

* snapshots are serialized as JSON objects with hex-encoded keys and values
* writes are atomic via ``os.replace`` of a temporary file
* optional ``fsync`` is available for stronger durability semantics
"""

from __future__ import annotations

import json
import os
from pathlib import Path

SNAPSHOT_FORMAT = 1

RegionSnapshot = dict[str, dict[bytes, bytes]]


class SnapshotPersistence:
    """
    Manage full-state snapshot reads and atomic writes.

    Parameters
    ----------
    snapshot_path:
        Destination file path for persisted snapshots.
    fsync:
        If true, force the data and directory entries to disk.
    """

    def __init__(self, snapshot_path: str | os.PathLike[str], *, fsync: bool = True) -> None:
        self._path = Path(snapshot_path).expanduser().resolve()
        self._fsync = bool(fsync)

    @property
    def path(self) -> Path:
        """Return fully resolved snapshot path."""
        return self._path

    def load(self) -> RegionSnapshot | None:
        """
        Load persisted regions from disk.

        Returns
        -------
        dict[str, dict[bytes, bytes]] | None
            Region contents keyed by region name, or ``None`` when the file
            is absent.
        """
        if not self._path.exists():
            return None
        with self._path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
        if not isinstance(data, dict) or data.get("format") != SNAPSHOT_FORMAT:
            raise ValueError(f"Snapshot file {self._path} has an unsupported layout.")
        regions: RegionSnapshot = {}
        for name, entries in dict(data.get("regions", {})).items():
            regions[str(name)] = {
                bytes.fromhex(key): bytes.fromhex(value) for key, value in entries
            }
        return regions

    def save(self, regions: RegionSnapshot) -> None:
        """
        Persist all regions atomically to disk.

        The method writes to ``<snapshot>.tmp`` and then renames to guarantee
        readers only observe either the old file or the complete new file.
        """
        payload = {
            "format": SNAPSHOT_FORMAT,
            "regions": {
                name: [[key.hex(), value.hex()] for key, value in sorted(entries.items())]
                for name, entries in regions.items()
            },
        }
        parent = self._path.parent
        parent.mkdir(parents=True, exist_ok=True)
        temp_path = self._path.with_suffix(f"{self._path.suffix}.tmp")

        with temp_path.open("w", encoding="utf-8") as handle:
            json.dump(payload, handle, separators=(",", ":"), sort_keys=True)
            handle.flush()
            if self._fsync:
                os.fsync(handle.fileno())
        os.replace(temp_path, self._path)

        if self._fsync:
            dir_fd = os.open(str(parent), os.O_RDONLY)
            try:
                os.fsync(dir_fd)
            finally:
                os.close(dir_fd)
