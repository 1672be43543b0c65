"""
Backend factory helpers for easy store switching.

This module gives application developers a uniform way to pick an ordered
store backend by name without rewriting queue bootstrap logic.
"""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import Any

from .config import QueueConfig
from .exceptions import BackendConfigurationError, BackendNotAvailableError
from .store import MemoryOrderedStore, open_snapshot_store
from .store_protocol import OrderedStore


class StoreBackend(str, Enum):
    """
    Built-in backend names supported by the factory helpers.

    SQLITE
        Durable SQLite database file inside the queue directory (default).
    MEMORY
        In-process store persisted as an atomic JSON snapshot on each flush.
    REDIS
        Redis server; requires the ``redis`` client library.
    """

    SQLITE = "sqlite"
    MEMORY = "memory"
    REDIS = "redis"


def _normalize_backend(backend: str | StoreBackend) -> StoreBackend:
    """
    Normalize backend name into :class:`StoreBackend` enum value.
    """
    if isinstance(backend, StoreBackend):
        return backend
    lowered = str(backend).strip().lower()
    try:
        return StoreBackend(lowered)
    except ValueError as exc:
        valid = ", ".join(item.value for item in StoreBackend)
        raise BackendConfigurationError(
            f"Unknown backend {backend!r}. Supported values: {valid}."
        ) from exc


def available_backends() -> tuple[str, ...]:
    """
    Return backend names available in the current environment.

    The Redis backend appears only when the ``redis`` client is importable.
    """
    backends = [StoreBackend.SQLITE.value, StoreBackend.MEMORY.value]
    try:
        __import__("redis")
    except ImportError:
        pass
    else:
        backends.append(StoreBackend.REDIS.value)
    return tuple(backends)


def _reject_options(selected: StoreBackend, options: dict[str, Any]) -> None:
    if options:
        unknown = ", ".join(sorted(str(key) for key in options))
        raise BackendConfigurationError(
            f"{selected.value.capitalize()} backend does not accept options: {unknown}."
        )


def create_store(
    path: str | os.PathLike[str],
    backend: str | StoreBackend | None = None,
    *,
    config: QueueConfig | None = None,
    **backend_options: Any,
) -> OrderedStore:
    """
    Create an ordered store from a short backend name.

    Parameters
    ----------
    path:
        Queue directory for file backends; key namespace for Redis.
    backend:
        Backend selector string. Defaults to ``config.backend``.
    config:
        Queue configuration carrying per-backend settings.
    backend_options:
        Backend-specific options.

        Memory options:
            ``persist`` (bool, default true). When false the store is not
            written to disk at all. Persisted stores are shared per snapshot
            file, so queues in one directory see each other's regions.
        Redis options:
            ``redis_url`` (str), ``namespace`` (str), ``redis_client``
            and optional ``redis_config`` object.
    """
    config = config or QueueConfig()
    selected = _normalize_backend(backend if backend is not None else config.backend)
    if selected is StoreBackend.SQLITE:
        from .sqlite_store import SqliteOrderedStore

        _reject_options(selected, backend_options)
        return SqliteOrderedStore(path, config.sqlite)
    if selected is StoreBackend.MEMORY:
        persist = bool(backend_options.pop("persist", True))
        _reject_options(selected, backend_options)
        if not persist:
            return MemoryOrderedStore()
        snapshot_path = Path(path).expanduser() / config.snapshot.filename
        return open_snapshot_store(snapshot_path, fsync=config.snapshot.fsync)
    if selected is StoreBackend.REDIS:
        try:
            from .redis_store import RedisOrderedStore, RedisStoreConfig
        except ImportError as exc:
            raise BackendNotAvailableError(
                "Redis backend requires the 'redis' client package."
            ) from exc

        redis_config = backend_options.pop("redis_config", None)
        redis_client = backend_options.pop("redis_client", None)
        if redis_config is None:
            redis_url = str(backend_options.pop("redis_url", "redis://127.0.0.1:6379/0"))
            namespace = str(backend_options.pop("namespace", os.fspath(path)))
            redis_config = RedisStoreConfig(redis_url=redis_url, namespace=namespace)
        _reject_options(selected, backend_options)
        return RedisOrderedStore(config=redis_config, redis_client=redis_client)
    raise BackendConfigurationError(f"Unhandled backend: {selected!r}")
