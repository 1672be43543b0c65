"""
Persistent, deduplicating FIFO/LIFO queue.

:class:`HashQueue` layers queue semantics over one region of an ordered
durable store and mirrors membership in an in-memory set:

* every entry is stored as ``(position_key, encoded_value)`` where the key is
  a big-endian 64-bit position, so store order is queue order
* ``push_back`` appends under ``last position + 1`` and rejects values that
  are already members without touching the store
* ``pop_front``/``pop_back`` use the store's atomic pop-min/pop-max and then
  remove the value from the set; a value missing from the set means the two
  have diverged and :class:`hashqueue.exceptions.SyncError` is raised
* every successful mutation flushes the store before returning

The set is rebuilt from the region on :meth:`HashQueue.open`, so it is in sync
with the durable state before any operation can run.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Hashable, Iterator
from contextlib import contextmanager
from typing import Any, Generic, TypeVar

from .backends import create_store
from .codec import Codec, JsonCodec
from .config import QueueConfig, meta_region_name, validate_region_name
from .exceptions import HashQueueError, SchemaMismatchError, StoreError, SyncError
from .keys import encode_key, next_position
from .store_protocol import Entry, OrderedRegion, OrderedStore

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T", bound=Hashable)

SCHEMA_KEY = b"schema"


class HashQueue(Generic[T]):
    """
    Durable queue of unique values.

    Parameters
    ----------
    store:
        Open ordered store that holds the queue region.
    name:
        Region name of this queue inside ``store``.
    codec:
        Value codec. Defaults to :class:`hashqueue.codec.JsonCodec`.
    check_schema:
        If true, reject regions written with a different codec schema.

    Notes
    -----
    A queue assumes exclusive ownership of its region. Two handles on the same
    region, in one process or across processes, are not supported.

    Once a mutation fails with :class:`StoreError` or :class:`SyncError` the
    region and the membership set can no longer be trusted to agree. The
    instance then refuses every further operation except :meth:`close` with
    :class:`SyncError`; re-open the queue to continue.
    """

    def __init__(
        self,
        store: OrderedStore,
        name: str,
        *,
        codec: Codec[T] | None = None,
        check_schema: bool = True,
    ) -> None:
        self._store = store
        self._name = validate_region_name(name)
        self._codec: Codec[T] = codec if codec is not None else JsonCodec()
        self._invalidated_by: str | None = None
        self._region: OrderedRegion = store.open_region(self._name)
        self._meta: OrderedRegion = store.open_region(meta_region_name(self._name))
        if check_schema:
            self._check_schema()
        self._members: set[T] = self._load_members()
        if check_schema and self._meta.get(SCHEMA_KEY) is None:
            self._adopt_schema()
        _LOGGER.debug("Opened queue name=%s members=%d", self._name, len(self._members))

    @classmethod
    def open(
        cls,
        path: str | os.PathLike[str],
        name: str,
        *,
        codec: Codec[T] | None = None,
        config: QueueConfig | None = None,
        **backend_options: Any,
    ) -> "HashQueue[T]":
        """
        Open or create the queue ``name`` stored under ``path``.

        Parameters
        ----------
        path:
            Queue directory (created when missing). For the Redis backend it
            is used as the key namespace.
        name:
            Region name of the queue.
        codec:
            Value codec. Defaults to :class:`hashqueue.codec.JsonCodec`.
        config:
            Backend and schema-check settings.
        backend_options:
            Passed through to :func:`hashqueue.backends.create_store`.

        Raises
        ------
        StoreError
            If the store cannot be opened or read.
        CodecError
            If a stored value cannot be decoded, including
            :class:`SchemaMismatchError` for a region written by another codec.
        SyncError
            If the region stores the same value under two position keys.
        """
        config = config or QueueConfig()
        store = create_store(path, config=config, **backend_options)
        try:
            return cls(store, name, codec=codec, check_schema=config.check_schema)
        except Exception:
            store.close()
            raise

    @property
    def name(self) -> str:
        """Return the region name of the queue."""
        return self._name

    def is_empty(self) -> bool:
        """Return ``True`` when the queue holds no values."""
        self._ensure_valid()
        return not self._members

    def front(self) -> T | None:
        """Return the head of the queue without removing it, or ``None``."""
        self._ensure_valid()
        return self._decode_entry(self._region.first())

    def back(self) -> T | None:
        """Return the tail of the queue without removing it, or ``None``."""
        self._ensure_valid()
        return self._decode_entry(self._region.last())

    def push_back(self, value: T) -> bool:
        """
        Append ``value`` at the tail of the queue.

        The new position is one past the largest key currently in the region,
        or ``0`` when it is empty. Keys are derived from the region at call
        time, so after :meth:`pop_back` removed the tail its key is handed out
        again; it is still greater than every key present, so order holds.

        Returns
        -------
        bool
            ``True`` when the value was appended, ``False`` when it is already
            queued. A duplicate push does not touch the store.
        """
        self._ensure_valid()
        if value is None:
            raise ValueError("None cannot be queued; it marks an empty queue.")
        if value in self._members:
            _LOGGER.debug("Rejected duplicate push name=%s", self._name)
            return False
        last = self._region.last()
        position = next_position(last[0] if last is not None else None)
        key = encode_key(position)
        payload = self._codec.encode(value)
        with self._mutation("push_back", StoreError):
            self._members.add(value)
            self._region.insert(key, payload)
            self._region.flush()
        _LOGGER.debug("Pushed name=%s position=%d", self._name, position)
        return True

    def pop_front(self) -> T | None:
        """Remove and return the head of the queue, or ``None`` when empty."""
        return self._pop("pop_front", self._region.pop_min)

    def pop_back(self) -> T | None:
        """Remove and return the tail of the queue, or ``None`` when empty."""
        return self._pop("pop_back", self._region.pop_max)

    def clear(self) -> None:
        """
        Remove every value from the queue and its durable region.

        If the store fails to clear or flush, the instance is invalidated
        instead of exposing a cleared region next to a populated set.
        """
        self._ensure_valid()
        with self._mutation("clear", StoreError):
            self._region.clear()
            self._region.flush()
            self._members.clear()
        _LOGGER.debug("Cleared queue name=%s", self._name)

    def values(self) -> list[T]:
        """Return queue values from head to tail."""
        self._ensure_valid()
        return [self._codec.decode(payload) for _, payload in self._region.items()]

    def close(self) -> None:
        """Release the underlying store handle."""
        self._store.close()

    def __contains__(self, value: object) -> bool:
        self._ensure_valid()
        return value in self._members

    def __len__(self) -> int:
        self._ensure_valid()
        return len(self._members)

    def __enter__(self) -> "HashQueue[T]":
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> bool:
        self.close()
        return False

    def _ensure_valid(self) -> None:
        if self._invalidated_by is not None:
            raise SyncError(self._invalidated_by)

    @contextmanager
    def _mutation(self, operation: str, *failures: type[Exception]) -> Iterator[None]:
        try:
            yield
        except failures:
            self._invalidated_by = operation
            _LOGGER.error(
                "Queue invalidated after failed mutation name=%s operation=%s",
                self._name,
                operation,
            )
            raise

    def _pop(self, operation: str, pop_entry: Callable[[], Entry | None]) -> T | None:
        self._ensure_valid()
        # The entry is gone from the region once popped; any failure after that
        # leaves the set holding a value the store no longer has.
        with self._mutation(operation, HashQueueError):
            entry = pop_entry()
            if entry is None:
                return None
            key, payload = entry
            value = self._codec.decode(payload)
            try:
                self._members.remove(value)
            except KeyError:
                _LOGGER.error(
                    "Popped value missing from membership set name=%s operation=%s key=%s",
                    self._name,
                    operation,
                    key.hex(),
                )
                raise SyncError(operation) from None
            self._region.flush()
        _LOGGER.debug("Popped name=%s operation=%s key=%s", self._name, operation, key.hex())
        return value

    def _decode_entry(self, entry: Entry | None) -> T | None:
        if entry is None:
            return None
        return self._codec.decode(entry[1])

    def _check_schema(self) -> None:
        stored = self._meta.get(SCHEMA_KEY)
        if stored is None:
            return
        stored_id = stored.decode("utf-8", errors="replace")
        if stored_id != self._codec.schema_id:
            raise SchemaMismatchError(self._name, stored_id, self._codec.schema_id)

    def _adopt_schema(self) -> None:
        if self._members:
            _LOGGER.warning(
                "Adopting untagged queue region name=%s schema=%s",
                self._name,
                self._codec.schema_id,
            )
        self._meta.insert(SCHEMA_KEY, self._codec.schema_id.encode("utf-8"))
        self._meta.flush()

    def _load_members(self) -> set[T]:
        members: set[T] = set()
        for _, payload in self._region.items():
            value = self._codec.decode(payload)
            if value in members:
                _LOGGER.error("Value stored under two position keys name=%s", self._name)
                raise SyncError("open")
            members.add(value)
        return members
