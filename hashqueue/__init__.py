"""
hashqueue
=========

Persistent, deduplicating FIFO/LIFO queues for Python applications.

A :class:`hashqueue.queue.HashQueue` is a durable sequence of unique values
kept in one named region of an ordered key-value store, with membership
mirrored in an in-memory set for constant-time duplicate rejection:

* ``push_back`` appends a value unless it is already queued
* ``pop_front``/``pop_back`` remove from either end (FIFO or LIFO use)
* ``front``/``back`` peek without mutation
* every successful mutation is flushed before the call returns

Store switching can be done with one parameter:

    from hashqueue import HashQueue, QueueConfig

    queue = HashQueue.open("./data/jobs", "pending")
    queue = HashQueue.open("./data/jobs", "pending", config=QueueConfig(backend="memory"))
    queue = HashQueue.open(
        "jobs",
        "pending",
        config=QueueConfig(backend="redis"),
        redis_url="redis://127.0.0.1:6379/0",
    )

Typical usage::

    from hashqueue import HashQueue

    with HashQueue.open("./data/crawler", "frontier") as frontier:
        frontier.push_back("https://example.org/")
        frontier.push_back("https://example.org/")  # False, already queued
        url = frontier.pop_front()
"""

from .backends import StoreBackend, available_backends, create_store
from .codec import Codec, JsonCodec, ModelCodec
from .config import QueueConfig, SnapshotConfig, SqliteConfig
from .exceptions import (
    BackendConfigurationError,
    BackendNotAvailableError,
    CodecError,
    HashQueueError,
    SchemaMismatchError,
    StoreError,
    SyncError,
)
from .queue import HashQueue
from .store import MemoryOrderedStore, open_snapshot_store
from .store_protocol import OrderedRegion, OrderedStore

__all__ = [
    "BackendConfigurationError",
    "BackendNotAvailableError",
    "Codec",
    "CodecError",
    "HashQueue",
    "HashQueueError",
    "JsonCodec",
    "MemoryOrderedStore",
    "ModelCodec",
    "OrderedRegion",
    "OrderedStore",
    "QueueConfig",
    "SchemaMismatchError",
    "SnapshotConfig",
    "SqliteConfig",
    "StoreBackend",
    "StoreError",
    "SyncError",
    "available_backends",
    "create_store",
    "open_snapshot_store",
]
