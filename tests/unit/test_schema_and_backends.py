"""
Tests for schema tagging, backend selection and configuration validation.
"""

from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from hashqueue import (
    BackendConfigurationError,
    CodecError,
    HashQueue,
    MemoryOrderedStore,
    ModelCodec,
    QueueConfig,
    SchemaMismatchError,
    SnapshotConfig,
    SqliteConfig,
    StoreBackend,
    available_backends,
    create_store,
)
from hashqueue.codec import JsonCodec
from hashqueue.config import meta_region_name
from hashqueue.keys import encode_key
from hashqueue.queue import SCHEMA_KEY
from hashqueue.sqlite_store import SqliteOrderedStore


class Ticket(BaseModel):
    model_config = ConfigDict(frozen=True)

    ticket_id: int
    title: str


class SchemaTagTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.path = Path(self._tmp.name)

    def test_open_writes_codec_schema_tag(self) -> None:
        store = MemoryOrderedStore()
        HashQueue(store, "jobs")
        meta = store.open_region(meta_region_name("jobs"))
        self.assertEqual(meta.get(SCHEMA_KEY), b"json")

    def test_reopen_with_other_codec_is_rejected(self) -> None:
        """
        A region written by one codec cannot be opened with another.

        The mismatch is reported before any stored value is decoded.
        """
        with HashQueue.open(self.path, "tickets") as queue:
            queue.push_back("plain string")
        with self.assertRaises(SchemaMismatchError) as ctx:
            HashQueue.open(self.path, "tickets", codec=ModelCodec(Ticket))
        self.assertIsInstance(ctx.exception, CodecError)
        self.assertEqual(ctx.exception.stored, "json")
        self.assertEqual(ctx.exception.region, "tickets")

    def test_model_queue_round_trips_across_reopen(self) -> None:
        codec = ModelCodec(Ticket)
        with HashQueue.open(self.path, "tickets", codec=codec) as queue:
            self.assertTrue(queue.push_back(Ticket(ticket_id=1, title="first")))
            self.assertTrue(queue.push_back(Ticket(ticket_id=2, title="second")))
            self.assertFalse(queue.push_back(Ticket(ticket_id=1, title="first")))
        with HashQueue.open(self.path, "tickets", codec=codec) as queue:
            self.assertEqual(len(queue), 2)
            self.assertEqual(queue.pop_front(), Ticket(ticket_id=1, title="first"))

    def test_untagged_region_is_adopted(self) -> None:
        store = MemoryOrderedStore()
        store.open_region("legacy").insert(encode_key(0), JsonCodec().encode("old"))
        queue = HashQueue(store, "legacy")
        self.assertEqual(queue.values(), ["old"])
        self.assertEqual(store.open_region(meta_region_name("legacy")).get(SCHEMA_KEY), b"json")

    def test_undecodable_untagged_region_fails_open(self) -> None:
        store = MemoryOrderedStore()
        store.open_region("legacy").insert(encode_key(0), b"\x00\x01binary")
        with self.assertRaises(CodecError):
            HashQueue(store, "legacy")
        self.assertIsNone(store.open_region(meta_region_name("legacy")).get(SCHEMA_KEY))

    def test_schema_check_can_be_disabled(self) -> None:
        store = MemoryOrderedStore()
        store.open_region(meta_region_name("jobs")).insert(SCHEMA_KEY, b"something-else")
        queue = HashQueue(store, "jobs", check_schema=False)
        self.assertTrue(queue.push_back("ok"))

    def test_clear_keeps_schema_tag(self) -> None:
        store = MemoryOrderedStore()
        queue = HashQueue(store, "jobs")
        queue.push_back("x")
        queue.clear()
        self.assertEqual(store.open_region(meta_region_name("jobs")).get(SCHEMA_KEY), b"json")


class BackendFactoryTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.path = Path(self._tmp.name) / "nested" / "queue"

    def test_default_backend_is_sqlite(self) -> None:
        store = create_store(self.path)
        self.addCleanup(store.close)
        self.assertIsInstance(store, SqliteOrderedStore)
        self.assertEqual(store.path, (self.path / "hashqueue.sqlite3").resolve())

    def test_backend_names_are_normalized(self) -> None:
        store = create_store(self.path, " Memory ")
        self.assertIsInstance(store, MemoryOrderedStore)
        store = create_store(self.path, StoreBackend.MEMORY, persist=False)
        self.assertIsInstance(store, MemoryOrderedStore)

    def test_snapshot_file_name_comes_from_config(self) -> None:
        config = QueueConfig(backend="memory", snapshot=SnapshotConfig(filename="q.json", fsync=False))
        with HashQueue.open(self.path, "jobs", config=config) as queue:
            queue.push_back("a")
        self.assertTrue((self.path / "q.json").exists())

    def test_unknown_backend_is_rejected(self) -> None:
        with self.assertRaises(BackendConfigurationError):
            create_store(self.path, "leveldb")

    def test_unknown_options_are_rejected(self) -> None:
        with self.assertRaises(BackendConfigurationError):
            create_store(self.path, "sqlite", redis_url="redis://localhost")
        with self.assertRaises(BackendConfigurationError):
            create_store(self.path, "memory", fsync=False)

    def test_available_backends_lists_local_stores(self) -> None:
        backends = available_backends()
        self.assertIn("sqlite", backends)
        self.assertIn("memory", backends)


class ConfigValidationTests(unittest.TestCase):
    def test_sqlite_pragmas_are_validated(self) -> None:
        self.assertEqual(SqliteConfig(journal_mode="wal").journal_mode, "WAL")
        with self.assertRaises(ValueError):
            SqliteConfig(journal_mode="sideways")
        with self.assertRaises(ValueError):
            SqliteConfig(synchronous="sometimes")
        with self.assertRaises(ValueError):
            SqliteConfig(timeout_seconds=0)

    def test_blank_values_are_rejected(self) -> None:
        with self.assertRaises(ValueError):
            SqliteConfig(filename="")
        with self.assertRaises(ValueError):
            SnapshotConfig(filename="")
        with self.assertRaises(ValueError):
            QueueConfig(backend=" ")


if __name__ == "__main__":
    unittest.main()
