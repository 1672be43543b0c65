"""
Tests for the ordered store backends.

SQLite and memory stores always run. Redis tests run only when
``HASHQUEUE_TEST_REDIS_URL`` points at a disposable Redis database.
"""

from __future__ import annotations

import os
import sqlite3
import tempfile
import unittest
import uuid
from pathlib import Path
from unittest import mock

from hashqueue.exceptions import StoreError
from hashqueue.keys import encode_key
from hashqueue.sqlite_store import SqliteOrderedStore
from hashqueue.store import MemoryOrderedStore, open_snapshot_store

REDIS_URL = os.environ.get("HASHQUEUE_TEST_REDIS_URL")


class RegionContractMixin:
    """Ordered region behavior shared by all store backends."""

    def make_store(self):
        raise NotImplementedError

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.path = Path(self._tmp.name)
        self.store = self.make_store()
        self.addCleanup(self.store.close)
        self.region = self.store.open_region("region")

    def fill(self, *positions: int) -> None:
        for position in positions:
            self.region.insert(encode_key(position), f"v{position}".encode())

    def test_empty_region(self) -> None:
        self.assertIsNone(self.region.first())
        self.assertIsNone(self.region.last())
        self.assertIsNone(self.region.pop_min())
        self.assertIsNone(self.region.pop_max())
        self.assertEqual(len(self.region), 0)
        self.assertEqual(list(self.region.items()), [])

    def test_first_and_last_follow_key_order(self) -> None:
        self.fill(300, 2, 256, 0)
        self.assertEqual(self.region.first(), (encode_key(0), b"v0"))
        self.assertEqual(self.region.last(), (encode_key(300), b"v300"))
        self.assertEqual(len(self.region), 4)

    def test_pops_remove_extremes(self) -> None:
        self.fill(1, 2, 3)
        self.assertEqual(self.region.pop_min(), (encode_key(1), b"v1"))
        self.assertEqual(self.region.pop_max(), (encode_key(3), b"v3"))
        self.assertEqual(list(self.region.items()), [(encode_key(2), b"v2")])

    def test_insert_replaces_existing_key(self) -> None:
        self.region.insert(encode_key(0), b"old")
        self.region.insert(encode_key(0), b"new")
        self.assertEqual(self.region.get(encode_key(0)), b"new")
        self.assertEqual(len(self.region), 1)
        self.assertIsNone(self.region.get(encode_key(1)))

    def test_clear_only_touches_own_region(self) -> None:
        other = self.store.open_region("other")
        other.insert(encode_key(0), b"keep")
        self.fill(0, 1)
        self.region.clear()
        self.region.flush()
        self.assertEqual(len(self.region), 0)
        self.assertEqual(other.get(encode_key(0)), b"keep")


class SqliteStoreTests(RegionContractMixin, unittest.TestCase):
    def make_store(self):
        return SqliteOrderedStore(self.path / "db")

    def test_flushed_writes_survive_reopen(self) -> None:
        self.fill(0, 1)
        self.region.flush()
        self.store.close()
        store = SqliteOrderedStore(self.path / "db")
        self.addCleanup(store.close)
        region = store.open_region("region")
        self.assertEqual([key for key, _ in region.items()], [encode_key(0), encode_key(1)])
        self.assertEqual(store.region_names(), ["region"])

    def test_unflushed_writes_are_discarded_on_close(self) -> None:
        """Only committed transactions are durable."""
        self.fill(0)
        self.store.close()
        store = SqliteOrderedStore(self.path / "db")
        self.addCleanup(store.close)
        self.assertEqual(len(store.open_region("region")), 0)

    def test_failed_commit_rolls_back_pending_writes(self) -> None:
        self.fill(0, 1)
        connection = self.store._conn
        self.store._conn = mock.Mock(wraps=connection)
        self.store._conn.commit.side_effect = sqlite3.OperationalError("disk I/O error")
        with self.assertRaises(StoreError):
            self.store.flush()
        self.store._conn.rollback.assert_called_once_with()
        self.store._conn = connection
        self.assertEqual(len(self.region), 0)

    def test_closed_store_raises_store_error(self) -> None:
        self.store.close()
        with self.assertRaises(StoreError):
            self.region.first()


class MemoryStoreTests(RegionContractMixin, unittest.TestCase):
    def make_store(self):
        return MemoryOrderedStore(self.path / "snapshot.json", fsync=False)

    def test_snapshot_restores_regions(self) -> None:
        self.fill(5, 7)
        self.store.flush()
        restored = MemoryOrderedStore(self.path / "snapshot.json")
        region = restored.open_region("region")
        self.assertEqual(region.first(), (encode_key(5), b"v5"))
        self.assertEqual(region.last(), (encode_key(7), b"v7"))

    def test_unflushed_writes_are_not_persisted(self) -> None:
        self.fill(1)
        restored = MemoryOrderedStore(self.path / "snapshot.json")
        self.assertEqual(len(restored.open_region("region")), 0)

    def test_corrupt_snapshot_raises_store_error(self) -> None:
        (self.path / "broken.json").write_text("[1, 2", encoding="utf-8")
        with self.assertRaises(StoreError):
            MemoryOrderedStore(self.path / "broken.json")

    def test_unknown_snapshot_layout_raises_store_error(self) -> None:
        (self.path / "old.json").write_text('{"format": 99}', encoding="utf-8")
        with self.assertRaises(StoreError):
            MemoryOrderedStore(self.path / "old.json")

    def test_snapshot_path_shares_one_store_until_last_close(self) -> None:
        snapshot = self.path / "shared.json"
        first = open_snapshot_store(snapshot, fsync=False)
        second = open_snapshot_store(self.path / "." / "shared.json", fsync=False)
        self.assertIs(first, second)
        first.close()
        self.assertIs(open_snapshot_store(snapshot), second)
        second.close()
        second.close()
        third = open_snapshot_store(snapshot, fsync=False)
        self.addCleanup(third.close)
        self.assertIsNot(third, first)


@unittest.skipUnless(REDIS_URL, "HASHQUEUE_TEST_REDIS_URL is not set")
class RedisStoreTests(RegionContractMixin, unittest.TestCase):
    def make_store(self):
        from hashqueue.redis_store import RedisOrderedStore, RedisStoreConfig

        namespace = f"hashqueue-test-{uuid.uuid4().hex}"
        store = RedisOrderedStore(config=RedisStoreConfig(redis_url=REDIS_URL, namespace=namespace))
        self.addCleanup(self._drop_namespace, store, namespace)
        return store

    def _drop_namespace(self, store, namespace: str) -> None:
        from redis import Redis

        client = Redis.from_url(REDIS_URL)
        keys = list(client.scan_iter(match=f"{namespace}:*"))
        if keys:
            client.delete(*keys)
        client.close()


if __name__ == "__main__":
    unittest.main()
