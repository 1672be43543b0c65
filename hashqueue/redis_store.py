"""
Redis-backed ordered store.

Each region is a sorted set of 8-byte keys plus a hash of key -> value. All
sorted-set members share score ``0``, so Redis orders them lexicographically
by their bytes, which for big-endian position keys is numeric order. Pops
and peeks run as Lua scripts so the index and the values change together.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from threading import RLock
from typing import Any

from redis import Redis, RedisError

from .exceptions import StoreError
from .store_protocol import Entry

_PEEK_LUA = """
local range
if ARGV[1] == 'max' then
  range = redis.call('ZRANGE', KEYS[1], -1, -1)
else
  range = redis.call('ZRANGE', KEYS[1], 0, 0)
end
if #range == 0 then
  return false
end
return {range[1], redis.call('HGET', KEYS[2], range[1])}
"""

_POP_LUA = """
local popped
if ARGV[1] == 'max' then
  popped = redis.call('ZPOPMAX', KEYS[1])
else
  popped = redis.call('ZPOPMIN', KEYS[1])
end
if #popped == 0 then
  return false
end
local member = popped[1]
local value = redis.call('HGET', KEYS[2], member)
redis.call('HDEL', KEYS[2], member)
return {member, value}
"""


@dataclass(slots=True)
class RedisStoreConfig:
    """
    Configuration for :class:`RedisOrderedStore`.

    Parameters
    ----------
    redis_url:
        Redis connection URL used when a client is not directly supplied.
    namespace:
        Prefix for all redis keys created by this store.
    """

    redis_url: str = "redis://127.0.0.1:6379/0"
    namespace: str = "hashqueue"


class RedisRegion:
    """Ordered region stored as one sorted set index and one value hash."""

    def __init__(self, store: "RedisOrderedStore", name: str) -> None:
        self._store = store
        self.name = name
        self._index_key = store._key(name, "index")
        self._entries_key = store._key(name, "entries")

    def insert(self, key: bytes, value: bytes) -> None:
        def _insert(client: Redis) -> None:
            pipe = client.pipeline(transaction=True)
            pipe.zadd(self._index_key, {bytes(key): 0})
            pipe.hset(self._entries_key, bytes(key), bytes(value))
            pipe.execute()

        self._store._call(_insert)

    def get(self, key: bytes) -> bytes | None:
        return self._store._call(lambda client: client.hget(self._entries_key, bytes(key)))

    def first(self) -> Entry | None:
        return self._run(self._store._peek, "min")

    def last(self) -> Entry | None:
        return self._run(self._store._peek, "max")

    def pop_min(self) -> Entry | None:
        return self._run(self._store._pop, "min")

    def pop_max(self) -> Entry | None:
        return self._run(self._store._pop, "max")

    def clear(self) -> None:
        self._store._call(lambda client: client.delete(self._index_key, self._entries_key))

    def items(self) -> Iterator[Entry]:
        def _items(client: Redis) -> list[Entry]:
            keys = client.zrange(self._index_key, 0, -1)
            if not keys:
                return []
            values = client.hmget(self._entries_key, keys)
            return [self._entry([key, value]) for key, value in zip(keys, values)]

        return iter(self._store._call(_items))

    def __len__(self) -> int:
        return int(self._store._call(lambda client: client.zcard(self._index_key)))

    def flush(self) -> None:
        self._store.flush()

    def _run(self, script: Any, end: str) -> Entry | None:
        keys = [self._index_key, self._entries_key]
        return self._entry(self._store._call(lambda _: script(keys=keys, args=[end])))

    def _entry(self, raw: Any) -> Entry | None:
        if not raw:
            return None
        # Lua truncates a reply table at the first nil.
        key, value = raw[0], raw[1] if len(raw) > 1 else None
        if value is None:
            raise StoreError(f"Region {self.name!r} indexes key {bytes(key).hex()} without a value.")
        return bytes(key), bytes(value)


class RedisOrderedStore:
    """
    Ordered store kept in a Redis server.

    Redis acknowledges each command once applied; on-disk durability follows
    the server's persistence policy (``appendonly``/``appendfsync``), so
    :meth:`flush` only confirms the server is still reachable.
    """

    def __init__(
        self,
        *,
        config: RedisStoreConfig | None = None,
        redis_client: Redis | None = None,
    ) -> None:
        self.config = config or RedisStoreConfig()
        self._redis = redis_client or Redis.from_url(self.config.redis_url)
        self._lock = RLock()
        self._peek = self._redis.register_script(_PEEK_LUA)
        self._pop = self._redis.register_script(_POP_LUA)

    def _key(self, name: str, kind: str) -> str:
        return f"{self.config.namespace}:region:{name}:{kind}"

    def _idx_regions(self) -> str:
        return f"{self.config.namespace}:idx:regions"

    def _call(self, operation: Any) -> Any:
        with self._lock:
            try:
                return operation(self._redis)
            except RedisError as exc:
                raise StoreError(f"Redis operation failed: {exc}") from exc

    def open_region(self, name: str) -> RedisRegion:
        """Open or create the region called ``name``."""
        self._call(lambda client: client.sadd(self._idx_regions(), name))
        return RedisRegion(self, name)

    def flush(self) -> None:
        """Confirm the server is reachable."""
        self._call(lambda client: client.ping())

    def close(self) -> None:
        """Close the client's connection pool."""
        self._call(lambda client: client.close())
