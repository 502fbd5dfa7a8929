"""Redis-based store implementation with atomic Lua scripts."""

import time
from collections.abc import Callable
from typing import TYPE_CHECKING

from redis.exceptions import RedisError

from ..exceptions import DuplicateKeyError, StorageUnavailableError
from ..record import KeyRecord
from .base import KeyStore

if TYPE_CHECKING:
    from redis import Redis

# KEYS: record hash, reserved index | ARGV: key, reserved_until or "", field/value pairs
_INSERT = """
if redis.call('EXISTS', KEYS[1]) == 1 then
    return 0
end
redis.call('HSET', KEYS[1], unpack(ARGV, 3))
if ARGV[2] ~= '' then
    redis.call('ZADD', KEYS[2], ARGV[2], ARGV[1])
end
return 1
"""

# KEYS: record hash, reserved index | ARGV: key, "1" if an owner is given, owner, now
_CLAIM = """
if redis.call('HGET', KEYS[1], 'status') ~= 'reserved' then
    return 0
end
local owner = redis.call('HGET', KEYS[1], 'owner')
if owner and (ARGV[2] ~= '1' or owner ~= ARGV[3]) then
    return 0
end
local reserved_until = redis.call('HGET', KEYS[1], 'reserved_until')
if reserved_until and tonumber(reserved_until) <= tonumber(ARGV[4]) then
    return 0
end
redis.call('HSET', KEYS[1], 'status', 'processing', 'updated_at', ARGV[4])
redis.call('ZREM', KEYS[2], ARGV[1])
return 1
"""

# KEYS: record hash | ARGV: status, response, now
_FINISH = """
if redis.call('HGET', KEYS[1], 'status') ~= 'processing' then
    return 0
end
redis.call('HSET', KEYS[1], 'status', ARGV[1], 'response', ARGV[2], 'updated_at', ARGV[3])
return 1
"""

# KEYS: reserved index | ARGV: now, record key prefix
_SWEEP = """
local expired = redis.call('ZRANGEBYSCORE', KEYS[1], '-inf', '(' .. ARGV[1])
local deleted = 0
for _, key in ipairs(expired) do
    local record_key = ARGV[2] .. key
    if redis.call('HGET', record_key, 'status') == 'reserved' then
        redis.call('DEL', record_key)
        deleted = deleted + 1
    end
    redis.call('ZREM', KEYS[1], key)
end
return deleted
"""


def _text(value: object) -> str:
    return value.decode() if isinstance(value, bytes) else str(value)


class RedisStore(KeyStore):
    """Redis-based store for idempotency key records.

    Each record is a Redis hash; every state transition runs as one Lua
    script on the server, so claims are atomic across processes and
    servers. Reserved keys are indexed in a sorted set scored by
    reserved_until for sweeping.

    Args:
        client: Redis client instance
        prefix: Key prefix for namespacing (default: "idempotency:")
        clock: Function returning the current epoch time
    """

    def __init__(
        self,
        client: "Redis",
        prefix: str = "idempotency:",
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(clock)
        self.client = client
        self.prefix = prefix
        self._insert = client.register_script(_INSERT)
        self._claim = client.register_script(_CLAIM)
        self._finish = client.register_script(_FINISH)
        self._sweep = client.register_script(_SWEEP)

    def _key(self, key: str) -> str:
        """Add prefix to key."""
        return f"{self.prefix}key:{key}"

    @property
    def _reserved_index(self) -> str:
        return f"{self.prefix}reserved"

    def insert(self, record: KeyRecord) -> None:
        fields: list[object] = []
        for name, value in record.to_dict().items():
            # Absent fields stay unset in the hash
            if value is not None:
                fields.extend([name, repr(value) if isinstance(value, float) else value])

        reserved_until = (
            repr(record.reserved_until) if record.reserved_until is not None else ""
        )
        try:
            created = self._insert(
                keys=[self._key(record.key), self._reserved_index],
                args=[record.key, reserved_until, *fields],
            )
        except RedisError as exc:
            raise StorageUnavailableError("insert", str(exc)) from exc

        if not created:
            raise DuplicateKeyError(record.key)

    def get(self, key: str) -> KeyRecord | None:
        """Retrieve a record from Redis."""
        try:
            data = self.client.hgetall(self._key(key))
        except RedisError as exc:
            raise StorageUnavailableError("get", str(exc)) from exc

        if not data:
            return None
        return KeyRecord.from_dict({_text(k): _text(v) for k, v in data.items()})

    def claim(self, key: str, owner: str | None = None) -> bool:
        try:
            claimed = self._claim(
                keys=[self._key(key), self._reserved_index],
                args=[
                    key,
                    "0" if owner is None else "1",
                    owner or "",
                    repr(self.now()),
                ],
            )
        except RedisError as exc:
            raise StorageUnavailableError("claim", str(exc)) from exc
        return bool(claimed)

    def finish(self, key: str, status: str, response: str) -> bool:
        try:
            written = self._finish(
                keys=[self._key(key)],
                args=[status, response, repr(self.now())],
            )
        except RedisError as exc:
            raise StorageUnavailableError("finish", str(exc)) from exc
        return bool(written)

    def delete_expired(self) -> int:
        try:
            deleted = self._sweep(
                keys=[self._reserved_index],
                args=[repr(self.now()), self._key("")],
            )
        except RedisError as exc:
            raise StorageUnavailableError("sweep", str(exc)) from exc
        return int(deleted)

    def clear(self) -> None:
        """Clear all records with this prefix (useful for testing)."""
        pattern = f"{self.prefix}*"
        cursor = 0

        while True:
            cursor, keys = self.client.scan(cursor, match=pattern, count=100)
            if keys:
                self.client.delete(*keys)
            if cursor == 0:
                break
