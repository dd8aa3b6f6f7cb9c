"""Redis ledger.

Layout under the configured prefix:
- ``{prefix}records``: sorted set of server ids scored by last ping (epoch seconds)
- ``{prefix}record:{server_id}``: hash with ``last_ping`` and ``created`` (ISO 8601)

Upsert and purge run as Lua scripts, so they are atomic on the server and a
first-insert race cannot produce a duplicate. Keys are unique by
construction; ``ensure_unique_index`` only verifies connectivity.
"""

from __future__ import annotations

from collections.abc import Awaitable
from datetime import datetime
from typing import TYPE_CHECKING, cast

import redis.asyncio as redis
from redis.exceptions import RedisError

from dominator.config import settings
from dominator.errors import LedgerError
from dominator.ledger.base import DominanceRecord, Ledger, UpsertResult

if TYPE_CHECKING:
    from redis.asyncio import Redis

UPSERT_SCRIPT = """
redis.call("HSETNX", KEYS[2], "created", ARGV[3])
redis.call("HSET", KEYS[2], "last_ping", ARGV[2])
redis.call("ZADD", KEYS[1], ARGV[1], ARGV[4])
return 1
"""

DELETE_OTHERS_SCRIPT = """
local removed = 0
for _, member in ipairs(redis.call("ZRANGE", KEYS[1], 0, -1)) do
    if member ~= ARGV[1] then
        redis.call("ZREM", KEYS[1], member)
        redis.call("DEL", ARGV[2] .. member)
        removed = removed + 1
    end
end
return removed
"""


def _text(value: str | bytes) -> str:
    return value.decode() if isinstance(value, bytes) else value


def create_client(url: str) -> Redis:
    """Create a Redis client returning decoded strings."""
    return redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
    )


class RedisLedger(Ledger):
    """Ledger stored in Redis.

    Args:
        client: Redis client (created from ``redis_url`` if None)
        prefix: Key prefix for all ledger keys
    """

    def __init__(self, client: Redis | None = None, prefix: str | None = None) -> None:
        self._client = client
        self.prefix = prefix if prefix is not None else settings.redis_prefix

    @property
    def index_key(self) -> str:
        return f"{self.prefix}records"

    def record_key(self, server_id: str) -> str:
        return f"{self.prefix}record:{server_id}"

    def _get_client(self) -> Redis:
        if self._client is None:
            self._client = create_client(settings.redis_url)
        return self._client

    async def ensure_unique_index(self) -> None:
        try:
            await cast(Awaitable[bool], self._get_client().ping())
        except (RedisError, OSError) as e:
            raise LedgerError(f"Cannot reach Redis ledger: {e}") from e

    async def _load(self, server_id: str) -> DominanceRecord | None:
        fields = await cast(
            Awaitable[dict[str, str]], self._get_client().hgetall(self.record_key(server_id))
        )
        if not fields:
            return None
        fields = {_text(k): _text(v) for k, v in fields.items()}
        return DominanceRecord(
            server_id=server_id,
            last_ping=datetime.fromisoformat(fields["last_ping"]),
            created=datetime.fromisoformat(fields["created"]),
        )

    async def find_latest(self) -> DominanceRecord | None:
        try:
            members = await self._get_client().zrevrange(self.index_key, 0, 0)
            if not members:
                return None
            return await self._load(_text(members[0]))
        except (RedisError, OSError) as e:
            raise LedgerError(f"Cannot read leader record: {e}") from e

    async def upsert(
        self,
        server_id: str,
        last_ping: datetime,
        created: datetime,
    ) -> UpsertResult:
        try:
            await cast(
                Awaitable[int],
                self._get_client().eval(
                    UPSERT_SCRIPT,
                    2,
                    self.index_key,
                    self.record_key(server_id),
                    last_ping.timestamp(),
                    last_ping.isoformat(),
                    created.isoformat(),
                    server_id,
                ),
            )
        except (RedisError, OSError) as e:
            raise LedgerError(f"Cannot upsert record for {server_id}: {e}") from e
        return UpsertResult.APPLIED

    async def delete_others(self, server_id: str) -> int:
        try:
            removed = await cast(
                Awaitable[int],
                self._get_client().eval(
                    DELETE_OTHERS_SCRIPT,
                    1,
                    self.index_key,
                    server_id,
                    self.record_key(""),
                ),
            )
        except (RedisError, OSError) as e:
            raise LedgerError(f"Cannot purge records: {e}") from e
        return int(removed)

    async def get(self, server_id: str) -> DominanceRecord | None:
        try:
            return await self._load(server_id)
        except (RedisError, OSError) as e:
            raise LedgerError(f"Cannot read record for {server_id}: {e}") from e

    async def list_records(self) -> list[DominanceRecord]:
        try:
            members = await self._get_client().zrevrange(self.index_key, 0, -1)
            records = [await self._load(_text(member)) for member in members]
        except (RedisError, OSError) as e:
            raise LedgerError(f"Cannot list records: {e}") from e
        return [record for record in records if record is not None]

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
