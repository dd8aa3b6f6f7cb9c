"""Process-local ledger.

Used for single-instance deployments and as a test double. Every call is
counted per operation in ``calls``. The insert path yields to the event loop
between lookup and write, the way a round trip to a real store would, so
concurrent first inserts for one key collide and the loser gets CONFLICT.
"""

from __future__ import annotations

import asyncio
from collections import Counter
from dataclasses import replace
from datetime import datetime

from dominator.ledger.base import DominanceRecord, Ledger, UpsertResult


class InMemoryLedger(Ledger):
    """Dictionary-backed ledger keyed by ``server_id``."""

    def __init__(self) -> None:
        self._records: dict[str, DominanceRecord] = {}
        self.calls: Counter[str] = Counter()

    @property
    def reads(self) -> int:
        """Number of leader queries served."""
        return self.calls["find_latest"]

    async def ensure_unique_index(self) -> None:
        self.calls["ensure_unique_index"] += 1

    async def find_latest(self) -> DominanceRecord | None:
        self.calls["find_latest"] += 1
        if not self._records:
            return None
        return max(self._records.values(), key=lambda record: record.last_ping)

    async def upsert(
        self,
        server_id: str,
        last_ping: datetime,
        created: datetime,
    ) -> UpsertResult:
        self.calls["upsert"] += 1

        existing = self._records.get(server_id)
        if existing is not None:
            self._records[server_id] = replace(existing, last_ping=last_ping)
            return UpsertResult.APPLIED

        await asyncio.sleep(0)

        if server_id in self._records:
            return UpsertResult.CONFLICT

        self._records[server_id] = DominanceRecord(
            server_id=server_id,
            last_ping=last_ping,
            created=created,
        )
        return UpsertResult.APPLIED

    async def delete_others(self, server_id: str) -> int:
        self.calls["delete_others"] += 1
        stale = [key for key in self._records if key != server_id]
        for key in stale:
            del self._records[key]
        return len(stale)

    async def get(self, server_id: str) -> DominanceRecord | None:
        self.calls["get"] += 1
        return self._records.get(server_id)

    async def list_records(self) -> list[DominanceRecord]:
        self.calls["list_records"] += 1
        return sorted(self._records.values(), key=lambda r: r.last_ping, reverse=True)
