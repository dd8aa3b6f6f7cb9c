"""Base ledger interface.

Defines the record store the dominance protocol coordinates through. A
backend must enforce uniqueness of ``server_id`` and make the upsert atomic
per key; a duplicate-key race on a first insert is reported as
``UpsertResult.CONFLICT`` instead of being raised.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum


@dataclass(frozen=True)
class DominanceRecord:
    """Heartbeat record of one node that has claimed dominance."""

    server_id: str
    last_ping: datetime
    created: datetime


class UpsertResult(str, Enum):
    """Outcome of a conditional upsert."""

    APPLIED = "applied"
    CONFLICT = "conflict"

    @property
    def ok(self) -> bool:
        return self is UpsertResult.APPLIED


class Ledger(ABC):
    """Abstract base class for ledger backends."""

    @abstractmethod
    async def ensure_unique_index(self) -> None:
        """Connect and make sure ``server_id`` is unique.

        Raises:
            LedgerError: If the store cannot be reached
        """
        ...

    @abstractmethod
    async def find_latest(self) -> DominanceRecord | None:
        """Return the record with the greatest ``last_ping``, if any."""
        ...

    @abstractmethod
    async def upsert(
        self,
        server_id: str,
        last_ping: datetime,
        created: datetime,
    ) -> UpsertResult:
        """Insert or refresh the record for ``server_id``.

        ``last_ping`` is always written; ``created`` only when the record
        is inserted.

        Args:
            server_id: Key of the record
            last_ping: Heartbeat timestamp
            created: Creation timestamp, applied on insert only

        Returns:
            APPLIED on success, CONFLICT if a concurrent insert won the key
        """
        ...

    @abstractmethod
    async def delete_others(self, server_id: str) -> int:
        """Delete every record whose key differs from ``server_id``.

        Returns:
            Number of records removed
        """
        ...

    @abstractmethod
    async def get(self, server_id: str) -> DominanceRecord | None:
        """Return the record for ``server_id``, if any."""
        ...

    @abstractmethod
    async def list_records(self) -> list[DominanceRecord]:
        """Return all records, most recent heartbeat first."""
        ...

    async def close(self) -> None:
        """Release connections held by the backend."""
        return None
