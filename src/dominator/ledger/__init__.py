"""Ledger backends for dominance records.

The ledger is the only coordination medium between nodes:
- SQL (PostgreSQL via asyncpg, any async SQLAlchemy dialect)
- Redis (hash per record plus a sorted heartbeat index)
- In-memory (single process, test double)
"""

from dominator.ledger.base import DominanceRecord, Ledger, UpsertResult
from dominator.ledger.factory import get_ledger
from dominator.ledger.memory import InMemoryLedger
from dominator.ledger.redis import RedisLedger
from dominator.ledger.sql import SqlLedger

__all__ = [
    "DominanceRecord",
    "Ledger",
    "UpsertResult",
    "InMemoryLedger",
    "RedisLedger",
    "SqlLedger",
    "get_ledger",
]
