"""Heartbeat-based single-leader election over a shared ledger.

Example:
    from dominator import Dominator, get_ledger, setup_logging

    setup_logging()
    dominator = Dominator(get_ledger())
    await dominator.initialize()

    if await dominator.is_dominant():
        await drain_queue()
"""

from dominator.dominator import DominanceState, Dominator
from dominator.errors import DominatorError, LedgerError, ReadFailure, SetupFailure
from dominator.gate import DominancePoller, dominant_only
from dominator.ledger import (
    DominanceRecord,
    InMemoryLedger,
    Ledger,
    RedisLedger,
    SqlLedger,
    UpsertResult,
    get_ledger,
)
from dominator.observability import setup_logging

__all__ = [
    # Core
    "Dominator",
    "DominanceState",
    # Ledger
    "Ledger",
    "DominanceRecord",
    "UpsertResult",
    "InMemoryLedger",
    "SqlLedger",
    "RedisLedger",
    "get_ledger",
    # Gate
    "DominancePoller",
    "dominant_only",
    # Logging
    "setup_logging",
    # Errors
    "DominatorError",
    "LedgerError",
    "SetupFailure",
    "ReadFailure",
]
