"""Ledger factory."""

from __future__ import annotations

from dominator.config import Settings, settings
from dominator.ledger.base import Ledger
from dominator.ledger.memory import InMemoryLedger
from dominator.ledger.redis import RedisLedger, create_client
from dominator.ledger.sql import SqlLedger
from dominator.persistence.db import create_engine_from


def get_ledger(config: Settings | None = None) -> Ledger:
    """Build the ledger backend selected by ``ledger_backend``.

    Connection URLs come from ``config``, so every node built from the same
    settings shares one ledger.
    """
    config = config or settings
    backend = config.ledger_backend.lower()
    if backend in {"sql", "postgres", "postgresql"}:
        return SqlLedger(create_engine_from(config))
    if backend == "redis":
        return RedisLedger(create_client(config.redis_url), prefix=config.redis_prefix)
    if backend == "memory":
        return InMemoryLedger()
    raise ValueError("Unsupported ledger_backend. Supported values: sql, redis, memory.")
