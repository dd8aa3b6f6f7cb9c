"""Persistence layer for the SQL ledger.

This module provides:
- Async engine and session factory (asyncpg in production)
- The ``dominance_records`` ORM table with its unique index on server_id
"""

from dominator.persistence.db import close_db, create_session_factory, get_engine
from dominator.persistence.tables import Base, DominanceRecordTable

__all__ = [
    # DB
    "get_engine",
    "create_session_factory",
    "close_db",
    # Tables
    "Base",
    "DominanceRecordTable",
]
