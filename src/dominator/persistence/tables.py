"""SQLAlchemy ORM model for dominance records.

One row per node that ever claimed dominance. ``server_id`` carries a unique
index, which is what turns a concurrent first insert into an IntegrityError
for the losing node.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class DominanceRecordTable(Base):
    """Dominance heartbeat table."""

    __tablename__ = "dominance_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Node identity
    server_id: Mapped[str] = mapped_column(String(255), nullable=False)

    # Refreshed on every successful claim
    last_ping: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Set on first insert only
    created: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("uq_dominance_records_server_id", server_id, unique=True),
        # Leader lookup sorts by heartbeat
        Index("idx_dominance_records_last_ping", last_ping),
    )
