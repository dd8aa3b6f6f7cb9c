"""SQL ledger backed by SQLAlchemy asyncio.

The upsert updates the row for ``server_id`` and inserts it when no row
matched. Two nodes racing the first insert both miss on the update; the
unique index rejects the second insert with an IntegrityError, which is
reported as CONFLICT.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from dominator.errors import LedgerError
from dominator.ledger.base import DominanceRecord, Ledger, UpsertResult
from dominator.persistence.db import create_session_factory, get_engine, session_context
from dominator.persistence.tables import Base, DominanceRecordTable

logger = logging.getLogger(__name__)


def _aware(value: datetime) -> datetime:
    # Some dialects (SQLite) drop the timezone on read
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _is_duplicate_server_id(error: IntegrityError) -> bool:
    # PostgreSQL reports SQLSTATE 23505 naming the index; SQLite names the column
    if getattr(error.orig, "sqlstate", None) == "23505":
        return True
    message = str(error.orig)
    return (
        "uq_dominance_records_server_id" in message
        or "UNIQUE constraint failed: dominance_records.server_id" in message
    )


def _to_record(row: DominanceRecordTable) -> DominanceRecord:
    return DominanceRecord(
        server_id=row.server_id,
        last_ping=_aware(row.last_ping),
        created=_aware(row.created),
    )


class SqlLedger(Ledger):
    """Ledger stored in the ``dominance_records`` table.

    Args:
        engine: Async engine to use (defaults to the configured engine)
    """

    def __init__(self, engine: AsyncEngine | None = None) -> None:
        self._engine = engine
        self._factory: async_sessionmaker[AsyncSession] | None = None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            self._engine = get_engine()
        return self._engine

    def _sessions(self) -> async_sessionmaker[AsyncSession]:
        if self._factory is None:
            self._factory = create_session_factory(self.engine)
        return self._factory

    async def ensure_unique_index(self) -> None:
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except (SQLAlchemyError, OSError) as e:
            raise LedgerError(f"Cannot prepare dominance table: {e}") from e

    async def find_latest(self) -> DominanceRecord | None:
        stmt = (
            select(DominanceRecordTable)
            .order_by(DominanceRecordTable.last_ping.desc())
            .limit(1)
        )
        try:
            async with session_context(self._sessions()) as session:
                row = (await session.execute(stmt)).scalar_one_or_none()
        except (SQLAlchemyError, OSError) as e:
            raise LedgerError(f"Cannot read leader record: {e}") from e
        return _to_record(row) if row is not None else None

    async def upsert(
        self,
        server_id: str,
        last_ping: datetime,
        created: datetime,
    ) -> UpsertResult:
        try:
            async with session_context(self._sessions()) as session:
                result = await session.execute(
                    update(DominanceRecordTable)
                    .where(DominanceRecordTable.server_id == server_id)
                    .values(last_ping=last_ping)
                )
                if result.rowcount == 0:
                    await session.execute(
                        insert(DominanceRecordTable).values(
                            server_id=server_id,
                            last_ping=last_ping,
                            created=created,
                        )
                    )
        except IntegrityError as e:
            if not _is_duplicate_server_id(e):
                raise LedgerError(f"Cannot upsert record for {server_id}: {e}") from e
            logger.debug(f"Concurrent first insert for {server_id} lost the race")
            return UpsertResult.CONFLICT
        except (SQLAlchemyError, OSError) as e:
            raise LedgerError(f"Cannot upsert record for {server_id}: {e}") from e
        return UpsertResult.APPLIED

    async def delete_others(self, server_id: str) -> int:
        try:
            async with session_context(self._sessions()) as session:
                result = await session.execute(
                    delete(DominanceRecordTable).where(
                        DominanceRecordTable.server_id != server_id
                    )
                )
        except (SQLAlchemyError, OSError) as e:
            raise LedgerError(f"Cannot purge records: {e}") from e
        return result.rowcount or 0

    async def get(self, server_id: str) -> DominanceRecord | None:
        stmt = select(DominanceRecordTable).where(DominanceRecordTable.server_id == server_id)
        try:
            async with session_context(self._sessions()) as session:
                row = (await session.execute(stmt)).scalar_one_or_none()
        except (SQLAlchemyError, OSError) as e:
            raise LedgerError(f"Cannot read record for {server_id}: {e}") from e
        return _to_record(row) if row is not None else None

    async def list_records(self) -> list[DominanceRecord]:
        stmt = select(DominanceRecordTable).order_by(DominanceRecordTable.last_ping.desc())
        try:
            async with session_context(self._sessions()) as session:
                rows = (await session.execute(stmt)).scalars().all()
        except (SQLAlchemyError, OSError) as e:
            raise LedgerError(f"Cannot list records: {e}") from e
        return [_to_record(row) for row in rows]

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._factory = None
