"""Tests for the SQL ledger against SQLite."""

from collections.abc import AsyncIterator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy import Insert, Update, insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine

from dominator.dominator import DominanceState, Dominator
from dominator.errors import LedgerError
from dominator.ledger.base import UpsertResult
from dominator.ledger.sql import SqlLedger
from dominator.persistence.tables import DominanceRecordTable

T0 = datetime(2026, 1, 15, 12, 0, tzinfo=UTC)


@pytest_asyncio.fixture
async def sql_ledger(tmp_path: Path) -> AsyncIterator[SqlLedger]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    ledger = SqlLedger(engine)
    await ledger.ensure_unique_index()
    yield ledger
    await ledger.close()


class TestTable:
    """Tests for the table definition."""

    def test_columns(self) -> None:
        columns = {c.name for c in DominanceRecordTable.__table__.columns}
        assert {"id", "server_id", "last_ping", "created"}.issubset(columns)

    def test_server_id_unique_index(self) -> None:
        """server_id is covered by a unique index."""
        unique = [
            index
            for index in DominanceRecordTable.__table__.indexes
            if index.unique and [c.name for c in index.columns] == ["server_id"]
        ]
        assert len(unique) == 1


class TestSqlLedger:
    """Tests for SqlLedger operations."""

    @pytest.mark.asyncio
    async def test_ensure_unique_index_idempotent(self, sql_ledger: SqlLedger) -> None:
        await sql_ledger.ensure_unique_index()

    @pytest.mark.asyncio
    async def test_upsert_insert_and_update(self, sql_ledger: SqlLedger) -> None:
        """created survives updates; last_ping follows them."""
        assert await sql_ledger.upsert("node-a", T0, T0) == UpsertResult.APPLIED

        later = T0 + timedelta(seconds=7)
        assert await sql_ledger.upsert("node-a", later, later) == UpsertResult.APPLIED

        record = await sql_ledger.get("node-a")
        assert record is not None
        assert record.created == T0
        assert record.last_ping == later
        assert len(await sql_ledger.list_records()) == 1

    @pytest.mark.asyncio
    async def test_timestamps_are_utc(self, sql_ledger: SqlLedger) -> None:
        """Timestamps come back timezone-aware."""
        await sql_ledger.upsert("node-a", T0, T0)

        record = await sql_ledger.find_latest()

        assert record is not None
        assert record.last_ping.tzinfo is not None

    @pytest.mark.asyncio
    async def test_find_latest(self, sql_ledger: SqlLedger) -> None:
        """The most recent heartbeat wins."""
        assert await sql_ledger.find_latest() is None

        await sql_ledger.upsert("node-a", T0, T0)
        await sql_ledger.upsert("node-b", T0 + timedelta(seconds=3), T0)

        latest = await sql_ledger.find_latest()
        assert latest is not None
        assert latest.server_id == "node-b"

    @pytest.mark.asyncio
    async def test_delete_others(self, sql_ledger: SqlLedger) -> None:
        for server_id in ("node-a", "node-b", "node-c"):
            await sql_ledger.upsert(server_id, T0, T0)

        removed = await sql_ledger.delete_others("node-c")

        assert removed == 2
        assert [r.server_id for r in await sql_ledger.list_records()] == ["node-c"]


class TestSqlLedgerFailures:
    """Tests for driver error translation."""

    @pytest.mark.asyncio
    async def test_unreachable_database(self, tmp_path: Path) -> None:
        """Setup against a missing directory raises LedgerError."""
        engine = create_async_engine(
            f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'ledger.db'}"
        )
        ledger = SqlLedger(engine)

        with pytest.raises(LedgerError):
            await ledger.ensure_unique_index()

        await ledger.close()


def _insert_rival_after_update(monkeypatch: pytest.MonkeyPatch) -> None:
    """Insert a rival row for node-a right after the upsert's UPDATE misses.

    Reproduces two nodes racing a first claim: both UPDATEs match nothing,
    then the rival's INSERT lands first.
    """
    real_execute = AsyncSession.execute

    async def execute(self, statement, *args, **kwargs):
        result = await real_execute(self, statement, *args, **kwargs)
        if isinstance(statement, Update):
            await real_execute(
                self,
                insert(DominanceRecordTable).values(server_id="node-a", last_ping=T0, created=T0),
            )
        return result

    monkeypatch.setattr(AsyncSession, "execute", execute)


class TestSqlLedgerConflicts:
    """Tests for the first-insert race on the unique index."""

    @pytest.fixture
    def competing_insert(self, monkeypatch: pytest.MonkeyPatch) -> None:
        _insert_rival_after_update(monkeypatch)

    @pytest.mark.asyncio
    async def test_duplicate_insert_is_conflict(
        self, sql_ledger: SqlLedger, competing_insert: None
    ) -> None:
        """The unique index rejection is reported as CONFLICT."""
        assert await sql_ledger.upsert("node-a", T0, T0) == UpsertResult.CONFLICT

    @pytest.mark.asyncio
    async def test_claim_returns_false_on_conflict(
        self, sql_ledger: SqlLedger, make_settings, clock, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Dominator.claim() swallows the race and reports False."""
        node = Dominator(sql_ledger, make_settings("node-a"), clock=clock)
        await node.initialize()
        _insert_rival_after_update(monkeypatch)

        assert await node.claim() is False
        assert node.state == DominanceState.CONTENDING
        assert node.last_ping is None

    @pytest.mark.asyncio
    async def test_other_integrity_errors_are_ledger_errors(
        self, sql_ledger: SqlLedger, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Only the duplicate server_id counts as a benign conflict."""
        real_execute = AsyncSession.execute

        async def execute(self, statement, *args, **kwargs):
            if isinstance(statement, Insert):
                raise IntegrityError(
                    "INSERT INTO dominance_records",
                    {},
                    Exception("NOT NULL constraint failed: dominance_records.created"),
                )
            return await real_execute(self, statement, *args, **kwargs)

        monkeypatch.setattr(AsyncSession, "execute", execute)

        with pytest.raises(LedgerError, match="NOT NULL"):
            await sql_ledger.upsert("node-a", T0, T0)
