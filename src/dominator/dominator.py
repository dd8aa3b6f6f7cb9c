"""Heartbeat-based single-leader election over a shared ledger.

Every node runs a Dominator against the same ledger. A node is dominant while
its record carries the most recent heartbeat; it keeps dominance by claiming
(refreshing its heartbeat) whenever it is polled. Another node takes over once
the leader's heartbeat is older than ``max_wait``.

Brief dual leadership during failover is possible and tolerated. Heartbeat
ages are compared across nodes, so clocks are assumed to agree to well within
``grace_period`` and ``max_wait``.

Example:
    dominator = Dominator(get_ledger())
    await dominator.initialize()

    while running:
        if await dominator.is_dominant():
            await drain_queue()
        await asyncio.sleep(5)
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Callable

from dominator.config import Settings
from dominator.config import settings as default_settings
from dominator.errors import DominatorError, LedgerError, ReadFailure, SetupFailure
from dominator.ledger.base import DominanceRecord, Ledger, UpsertResult
from dominator.observability.metrics import (
    record_claim,
    record_purge,
    record_takeover,
    set_dominant,
)

logger = logging.getLogger(__name__)


class DominanceState(str, Enum):
    """Logical state of the local node, as last evaluated."""

    UNCLAIMED = "unclaimed"
    DOMINANT = "dominant"
    GRACE_HOLDING = "grace_holding"
    CONTENDING = "contending"
    SUBORDINATE = "subordinate"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Dominator:
    """Decides whether this node may run leader-only work.

    Construct one per process and share it with every caller. Callers are
    expected to poll sequentially; concurrent polls are harmless but may
    issue redundant claims and purges.

    Args:
        ledger: Shared record store
        settings: Identity and timing configuration (module settings if None)
        clock: Returns the current aware UTC time
    """

    def __init__(
        self,
        ledger: Ledger,
        settings: Settings | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.ledger = ledger
        self.settings = settings or default_settings
        self._clock = clock or _utcnow

        self.server_id: str | None = None
        self.last_ping: datetime | None = None
        self.initialized = False

        self._state = DominanceState.UNCLAIMED
        self._dominant = False
        self._purge_tasks: set[asyncio.Task[None]] = set()

    @property
    def state(self) -> DominanceState:
        return self._state

    async def initialize(self) -> None:
        """Prepare the ledger and adopt the configured identity.

        Idempotent. Not retried on failure.

        Raises:
            SetupFailure: If the ledger or its unique index cannot be set up
        """
        if self.initialized:
            return

        try:
            await self.ledger.ensure_unique_index()
        except LedgerError as e:
            raise SetupFailure(str(e)) from e

        self.server_id = self.settings.server_id
        self.initialized = True
        logger.info(f"Dominator initialized as {self.server_id}")

    async def query_leader(self) -> DominanceRecord | None:
        """Return the record with the most recent heartbeat, if any.

        Raises:
            ReadFailure: If the ledger cannot be read
        """
        try:
            return await self.ledger.find_latest()
        except LedgerError as e:
            raise ReadFailure(str(e)) from e

    async def claim(self) -> bool:
        """Write this node's heartbeat.

        Returns:
            True if the heartbeat was written, False if a concurrent first
            insert for the same identity won the unique key
        """
        if self.server_id is None:
            raise DominatorError("initialize() must run before claim()")

        now = self._clock()
        if self.last_ping is not None and now < self.last_ping:
            now = self.last_ping

        result = await self.ledger.upsert(self.server_id, last_ping=now, created=now)
        record_claim(result.value)

        if result is UpsertResult.CONFLICT:
            logger.debug(f"Claim by {self.server_id} conflicted with a concurrent insert")
            self._dominant = False
            self._state = DominanceState.CONTENDING
            set_dominant(False)
            return False

        if not self._dominant:
            logger.info(f"{self.server_id} is dominant")
        self.last_ping = now
        self._dominant = True
        self._state = DominanceState.DOMINANT
        set_dominant(True)

        if self.settings.auto_purge:
            self.purge()

        return True

    def purge(self) -> None:
        """Schedule removal of every other node's record.

        Runs after ``purge_delay`` seconds. Best effort: nothing is returned
        to cancel it with, and a failed purge is only logged.
        """
        loop = asyncio.get_running_loop()
        loop.call_later(self.settings.purge_delay, self._start_purge)

    def _start_purge(self) -> None:
        task = asyncio.ensure_future(self._run_purge())
        self._purge_tasks.add(task)
        task.add_done_callback(self._purge_tasks.discard)

    async def _run_purge(self) -> None:
        server_id = self.server_id
        if server_id is None:
            return

        try:
            removed = await self.ledger.delete_others(server_id)
        except LedgerError as e:
            logger.error(f"Purge by {server_id} failed: {e}")
            return

        record_purge(removed)
        if removed:
            logger.info(f"Purged {removed} stale dominance record(s)")

    async def is_dominant(self) -> bool:
        """Decide whether this node may run leader-only work right now.

        Re-evaluated on every call; only the grace period short-circuits the
        ledger.

        Raises:
            SetupFailure: If lazy initialization fails
            ReadFailure: If the leader record cannot be read
        """
        await self.initialize()
        config = self.settings

        if config.single_instance and not config.disable_single_instance:
            return await self.claim()

        now = self._clock()

        if self.last_ping is not None and config.grace_period:
            if now < self.last_ping + timedelta(seconds=config.grace_period):
                logger.debug(f"{self.server_id} within grace period")
                self._state = DominanceState.GRACE_HOLDING
                return True

        if self.last_ping is not None:
            self._state = DominanceState.CONTENDING

        leader = await self.query_leader()

        if leader is None or leader.server_id == self.server_id:
            return await self.claim()

        gap = now - leader.last_ping
        if gap >= timedelta(seconds=config.max_wait):
            logger.warning(
                f"Leader {leader.server_id} silent for {gap.total_seconds():.1f}s, "
                f"{self.server_id} taking over"
            )
            claimed = await self.claim()
            if claimed:
                record_takeover()
            return claimed

        if self._dominant:
            logger.warning(f"{self.server_id} lost dominance to {leader.server_id}")
        self._dominant = False
        self._state = DominanceState.SUBORDINATE
        set_dominant(False)
        return False

    def reset(self, regenerate: bool = True) -> str:
        """Discard the local identity. For manual administration only.

        Args:
            regenerate: Generate a fresh identity instead of re-reading the
                configured one

        Returns:
            The identity now in use
        """
        old_id = self.server_id
        if regenerate:
            self.server_id = self.settings.regenerate_server_id()
        else:
            self.server_id = self.settings.server_id

        self.last_ping = None
        self._dominant = False
        self._state = DominanceState.UNCLAIMED
        set_dominant(False)
        logger.info(f"Dominator identity reset from {old_id} to {self.server_id}")
        return self.server_id
