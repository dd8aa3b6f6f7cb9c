"""Gating leader-only work on dominance.

Two ways to use a Dominator from a host scheduler:

    # Check on every run
    @dominant_only(dominator)
    async def drain_queue():
        ...

    # Or poll in the background and read the cached flag
    poller = DominancePoller(dominator, poll_interval=5)
    await poller.start()

    while running:
        if poller.is_dominant:
            await do_leader_work()
        await asyncio.sleep(1)

    await poller.stop()
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, ParamSpec, TypeVar

from dominator.dominator import Dominator

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 5.0  # Seconds


class DominancePoller:
    """Polls ``Dominator.is_dominant()`` on a fixed interval.

    A failed poll (ledger unreachable) counts as not dominant; the next poll
    is the retry.

    Args:
        dominator: Shared Dominator instance
        poll_interval: Seconds between polls
    """

    def __init__(self, dominator: Dominator, poll_interval: float = DEFAULT_POLL_INTERVAL):
        self.dominator = dominator
        self.poll_interval = poll_interval

        self._is_dominant = False
        self._running = False
        self._task: asyncio.Task[None] | None = None

        self._on_elected: list[asyncio.Future[None]] = []

    @property
    def is_dominant(self) -> bool:
        """Result of the most recent poll."""
        return self._is_dominant

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start polling in a background task."""
        if self._running:
            return

        self._running = True
        self._task = asyncio.create_task(self._poll_loop())
        logger.info(f"Started dominance polling every {self.poll_interval}s")

    async def stop(self) -> None:
        """Stop polling.

        Dominance is not released; another node takes over once this node's
        heartbeat is older than ``max_wait``.
        """
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        self._is_dominant = False
        logger.info("Stopped dominance polling")

    async def poll(self) -> bool:
        """Run one dominance check and update the cached flag."""
        try:
            dominant = await self.dominator.is_dominant()
        except Exception as e:
            logger.error(f"Dominance check failed: {e}")
            dominant = False

        if dominant and not self._is_dominant:
            self._handle_elected()
        elif not dominant and self._is_dominant:
            logger.warning("No longer dominant")

        self._is_dominant = dominant
        return dominant

    async def _poll_loop(self) -> None:
        while self._running:
            try:
                await self.poll()
                await asyncio.sleep(self.poll_interval)
            except asyncio.CancelledError:
                break

    def _handle_elected(self) -> None:
        logger.info("Became dominant")

        for future in self._on_elected:
            if not future.done():
                future.set_result(None)
        self._on_elected.clear()

    async def wait_for_dominance(self, timeout: float | None = None) -> bool:
        """Wait until a poll finds this node dominant.

        Args:
            timeout: Maximum time to wait in seconds (None = wait forever)

        Returns:
            True if dominance was observed, False on timeout
        """
        if self._is_dominant:
            return True

        future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._on_elected.append(future)

        try:
            await asyncio.wait_for(future, timeout=timeout)
            return True
        except asyncio.TimeoutError:
            self._on_elected.remove(future)
            return False


P = ParamSpec("P")
R = TypeVar("R")


def dominant_only(
    dominator: Dominator,
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R | None]]]:
    """Decorator that runs a coroutine only while this node is dominant.

    Errors from the dominance check propagate to the caller.

    Example:
        @dominant_only(dominator)
        async def drain_queue():
            ...
    """

    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R | None]]:
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R | None:
            if await dominator.is_dominant():
                return await func(*args, **kwargs)
            logger.debug(f"Skipping {func.__name__} - not dominant")
            return None

        wrapper.__name__ = func.__name__
        wrapper.__doc__ = func.__doc__
        return wrapper

    return decorator
