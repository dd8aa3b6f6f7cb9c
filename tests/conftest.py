"""Global pytest configuration and fixtures."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any, Callable

import pytest

from dominator.config import Settings
from dominator.ledger.memory import InMemoryLedger


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 1, 15, 12, 0, tzinfo=UTC))


@pytest.fixture
def ledger() -> InMemoryLedger:
    return InMemoryLedger()


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    """Build settings with short, deterministic timings."""

    def factory(server_id: str, **overrides: Any) -> Settings:
        values: dict[str, Any] = {
            "server_id": server_id,
            "grace_period": 10.0,
            "max_wait": 30.0,
            "auto_purge": False,
            "purge_delay": 0.01,
            "single_instance": False,
            "disable_single_instance": False,
            "ledger_backend": "memory",
        }
        values.update(overrides)
        return Settings(**values)

    return factory
