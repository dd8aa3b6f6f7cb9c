"""Tests for settings."""

import pytest

from dominator.config import Settings, generate_server_id


class TestGenerateServerId:
    """Tests for identity generation."""

    def test_uses_hostname(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("HOSTNAME", "worker-3")

        server_id = generate_server_id()

        assert server_id.startswith("worker-3-")
        assert len(server_id) == len("worker-3-") + 8

    def test_unique(self) -> None:
        assert generate_server_id() != generate_server_id()


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self) -> None:
        config = Settings()

        assert config.grace_period == 10.0
        assert config.max_wait == 30.0
        assert config.auto_purge is True
        assert config.purge_delay == 5.0
        assert config.single_instance is False
        assert config.disable_single_instance is False
        assert config.ledger_backend == "sql"

    def test_env_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Tunables are read from DOMINATOR_-prefixed variables."""
        monkeypatch.setenv("DOMINATOR_SERVER_ID", "node-7")
        monkeypatch.setenv("DOMINATOR_MAX_WAIT", "45")
        monkeypatch.setenv("DOMINATOR_SINGLE_INSTANCE", "true")
        monkeypatch.setenv("DATABASE_URL", "postgresql+asyncpg://u:p@db/ledger")

        config = Settings()

        assert config.server_id == "node-7"
        assert config.max_wait == 45.0
        assert config.single_instance is True
        assert config.database_url == "postgresql+asyncpg://u:p@db/ledger"

    def test_regenerate_server_id(self) -> None:
        config = Settings(server_id="node-a")

        new_id = config.regenerate_server_id()

        assert new_id != "node-a"
        assert config.server_id == new_id
