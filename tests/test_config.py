"""Tests for configuration loading."""

import logging
from pathlib import Path

import pytest
from rich.logging import RichHandler

from fittracker.challengeboard.config import (
    Config,
    configure_logging,
    get_config,
    reset_config,
)


@pytest.fixture(autouse=True)
def clean_config(monkeypatch):
    for name in [
        "CHALLENGEBOARD_DB_PATH",
        "CHALLENGEBOARD_LEADERBOARD_BATCH_SIZE",
        "CHALLENGEBOARD_LOG_LEVEL",
    ]:
        monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()


class TestConfig:
    """Tests for Config."""

    def test_defaults(self):
        config = Config.from_env()
        assert config.db_path == Path.home() / ".challengeboard" / "challenges.db"
        assert config.leaderboard_batch_size == 500
        assert config.log_level == "WARNING"

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("CHALLENGEBOARD_DB_PATH", str(tmp_path / "c.db"))
        monkeypatch.setenv("CHALLENGEBOARD_LEADERBOARD_BATCH_SIZE", "50")
        monkeypatch.setenv("CHALLENGEBOARD_LOG_LEVEL", "debug")

        config = Config.from_env()
        assert config.db_path == tmp_path / "c.db"
        assert config.leaderboard_batch_size == 50
        assert config.log_level == "DEBUG"

    def test_validate_ok(self, tmp_path):
        config = Config(db_path=tmp_path / "c.db", leaderboard_batch_size=10, log_level="INFO")
        assert config.validate() == []

    def test_validate_errors(self, tmp_path):
        config = Config(db_path=tmp_path / "c.db", leaderboard_batch_size=0, log_level="LOUD")
        errors = config.validate()
        assert len(errors) == 2

    def test_global_config_is_cached(self, monkeypatch, tmp_path):
        monkeypatch.setenv("CHALLENGEBOARD_DB_PATH", str(tmp_path / "first.db"))
        first = get_config()
        monkeypatch.setenv("CHALLENGEBOARD_DB_PATH", str(tmp_path / "second.db"))
        assert get_config() is first

        reset_config()
        assert get_config().db_path == tmp_path / "second.db"


class TestConfigureLogging:
    """Tests for log setup."""

    def test_installs_one_rich_handler(self):
        configure_logging("INFO")
        configure_logging("DEBUG")

        logger = logging.getLogger("fittracker")
        handlers = [h for h in logger.handlers if isinstance(h, RichHandler)]
        assert len(handlers) == 1
        assert logger.level == logging.DEBUG
