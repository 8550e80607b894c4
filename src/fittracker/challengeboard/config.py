"""Settings for challengeboard.

Values come from ``CHALLENGEBOARD_*`` environment variables, optionally set
in a ``.env`` file in the working directory.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from rich.logging import RichHandler

load_dotenv()

ENV_PREFIX = "CHALLENGEBOARD_"
DEFAULT_DB_PATH = Path.home() / ".challengeboard" / "challenges.db"


def _env(name: str, default: str) -> str:
    return os.environ.get(ENV_PREFIX + name, default)


@dataclass
class Config:
    """Engine settings."""

    # SQLite file holding challenges, rosters and achievements
    db_path: Path

    # Participants loaded per round trip while ranking a roster
    leaderboard_batch_size: int

    log_level: str

    @classmethod
    def from_env(cls) -> "Config":
        """Read settings from the environment, falling back to defaults."""
        return cls(
            db_path=Path(_env("DB_PATH", str(DEFAULT_DB_PATH))).expanduser(),
            leaderboard_batch_size=int(_env("LEADERBOARD_BATCH_SIZE", "500")),
            log_level=_env("LOG_LEVEL", "WARNING").upper(),
        )

    def validate(self) -> list[str]:
        """Check the settings.

        Returns:
            Human-readable problems; empty when the settings are usable
        """
        problems = []

        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        except PermissionError:
            problems.append(f"Cannot create database directory: {self.db_path.parent}")

        if self.leaderboard_batch_size < 1:
            problems.append(
                f"Leaderboard batch size must be positive, got {self.leaderboard_batch_size}"
            )

        if not isinstance(logging.getLevelName(self.log_level), int):
            problems.append(f"Unknown log level: {self.log_level}")

        return problems


def configure_logging(level: Optional[str] = None) -> None:
    """Route challengeboard log records through a Rich handler.

    Args:
        level: Log level name. Defaults to the configured level.
    """
    level = level or get_config().log_level
    logger = logging.getLogger("fittracker")
    logger.setLevel(level)
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        logger.addHandler(RichHandler(show_path=False, rich_tracebacks=True))


_config: Optional[Config] = None


def get_config() -> Config:
    """Get the settings, reading the environment on first use."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def reset_config() -> None:
    """Forget cached settings. Used for testing."""
    global _config
    _config = None
