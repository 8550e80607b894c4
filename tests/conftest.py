"""Pytest configuration and shared fixtures.

This module provides fixtures for testing the challengeboard engine,
including a temporary database, a controllable clock and sample
challenge definitions.
"""

import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Generator

import pytest
from sqlalchemy.orm import Session

from fittracker.challengeboard.config import Config, reset_config
from fittracker.challengeboard.db.sqlite import Database, reset_db
from fittracker.challengeboard.engine import ChallengeEngine

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


class FrozenClock:
    """A clock that only moves when told to."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture(scope="function")
def temp_db_path(tmp_path: Path) -> Path:
    """Path for a temporary database file."""
    return tmp_path / "challenges.db"


@pytest.fixture(scope="function")
def db(temp_db_path: Path) -> Generator[Database, None, None]:
    """Create a test database instance."""
    reset_db()
    reset_config()

    database = Database(str(temp_db_path))
    database.create_tables()
    yield database

    reset_db()
    database.engine.dispose()


@pytest.fixture(scope="function")
def session(db: Database) -> Generator[Session, None, None]:
    """Create a database session for testing."""
    with db.get_session() as sess:
        yield sess


# ============================================================================
# Engine Fixtures
# ============================================================================


@pytest.fixture
def clock() -> FrozenClock:
    """Clock frozen at a fixed instant."""
    return FrozenClock()


@pytest.fixture
def config(temp_db_path: Path) -> Config:
    """Configuration with a small batch size so streaming spans batches."""
    return Config(db_path=temp_db_path, leaderboard_batch_size=2, log_level="WARNING")


@pytest.fixture
def engine(db: Database, config: Config, clock: FrozenClock) -> ChallengeEngine:
    """Create an engine bound to the test database and clock."""
    return ChallengeEngine(db=db, config=config, clock=clock)


# ============================================================================
# Sample Data Fixtures
# ============================================================================


def challenge_payload(**overrides) -> dict:
    """Build a challenge definition that is active at ``NOW``.

    One requirement of 100 reps and one reward of each condition.
    """
    payload = {
        "id": "pushups",
        "title": "Push-up Month",
        "description": "Do 100 push-ups",
        "challenge_type": "individual",
        "category": "strength",
        "difficulty": "Medium",
        "start_date": (NOW - timedelta(days=1)).isoformat(),
        "end_date": (NOW + timedelta(days=6)).isoformat(),
        "requirements": [
            {
                "id": "reps",
                "requirement_type": "exercise_reps",
                "target": 100,
                "unit": "reps",
            }
        ],
        "rewards": [
            {
                "id": "joined",
                "reward_type": "badge",
                "name": "Joined",
                "condition": "participation",
                "value": 5,
            },
            {
                "id": "finisher",
                "reward_type": "points",
                "name": "Finisher",
                "condition": "completion",
                "value": 50,
            },
            {
                "id": "podium",
                "reward_type": "badge",
                "name": "Podium",
                "condition": "top_3",
                "value": 100,
            },
            {
                "id": "top_ten",
                "reward_type": "title",
                "name": "Top Ten",
                "condition": "top_10",
                "value": 20,
            },
        ],
        "progress_metric": "total",
        "progress_unit": "reps",
        "tags": ["strength", "upper-body"],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def make_challenge(engine: ChallengeEngine):
    """Factory creating challenges through the engine."""

    def _make(**overrides):
        return engine.create_challenge(challenge_payload(**overrides))

    return _make


@pytest.fixture
def achievement_ids(engine: ChallengeEngine):
    """Reward ids a user holds in a challenge, without finalizing anything."""

    def _ids(user_id: str, challenge_id: str = "pushups") -> set[str]:
        with engine.db.get_session() as sess:
            return {
                a.reward_id
                for a in engine.issuer.get_achievements(sess, user_id, challenge_id)
            }

    return _ids


# ============================================================================
# CLI Fixtures
# ============================================================================


@pytest.fixture
def cli_env(temp_db_path: Path) -> Generator[Path, None, None]:
    """Point the CLI at a temporary database."""
    reset_db()
    reset_config()
    os.environ["CHALLENGEBOARD_DB_PATH"] = str(temp_db_path)

    yield temp_db_path

    reset_db()
    reset_config()
    if "CHALLENGEBOARD_DB_PATH" in os.environ:
        del os.environ["CHALLENGEBOARD_DB_PATH"]


@pytest.fixture
def cli_runner():
    """Create a Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()


@pytest.fixture
def challenge_data():
    """Builder for challenge definitions; see ``challenge_payload``."""
    return challenge_payload
