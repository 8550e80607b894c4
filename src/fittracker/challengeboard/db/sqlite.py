"""SQLite engine and transaction management.

A ``Database`` owns one SQLAlchemy engine. Every engine operation runs in a
single ``get_session()`` block, which is the unit that commits or rolls back.
"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import get_config
from .models import Base

logger = logging.getLogger(__name__)

MEMORY = ":memory:"


def _enable_foreign_keys(dbapi_connection, connection_record) -> None:
    # SQLite ignores ON DELETE CASCADE unless asked per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(db_path: str) -> Engine:
    """Create an engine for a database file, or a shared in-memory database.

    Args:
        db_path: File path, or ``:memory:``

    Returns:
        Engine with foreign key enforcement on every connection
    """
    if db_path == MEMORY:
        # One connection for every session, or each would see an empty database
        engine = create_engine(
            f"sqlite:///{MEMORY}",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(
            f"sqlite:///{db_path}",
            connect_args={"check_same_thread": False, "timeout": 30},
        )
    event.listen(engine, "connect", _enable_foreign_keys)
    return engine


class Database:
    """Challenge database: engine, schema and sessions."""

    def __init__(self, db_path: Optional[str] = None):
        """Open a challenge database.

        Args:
            db_path: SQLite file path or ``:memory:``. Defaults to the
                configured ``CHALLENGEBOARD_DB_PATH``.
        """
        if db_path is None:
            db_path = str(get_config().db_path)

        self.db_path = Path(db_path)
        self.in_memory = str(db_path) == MEMORY
        if not self.in_memory:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self.engine = build_engine(str(db_path))
        self.SessionLocal = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)

    def create_tables(self) -> None:
        """Create every challengeboard table that does not exist yet."""
        # Model modules register their tables on Base when imported
        from ..challenges.models import (  # noqa: F401
            Challenge,
            ChallengeRequirement,
            ChallengeReward,
            Participant,
        )
        from ..rewards.models import Achievement  # noqa: F401
        from ..teams.models import Team, TeamMember  # noqa: F401

        Base.metadata.create_all(self.engine)
        logger.debug("Created tables in %s", self.db_path)

    def drop_tables(self) -> None:
        """Drop every challengeboard table."""
        Base.metadata.drop_all(self.engine)

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """Open a transaction.

        Commits when the block exits normally; rolls everything back and
        re-raises when it raises.
        """
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


_db: Optional[Database] = None


def get_db(db_path: Optional[str] = None) -> Database:
    """Get the shared database, creating it and its tables on first use."""
    global _db
    if _db is None:
        _db = Database(db_path)
        _db.create_tables()
    return _db


def reset_db() -> None:
    """Forget the shared database. Used for testing."""
    global _db
    _db = None
