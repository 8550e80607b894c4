"""Tests for database setup and sessions."""

import pytest
from sqlalchemy import inspect, select
from sqlalchemy.exc import IntegrityError

from fittracker.challengeboard.db import Database, get_db, reset_db
from fittracker.challengeboard.teams import Team, TeamMember


class TestDatabase:
    """Tests for Database."""

    def test_creates_all_tables(self, db):
        tables = set(inspect(db.engine).get_table_names())
        assert {
            "challenges",
            "challenge_requirements",
            "challenge_rewards",
            "challenge_participants",
            "achievements",
            "teams",
            "team_members",
        } <= tables

    def test_creates_parent_directory(self, tmp_path):
        path = tmp_path / "nested" / "dir" / "c.db"
        Database(str(path))
        assert path.parent.exists()

    def test_in_memory_sessions_share_data(self):
        database = Database(":memory:")
        database.create_tables()
        with database.get_session() as session:
            session.add(Team(id="red", name="Red"))
        with database.get_session() as session:
            assert session.get(Team, "red") is not None

    def test_session_commits(self, db):
        with db.get_session() as session:
            session.add(Team(id="red", name="Red"))
        with db.get_session() as session:
            assert session.execute(select(Team.id)).scalars().all() == ["red"]

    def test_session_rolls_back_on_error(self, db):
        with pytest.raises(RuntimeError):
            with db.get_session() as session:
                session.add(Team(id="red", name="Red"))
                session.flush()
                raise RuntimeError("abort")
        with db.get_session() as session:
            assert session.get(Team, "red") is None

    def test_foreign_keys_enforced(self, db):
        with pytest.raises(IntegrityError):
            with db.get_session() as session:
                session.add(TeamMember(team_id="missing", user_id="alice"))

    def test_drop_tables(self, db):
        db.drop_tables()
        assert inspect(db.engine).get_table_names() == []


class TestGlobalDatabase:
    """Tests for the shared instance."""

    def test_get_db_is_cached(self, tmp_path):
        reset_db()
        try:
            first = get_db(str(tmp_path / "c.db"))
            assert get_db() is first
            assert "challenges" in inspect(first.engine).get_table_names()
        finally:
            reset_db()
