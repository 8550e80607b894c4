"""Tests for the CLI interface."""

import json
from datetime import datetime, timedelta, timezone

import pytest
from typer.testing import CliRunner

from fittracker.challengeboard.cli import app


@pytest.fixture
def runner(cli_env):
    """Create a CLI test runner bound to a temporary database."""
    return CliRunner()


@pytest.fixture
def challenge_file(tmp_path, challenge_data):
    """Write a challenge definition that is active right now."""
    now = datetime.now(timezone.utc)
    payload = challenge_data(
        start_date=(now - timedelta(days=1)).isoformat(),
        end_date=(now + timedelta(days=6)).isoformat(),
        max_participants=2,
    )
    path = tmp_path / "challenge.json"
    path.write_text(json.dumps(payload))
    return path


@pytest.fixture
def created(runner, challenge_file):
    result = runner.invoke(app, ["challenge", "create", "--file", str(challenge_file)])
    assert result.exit_code == 0
    return "pushups"


class TestCLIBasics:
    """Tests for basic CLI functionality."""

    def test_help(self, runner: CliRunner):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "challenge" in result.stdout

    def test_version(self, runner: CliRunner):
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.stdout


class TestChallengeCommands:
    """Tests for the challenge command group."""

    def test_create(self, runner, challenge_file):
        result = runner.invoke(app, ["challenge", "create", "--file", str(challenge_file)])
        assert result.exit_code == 0
        assert "Push-up Month" in result.stdout

    def test_create_missing_file(self, runner, tmp_path):
        result = runner.invoke(
            app, ["challenge", "create", "--file", str(tmp_path / "missing.json")]
        )
        assert result.exit_code == 1
        assert "File not found" in result.stdout

    def test_create_invalid_definition(self, runner, tmp_path, challenge_data):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps(challenge_data(requirements=[])))

        result = runner.invoke(app, ["challenge", "create", "--file", str(path)])
        assert result.exit_code == 1
        assert "Error" in result.stdout

    def test_list(self, runner, created):
        result = runner.invoke(app, ["challenge", "list"])
        assert result.exit_code == 0
        assert "pushups" in result.stdout

    def test_list_by_status(self, runner, created):
        result = runner.invoke(app, ["challenge", "list", "--status", "upcoming"])
        assert result.exit_code == 0
        assert "No challenges found" in result.stdout

    def test_list_invalid_status(self, runner):
        result = runner.invoke(app, ["challenge", "list", "--status", "paused"])
        assert result.exit_code == 1

    def test_show(self, runner, created):
        result = runner.invoke(app, ["challenge", "show", created])
        assert result.exit_code == 0
        assert "Requirements" in result.stdout
        assert "reps" in result.stdout

    def test_show_unknown(self, runner):
        result = runner.invoke(app, ["challenge", "show", "nope"])
        assert result.exit_code == 1
        assert "not found" in result.stdout

    def test_join_and_leaderboard(self, runner, created):
        assert runner.invoke(app, ["challenge", "join", created, "alice"]).exit_code == 0
        assert runner.invoke(app, ["challenge", "join", created, "bob"]).exit_code == 0

        result = runner.invoke(app, ["challenge", "progress", created, "bob", "reps", "40"])
        assert result.exit_code == 0

        result = runner.invoke(app, ["challenge", "leaderboard", created])
        assert result.exit_code == 0
        assert result.stdout.index("bob") < result.stdout.index("alice")

    def test_join_full(self, runner, created):
        runner.invoke(app, ["challenge", "join", created, "alice"])
        runner.invoke(app, ["challenge", "join", created, "bob"])

        result = runner.invoke(app, ["challenge", "join", created, "carol"])
        assert result.exit_code == 1
        assert "full" in result.stdout

    def test_progress_completes(self, runner, created):
        runner.invoke(app, ["challenge", "join", created, "alice"])

        result = runner.invoke(app, ["challenge", "progress", created, "alice", "reps", "100"])
        assert result.exit_code == 0
        assert "Challenge completed" in result.stdout
        assert "Finisher" in result.stdout

    def test_progress_not_joined(self, runner, created):
        result = runner.invoke(app, ["challenge", "progress", created, "zoe", "reps", "5"])
        assert result.exit_code == 1

    def test_leave(self, runner, created):
        runner.invoke(app, ["challenge", "join", created, "alice"])
        result = runner.invoke(app, ["challenge", "leave", created, "alice"])
        assert result.exit_code == 0

    def test_cancel(self, runner, created):
        result = runner.invoke(app, ["challenge", "cancel", created, "--force"])
        assert result.exit_code == 0

        result = runner.invoke(app, ["challenge", "join", created, "alice"])
        assert result.exit_code == 1
        assert "cancelled" in result.stdout

    def test_search(self, runner, created):
        result = runner.invoke(app, ["challenge", "search", "push"])
        assert result.exit_code == 0
        assert "Push-up Month" in result.stdout

    def test_finalize_nothing_due(self, runner, created):
        result = runner.invoke(app, ["challenge", "finalize"])
        assert result.exit_code == 0
        assert "Nothing to finalize" in result.stdout


class TestActivityCommands:
    """Tests for logging activity."""

    def test_log_counts_toward_challenge(self, runner, created):
        runner.invoke(app, ["challenge", "join", created, "alice"])

        result = runner.invoke(app, ["activity", "log", "alice", "reps", "30"])
        assert result.exit_code == 0
        assert "pushups/reps" in result.stdout

    def test_log_untracked(self, runner, created):
        runner.invoke(app, ["challenge", "join", created, "alice"])

        result = runner.invoke(app, ["activity", "log", "alice", "heart_rate", "70"])
        assert result.exit_code == 0
        assert "No active challenge" in result.stdout


class TestTeamCommands:
    """Tests for the team command group."""

    def test_create_and_list(self, runner):
        result = runner.invoke(app, ["team", "create", "Red Rockets", "--id", "red", "-c", "alice"])
        assert result.exit_code == 0

        result = runner.invoke(app, ["team", "list"])
        assert result.exit_code == 0
        assert "Red Rockets" in result.stdout

    def test_join_and_leave(self, runner):
        runner.invoke(app, ["team", "create", "Red", "--id", "red"])

        result = runner.invoke(app, ["team", "join", "red", "bob"])
        assert "joined" in result.stdout
        result = runner.invoke(app, ["team", "join", "red", "bob"])
        assert "already" in result.stdout
        result = runner.invoke(app, ["team", "leave", "red", "bob"])
        assert "left" in result.stdout

    def test_join_unknown_team(self, runner):
        result = runner.invoke(app, ["team", "join", "nope", "bob"])
        assert result.exit_code == 1

    def test_duplicate_team(self, runner):
        runner.invoke(app, ["team", "create", "Red", "--id", "red"])
        result = runner.invoke(app, ["team", "create", "Red", "--id", "red"])
        assert result.exit_code == 1
        assert "already exists" in result.stdout

    def test_create_blank_name(self, runner):
        result = runner.invoke(app, ["team", "create", ""])
        assert result.exit_code == 1
        assert "Invalid team" in result.stdout


class TestUserCommands:
    """Tests for per-user summaries."""

    def test_achievements(self, runner, created):
        runner.invoke(app, ["challenge", "join", created, "alice"])

        result = runner.invoke(app, ["achievements", "alice"])
        assert result.exit_code == 0
        assert "Joined" in result.stdout

    def test_no_achievements(self, runner):
        result = runner.invoke(app, ["achievements", "nobody"])
        assert result.exit_code == 0
        assert "no achievements" in result.stdout

    def test_stats(self, runner, created):
        runner.invoke(app, ["challenge", "join", created, "alice"])

        result = runner.invoke(app, ["stats", "alice"])
        assert result.exit_code == 0
        assert "Challenges joined: 1" in result.stdout
