"""Tests for leaderboard ranking."""

import itertools
from datetime import datetime, timedelta, timezone

import pytest

from fittracker.challengeboard.challenges import ChallengeStore, ProgressMetric, UnknownChallenge
from fittracker.challengeboard.challenges.models import ChallengeRequirement, Participant
from fittracker.challengeboard.db.models import to_iso
from fittracker.challengeboard.leaderboard import (
    LeaderboardRanker,
    rank_participants,
    score_progress,
)

T0 = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def requirement(req_id, target):
    return ChallengeRequirement(id=req_id, requirement_type="steps", target=target)


def participant(user_id, progress, minutes=0, team=None):
    p = Participant(
        challenge_id="c",
        user_id=user_id,
        joined_at=to_iso(T0 + timedelta(minutes=minutes)),
        team=team,
        completed=False,
    )
    p.set_progress(progress)
    return p


class TestScoreProgress:
    """Tests for score_progress."""

    @pytest.fixture
    def requirements(self):
        return [requirement("a", 100), requirement("b", 10)]

    def test_total_is_raw_sum(self, requirements):
        score, percent = score_progress({"a": 50, "b": 10}, requirements, ProgressMetric.TOTAL)
        assert score == 60
        assert percent == 75

    def test_percent_caps_each_requirement(self, requirements):
        score, percent = score_progress(
            {"a": 300, "b": 0}, requirements, ProgressMetric.COMPLETION_RATE
        )
        assert percent == 50
        assert score == 50

    def test_average_scores_by_percent(self, requirements):
        score, _ = score_progress({"a": 25, "b": 5}, requirements, ProgressMetric.AVERAGE)
        assert score == pytest.approx(37.5)

    def test_no_progress(self, requirements):
        assert score_progress({}, requirements, ProgressMetric.TOTAL) == (0.0, 0.0)


class TestRankParticipants:
    """Tests for rank_participants."""

    @pytest.fixture
    def requirements(self):
        return [requirement("steps", 1000)]

    def test_higher_score_first(self, requirements):
        entries = rank_participants(
            [participant("u1", {"steps": 10}), participant("u2", {"steps": 30}, minutes=1)],
            requirements,
            ProgressMetric.TOTAL,
        )
        assert [(e.user_id, e.rank) for e in entries] == [("u2", 1), ("u1", 2)]

    def test_tie_goes_to_earlier_joiner(self, requirements):
        entries = rank_participants(
            [participant("a", {"steps": 20}, minutes=5), participant("b", {"steps": 20})],
            requirements,
            ProgressMetric.TOTAL,
        )
        assert [e.user_id for e in entries] == ["b", "a"]

    def test_full_tie_goes_to_smaller_id(self, requirements):
        entries = rank_participants(
            [participant("zed", {"steps": 20}), participant("amy", {"steps": 20})],
            requirements,
            ProgressMetric.TOTAL,
        )
        assert [e.user_id for e in entries] == ["amy", "zed"]

    def test_ranks_are_dense_and_unique(self, requirements):
        roster = [participant(f"u{i}", {"steps": i % 3}, minutes=i % 2) for i in range(12)]
        entries = rank_participants(roster, requirements, ProgressMetric.TOTAL)
        assert [e.rank for e in entries] == list(range(1, 13))
        assert len({e.user_id for e in entries}) == 12

    def test_input_order_does_not_matter(self, requirements):
        roster = [
            participant("a", {"steps": 5}, minutes=2),
            participant("b", {"steps": 5}, minutes=1),
            participant("c", {"steps": 9}, minutes=3),
            participant("d", {"steps": 5}, minutes=1),
        ]
        expected = rank_participants(roster, requirements, ProgressMetric.TOTAL)
        for ordering in itertools.permutations(roster):
            assert rank_participants(list(ordering), requirements, ProgressMetric.TOTAL) == expected

    def test_entry_carries_team_and_completion(self, requirements):
        p = participant("a", {"steps": 1000}, team="red")
        p.completed = True
        (entry,) = rank_participants([p], requirements, ProgressMetric.TOTAL)
        assert entry.team == "red"
        assert entry.completed
        assert entry.progress_percent == 100

    def test_empty_roster(self, requirements):
        assert rank_participants([], requirements, ProgressMetric.TOTAL) == []


class TestLeaderboardRanker:
    """Tests for recomputing from the database."""

    @pytest.fixture
    def store(self, clock):
        return ChallengeStore(clock=clock)

    def test_recompute_streams_whole_roster(self, session, store, challenge_data, clock):
        challenge = store.create(session, challenge_data())
        for i in range(7):
            p = store.join(session, challenge.id, f"user{i}")
            p.set_progress({"reps": float(i * 10)})
            clock.advance(seconds=1)
        session.flush()

        entries = LeaderboardRanker(batch_size=2).recompute(session, challenge.id)

        assert [e.user_id for e in entries] == [f"user{i}" for i in reversed(range(7))]
        assert entries[0].score == 60

    def test_left_participants_are_not_ranked(self, session, store, challenge_data):
        challenge = store.create(session, challenge_data())
        store.join(session, challenge.id, "alice")
        store.join(session, challenge.id, "bob")
        store.leave(session, challenge.id, "alice")

        entries = LeaderboardRanker().recompute(session, challenge.id)
        assert [e.user_id for e in entries] == ["bob"]

    def test_unknown_challenge(self, session):
        with pytest.raises(UnknownChallenge):
            LeaderboardRanker().recompute(session, "nope")
