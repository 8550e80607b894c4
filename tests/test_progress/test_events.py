"""Tests for activity event mapping."""

from datetime import timedelta

import pytest

from fittracker.challengeboard.challenges import ChallengeStore, RequirementType
from fittracker.challengeboard.progress import (
    ActivityEvent,
    matching_requirements,
    requirement_type_for,
)
from fittracker.challengeboard.progress.events import in_window


class TestRequirementTypeFor:
    """Tests for metric name lookup."""

    @pytest.mark.parametrize(
        "metric, expected",
        [
            ("steps", RequirementType.STEPS),
            ("Step_Count", RequirementType.STEPS),
            (" reps ", RequirementType.EXERCISE_REPS),
            ("workout_completed", RequirementType.WORKOUT_COUNT),
            ("active_energy", RequirementType.CALORIES_BURNED),
            ("volume", RequirementType.WEIGHT_LIFTED),
            ("active_minutes", RequirementType.DURATION),
        ],
    )
    def test_known_metrics(self, metric, expected):
        assert requirement_type_for(metric) == expected

    def test_unknown_metric(self):
        assert requirement_type_for("heart_rate") is None

    def test_custom_map(self):
        mapping = {"laps": RequirementType.DISTANCE}
        assert requirement_type_for("laps", mapping) == RequirementType.DISTANCE
        assert requirement_type_for("steps", mapping) is None


class TestMatchingRequirements:
    """Tests for picking the requirements an event counts toward."""

    @pytest.fixture
    def challenge(self, session, clock, challenge_data):
        data = challenge_data(
            requirements=[
                {"id": "any_reps", "requirement_type": "exercise_reps", "target": 100},
                {
                    "id": "pushup_reps",
                    "requirement_type": "exercise_reps",
                    "target": 50,
                    "exercise_id": "pushup",
                },
                {"id": "steps", "requirement_type": "steps", "target": 10000},
            ]
        )
        return ChallengeStore(clock=clock).create(session, data)

    def _event(self, clock, metric, exercise_id=None):
        return ActivityEvent(
            user_id="alice",
            metric_type=metric,
            value=10,
            timestamp=clock.now,
            exercise_id=exercise_id,
        )

    def test_unbound_requirement(self, challenge, clock):
        matched = matching_requirements(challenge, self._event(clock, "reps", "squat"))
        assert [r.id for r in matched] == ["any_reps"]

    def test_exercise_bound_requirement(self, challenge, clock):
        matched = matching_requirements(challenge, self._event(clock, "reps", "pushup"))
        assert [r.id for r in matched] == ["any_reps", "pushup_reps"]

    def test_other_type(self, challenge, clock):
        matched = matching_requirements(challenge, self._event(clock, "steps"))
        assert [r.id for r in matched] == ["steps"]

    def test_untracked_metric(self, challenge, clock):
        assert matching_requirements(challenge, self._event(clock, "calories")) == []

    def test_in_window(self, challenge, clock):
        assert in_window(challenge, clock.now)
        assert in_window(challenge, challenge.starts_at)
        assert in_window(challenge, challenge.ends_at)
        assert not in_window(challenge, challenge.starts_at - timedelta(seconds=1))
        assert not in_window(challenge, challenge.ends_at + timedelta(seconds=1))

    def test_naive_timestamp_treated_as_utc(self, challenge, clock):
        assert in_window(challenge, clock.now.replace(tzinfo=None))
