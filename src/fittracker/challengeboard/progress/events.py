"""Activity events emitted by workout, nutrition and step tracking.

Collaborators report what a user accomplished since their last report.
Each event's ``metric_type`` is mapped to the requirement type it counts
toward.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from ..challenges.models import Challenge, ChallengeRequirement
from ..challenges.schemas import RequirementType
from ..db.models import from_iso, to_iso


class ActivityEvent(BaseModel):
    """A raw progress delta from an activity source."""

    user_id: str = Field(..., min_length=1)
    metric_type: str = Field(..., min_length=1)
    value: float
    timestamp: datetime
    exercise_id: Optional[str] = None


# Metric names used by the activity sources
DEFAULT_METRIC_MAP: dict[str, RequirementType] = {
    "workout": RequirementType.WORKOUT_COUNT,
    "workout_completed": RequirementType.WORKOUT_COUNT,
    "workout_count": RequirementType.WORKOUT_COUNT,
    "reps": RequirementType.EXERCISE_REPS,
    "exercise_reps": RequirementType.EXERCISE_REPS,
    "weight": RequirementType.WEIGHT_LIFTED,
    "weight_lifted": RequirementType.WEIGHT_LIFTED,
    "volume": RequirementType.WEIGHT_LIFTED,
    "calories": RequirementType.CALORIES_BURNED,
    "calories_burned": RequirementType.CALORIES_BURNED,
    "active_energy": RequirementType.CALORIES_BURNED,
    "steps": RequirementType.STEPS,
    "step_count": RequirementType.STEPS,
    "distance": RequirementType.DISTANCE,
    "distance_walked": RequirementType.DISTANCE,
    "duration": RequirementType.DURATION,
    "active_minutes": RequirementType.DURATION,
}


def requirement_type_for(
    metric_type: str,
    metric_map: Optional[dict[str, RequirementType]] = None,
) -> Optional[RequirementType]:
    """Look up the requirement type an activity metric counts toward.

    Args:
        metric_type: Metric name reported by the activity source
        metric_map: Mapping to use instead of ``DEFAULT_METRIC_MAP``

    Returns:
        The requirement type, or None for metrics no challenge tracks
    """
    mapping = DEFAULT_METRIC_MAP if metric_map is None else metric_map
    return mapping.get(metric_type.strip().lower())


def matching_requirements(
    challenge: Challenge,
    event: ActivityEvent,
    metric_map: Optional[dict[str, RequirementType]] = None,
) -> list[ChallengeRequirement]:
    """Requirements of a challenge that an event counts toward.

    A requirement bound to an exercise only accepts events for that
    exercise; unbound requirements accept every event of their type.
    """
    requirement_type = requirement_type_for(event.metric_type, metric_map)
    if requirement_type is None:
        return []

    return [
        requirement
        for requirement in challenge.requirements
        if requirement.requirement_type == requirement_type.value
        and (requirement.exercise_id is None or requirement.exercise_id == event.exercise_id)
    ]


def in_window(challenge: Challenge, timestamp: datetime) -> bool:
    """Check if an event happened within the challenge's dates."""
    timestamp = from_iso(to_iso(timestamp))
    return challenge.starts_at <= timestamp <= challenge.ends_at
