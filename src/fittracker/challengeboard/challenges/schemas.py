"""Pydantic schemas for fitness challenges."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ChallengeType(str, Enum):
    """Who competes in a challenge."""

    INDIVIDUAL = "individual"
    TEAM = "team"
    GLOBAL = "global"


class ChallengeCategory(str, Enum):
    """Kind of fitness activity a challenge targets."""

    WORKOUT = "workout"
    NUTRITION = "nutrition"
    STEPS = "steps"
    STRENGTH = "strength"
    ENDURANCE = "endurance"
    CONSISTENCY = "consistency"


class ChallengeDifficulty(str, Enum):
    """Difficulty label shown to users."""

    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"
    EXTREME = "Extreme"


class ChallengeStatus(str, Enum):
    """Lifecycle status of a challenge. Derived, never stored."""

    UPCOMING = "upcoming"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """Completed and cancelled challenges accept no further writes."""
        return self in (ChallengeStatus.COMPLETED, ChallengeStatus.CANCELLED)


class ProgressMetric(str, Enum):
    """How leaderboard scores are computed."""

    TOTAL = "total"  # Sum of raw progress
    AVERAGE = "average"  # Mean capped completion percentage
    COMPLETION_RATE = "completion_rate"  # Same as average


class RequirementType(str, Enum):
    """Quantity measured by a requirement."""

    WORKOUT_COUNT = "workout_count"
    EXERCISE_REPS = "exercise_reps"
    WEIGHT_LIFTED = "weight_lifted"
    CALORIES_BURNED = "calories_burned"
    STEPS = "steps"
    DISTANCE = "distance"
    DURATION = "duration"


class RewardType(str, Enum):
    """What a reward grants."""

    BADGE = "badge"
    POINTS = "points"
    TITLE = "title"
    STREAK_MULTIPLIER = "streak_multiplier"


class RewardCondition(str, Enum):
    """When a reward is granted."""

    COMPLETION = "completion"
    TOP_3 = "top_3"
    TOP_10 = "top_10"
    PARTICIPATION = "participation"

    @property
    def rank_cutoff(self) -> Optional[int]:
        """Highest rank that qualifies, for rank-based conditions."""
        return {RewardCondition.TOP_3: 3, RewardCondition.TOP_10: 10}.get(self)


class RequirementCreate(BaseModel):
    """A single quantitative target within a challenge."""

    id: Optional[str] = Field(None, min_length=1, max_length=64)
    requirement_type: RequirementType
    target: float
    unit: str = ""
    description: str = ""
    exercise_id: Optional[str] = None


class RewardCreate(BaseModel):
    """A reward offered by a challenge."""

    id: Optional[str] = Field(None, min_length=1, max_length=64)
    reward_type: RewardType
    name: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    value: float = 0
    condition: RewardCondition
    image_url: Optional[str] = None


class ChallengeCreate(BaseModel):
    """Schema for creating a challenge.

    Date ordering, requirement targets and capacity are checked by
    ``ChallengeStore.create`` so that they fail with ``InvalidChallenge``.
    """

    id: Optional[str] = Field(None, min_length=1, max_length=64)
    title: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    challenge_type: ChallengeType = ChallengeType.INDIVIDUAL
    category: ChallengeCategory = ChallengeCategory.WORKOUT
    difficulty: ChallengeDifficulty = ChallengeDifficulty.MEDIUM
    duration: Optional[int] = Field(None, description="Length in days; derived if omitted")
    start_date: datetime
    end_date: datetime
    requirements: list[RequirementCreate]
    rewards: list[RewardCreate] = Field(default_factory=list)
    progress_metric: ProgressMetric = ProgressMetric.TOTAL
    progress_unit: str = ""
    max_participants: Optional[int] = None
    created_by: str = "system"
    featured: bool = False
    tags: list[str] = Field(default_factory=list)
    image_url: Optional[str] = None


class RequirementResponse(BaseModel):
    """Schema for requirement responses."""

    id: str
    requirement_type: RequirementType
    target: float
    unit: str
    description: str
    exercise_id: Optional[str] = None

    model_config = {"from_attributes": True}


class RewardResponse(BaseModel):
    """Schema for reward responses."""

    id: str
    reward_type: RewardType
    name: str
    description: str
    value: float
    condition: RewardCondition
    image_url: Optional[str] = None

    model_config = {"from_attributes": True}


class ParticipantResponse(BaseModel):
    """A user's enrollment and progress within one challenge."""

    user_id: str
    joined_at: datetime
    progress: dict[str, float]
    completed: bool
    completed_at: Optional[datetime] = None
    team: Optional[str] = None


class ChallengeResponse(BaseModel):
    """Schema for challenge responses, with status resolved at read time."""

    id: str
    title: str
    description: str
    challenge_type: ChallengeType
    category: ChallengeCategory
    difficulty: ChallengeDifficulty
    duration: int
    start_date: datetime
    end_date: datetime
    status: ChallengeStatus
    requirements: list[RequirementResponse]
    rewards: list[RewardResponse]
    participants: dict[str, ParticipantResponse]
    progress_metric: ProgressMetric
    progress_unit: str
    max_participants: Optional[int] = None
    created_by: str
    created_at: datetime
    featured: bool
    tags: list[str]
    image_url: Optional[str] = None
    cancelled_at: Optional[datetime] = None

    @property
    def participant_count(self) -> int:
        return len(self.participants)


class ChallengeFilter(BaseModel):
    """Filters for listing challenges. Empty lists match everything."""

    types: list[ChallengeType] = Field(default_factory=list)
    categories: list[ChallengeCategory] = Field(default_factory=list)
    difficulties: list[ChallengeDifficulty] = Field(default_factory=list)
    statuses: list[ChallengeStatus] = Field(default_factory=list)


class UserStats(BaseModel):
    """Per-user challenge statistics."""

    user_id: str
    challenges_joined: int
    challenges_completed: int
    achievements_earned: int
    teams_joined: int
    total_points: float
