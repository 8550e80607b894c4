"""Fitness challenges module.

Provides functionality for:
- Creating challenges with ordered requirements and rewards
- Joining, leaving and cancelling challenges
- Resolving challenge status from dates and cancellation
"""

from .errors import (
    CapacityExceeded,
    ChallengeClosed,
    ChallengeError,
    DuplicateParticipant,
    DuplicateTeam,
    InvalidChallenge,
    InvalidProgressDelta,
    UnknownChallenge,
    UnknownParticipant,
    UnknownRequirement,
    UnknownTeam,
)
from .manager import ChallengeStore
from .models import Challenge, ChallengeRequirement, ChallengeReward, Participant, resolve_status
from .schemas import (
    ChallengeCategory,
    ChallengeCreate,
    ChallengeDifficulty,
    ChallengeFilter,
    ChallengeResponse,
    ChallengeStatus,
    ChallengeType,
    ParticipantResponse,
    ProgressMetric,
    RequirementCreate,
    RequirementType,
    RewardCondition,
    RewardCreate,
    RewardType,
    UserStats,
)

__all__ = [
    "ChallengeStore",
    "Challenge",
    "ChallengeRequirement",
    "ChallengeReward",
    "Participant",
    "resolve_status",
    "ChallengeError",
    "InvalidChallenge",
    "UnknownChallenge",
    "DuplicateParticipant",
    "CapacityExceeded",
    "ChallengeClosed",
    "UnknownParticipant",
    "UnknownRequirement",
    "InvalidProgressDelta",
    "UnknownTeam",
    "DuplicateTeam",
    "ChallengeCategory",
    "ChallengeCreate",
    "ChallengeDifficulty",
    "ChallengeFilter",
    "ChallengeResponse",
    "ChallengeStatus",
    "ChallengeType",
    "ParticipantResponse",
    "ProgressMetric",
    "RequirementCreate",
    "RequirementType",
    "RewardCondition",
    "RewardCreate",
    "RewardType",
    "UserStats",
]
