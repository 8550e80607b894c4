"""Challenge rewards module.

Provides functionality for:
- Granting participation, completion and final-rank rewards
- Looking up a user's achievements
"""

from .issuer import RewardIssuer
from .models import Achievement
from .schemas import AchievementResponse

__all__ = [
    "RewardIssuer",
    "Achievement",
    "AchievementResponse",
]
