"""Pydantic schemas for achievements."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from ..challenges.schemas import RewardCondition, RewardType


class AchievementResponse(BaseModel):
    """Schema for achievement responses."""

    id: str
    user_id: str
    challenge_id: str
    reward_id: str
    earned_at: datetime
    title: str
    description: str
    image_url: Optional[str] = None
    reward_type: RewardType
    condition: RewardCondition
    value: float

    model_config = {"from_attributes": True}
