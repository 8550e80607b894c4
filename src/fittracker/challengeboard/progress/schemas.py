"""Pydantic schemas for progress updates."""

from pydantic import BaseModel, Field

from ..rewards.schemas import AchievementResponse


class ProgressResult(BaseModel):
    """Outcome of applying one progress delta."""

    challenge_id: str
    user_id: str
    requirement_id: str
    delta: float
    value: float  # accumulated after the delta
    completed: bool
    newly_completed: bool = False
    awarded: list[AchievementResponse] = Field(default_factory=list)
