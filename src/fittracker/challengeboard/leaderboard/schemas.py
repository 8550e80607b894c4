"""Pydantic schemas for leaderboards."""

from typing import Optional

from pydantic import BaseModel


class LeaderboardEntry(BaseModel):
    """One participant's standing. Derived; only ever cached."""

    user_id: str
    score: float
    progress_percent: float
    rank: int
    team: Optional[str] = None
    completed: bool = False
