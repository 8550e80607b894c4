"""Pydantic schemas for teams."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class TeamCreate(BaseModel):
    """Schema for creating a team."""

    id: Optional[str] = Field(None, min_length=1, max_length=64)
    name: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    captain: Optional[str] = None
    color: Optional[str] = Field(None, max_length=20)
    motto: Optional[str] = None
    members: list[str] = Field(default_factory=list)


class TeamResponse(BaseModel):
    """Schema for team responses."""

    id: str
    name: str
    description: str
    captain: Optional[str] = None
    color: Optional[str] = None
    motto: Optional[str] = None
    members: list[str]
    created_at: datetime


class TeamStanding(BaseModel):
    """A team's derived totals and rank within one challenge."""

    team_id: str
    name: Optional[str] = None
    members: list[str]
    total_score: float
    average_score: float
    rank: int
