"""Teams module.

Provides functionality for:
- Creating teams and managing membership
- Rolling up member standings into team totals for team challenges
"""

from .aggregator import TeamAggregator
from .manager import TeamManager
from .models import Team, TeamMember
from .schemas import TeamCreate, TeamResponse, TeamStanding

__all__ = [
    "TeamAggregator",
    "TeamManager",
    "Team",
    "TeamMember",
    "TeamCreate",
    "TeamResponse",
    "TeamStanding",
]
