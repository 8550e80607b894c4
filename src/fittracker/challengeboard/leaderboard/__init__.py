"""Leaderboard module for ranked challenge standings."""

from .ranker import LeaderboardRanker, rank_participants, score_progress
from .schemas import LeaderboardEntry

__all__ = [
    "LeaderboardRanker",
    "LeaderboardEntry",
    "rank_participants",
    "score_progress",
]
