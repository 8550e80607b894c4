"""Challenge and leaderboard engine.

Provides functionality for:
- Creating time-boxed fitness challenges with multiple requirements
- Tracking participant progress from activity events
- Ranking participants and teams on deterministic leaderboards
- Issuing challenge rewards exactly once
"""

from .engine import ChallengeEngine, ChallengeLocks

__all__ = [
    "ChallengeEngine",
    "ChallengeLocks",
]
