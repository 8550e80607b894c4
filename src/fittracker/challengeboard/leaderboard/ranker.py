"""Leaderboard ranking for challenges.

Standings are recomputed from scratch from the current roster every time.
Nothing here keeps state between calls, so the same roster always yields
the same leaderboard.
"""

from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ..challenges.errors import UnknownChallenge
from ..challenges.manager import roster_statement
from ..challenges.models import Challenge, ChallengeRequirement, Participant
from ..challenges.schemas import ProgressMetric
from .schemas import LeaderboardEntry


def score_progress(
    progress: dict[str, float],
    requirements: Sequence[ChallengeRequirement],
    metric: ProgressMetric,
) -> tuple[float, float]:
    """Score one participant's progress.

    Args:
        progress: Accumulated value per requirement id
        requirements: The challenge's requirements, in order
        metric: Scoring metric of the challenge

    Returns:
        (score, progress_percent). ``progress_percent`` is the mean of the
        per-requirement completion percentages, each capped at 100. The
        score is the raw progress sum for ``total`` and the percentage
        otherwise.
    """
    raw_total = 0.0
    percent_total = 0.0
    for requirement in requirements:
        value = progress.get(requirement.id, 0.0)
        raw_total += value
        percent_total += min(value / requirement.target, 1.0) * 100

    percent = percent_total / len(requirements) if requirements else 0.0
    if metric == ProgressMetric.TOTAL:
        return raw_total, percent
    return percent, percent


def standing_key(score: float, joined_at: datetime, key: str) -> tuple:
    """Sort key giving a total order: higher score, earlier join, smaller id."""
    return (-score, joined_at, key)


def rank_participants(
    participants: Iterable[Participant],
    requirements: Sequence[ChallengeRequirement],
    metric: ProgressMetric,
) -> list[LeaderboardEntry]:
    """Rank a roster.

    Ranks are 1..N with no gaps or duplicates; ties on score go to the
    earlier joiner, then to the lexicographically smaller user id.
    """
    rows = []
    for participant in participants:
        score, percent = score_progress(participant.get_progress(), requirements, metric)
        rows.append(
            (
                standing_key(score, participant.joined, participant.user_id),
                score,
                percent,
                participant,
            )
        )

    rows.sort(key=lambda row: row[0])

    return [
        LeaderboardEntry(
            user_id=participant.user_id,
            score=score,
            progress_percent=percent,
            rank=position,
            team=participant.team,
            completed=participant.completed,
        )
        for position, (_, score, percent, participant) in enumerate(rows, start=1)
    ]


def rank_of(entries: Sequence[LeaderboardEntry], user_id: str) -> Optional[int]:
    """Find a user's rank in a leaderboard."""
    for entry in entries:
        if entry.user_id == user_id:
            return entry.rank
    return None


class LeaderboardRanker:
    """Computes ranked standings for a challenge."""

    def __init__(self, batch_size: int = 500):
        """Initialize ranker.

        Args:
            batch_size: Participants fetched per round trip while streaming
                the roster
        """
        self.batch_size = batch_size

    def recompute(self, session: Session, challenge_id: str) -> list[LeaderboardEntry]:
        """Recompute the leaderboard of a challenge from its current roster.

        Args:
            session: Database session
            challenge_id: Challenge ID

        Returns:
            Entries ordered by rank
        """
        challenge = session.get(Challenge, challenge_id)
        if challenge is None:
            raise UnknownChallenge(challenge_id)

        stmt = roster_statement(challenge_id).execution_options(yield_per=self.batch_size)
        roster = session.execute(stmt).scalars()

        return rank_participants(
            roster,
            challenge.requirements,
            ProgressMetric(challenge.progress_metric),
        )
