"""Team standings for team challenges."""

from collections.abc import Sequence
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..challenges.errors import UnknownChallenge
from ..challenges.models import Challenge, Participant
from ..challenges.schemas import ChallengeType
from ..db.models import from_iso
from ..leaderboard.ranker import LeaderboardRanker, standing_key
from ..leaderboard.schemas import LeaderboardEntry
from .models import Team
from .schemas import TeamStanding


class TeamAggregator:
    """Rolls member scores up into ranked team totals."""

    def __init__(self, ranker: Optional[LeaderboardRanker] = None):
        self.ranker = ranker or LeaderboardRanker()

    def recompute(
        self,
        session: Session,
        challenge_id: str,
        entries: Optional[Sequence[LeaderboardEntry]] = None,
    ) -> list[TeamStanding]:
        """Recompute team standings from the latest leaderboard.

        Participants are grouped by their team tag; untagged participants
        count for no team. A team's total is the sum of its members'
        scores and its average is that total over its member count.
        Teams rank by total, then by their earliest member's join time,
        then by team id.

        Args:
            session: Database session
            challenge_id: Challenge ID
            entries: Leaderboard to aggregate; recomputed when omitted

        Returns:
            Standings ordered by rank; empty for non-team challenges
        """
        challenge = session.get(Challenge, challenge_id)
        if challenge is None:
            raise UnknownChallenge(challenge_id)
        if challenge.challenge_type != ChallengeType.TEAM.value:
            return []

        if entries is None:
            entries = self.ranker.recompute(session, challenge_id)

        joined = self._join_times(session, challenge_id)

        groups: dict[str, dict] = {}
        for entry in entries:
            if not entry.team:
                continue
            group = groups.setdefault(
                entry.team, {"members": [], "total": 0.0, "first_joined": None}
            )
            group["members"].append(entry.user_id)
            group["total"] += entry.score
            member_joined = joined[entry.user_id]
            if group["first_joined"] is None or member_joined < group["first_joined"]:
                group["first_joined"] = member_joined

        ordered = sorted(
            groups.items(),
            key=lambda item: standing_key(item[1]["total"], item[1]["first_joined"], item[0]),
        )

        standings = []
        for position, (team_id, group) in enumerate(ordered, start=1):
            team = session.get(Team, team_id)
            standings.append(
                TeamStanding(
                    team_id=team_id,
                    name=team.name if team else None,
                    members=sorted(group["members"]),
                    total_score=group["total"],
                    average_score=group["total"] / len(group["members"]),
                    rank=position,
                )
            )
        return standings

    @staticmethod
    def _join_times(session: Session, challenge_id: str) -> dict[str, datetime]:
        stmt = select(Participant.user_id, Participant.joined_at).where(
            Participant.challenge_id == challenge_id,
            Participant.left_at.is_(None),
        )
        return {user_id: from_iso(joined_at) for user_id, joined_at in session.execute(stmt)}
