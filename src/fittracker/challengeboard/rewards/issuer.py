"""Reward issuing for challenges."""

import logging
from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..challenges.errors import UnknownChallenge
from ..challenges.manager import find_participant
from ..challenges.models import Challenge, ChallengeReward, Participant
from ..challenges.schemas import ChallengeStatus, RewardCondition
from ..db.models import to_iso, utc_now
from ..leaderboard.ranker import LeaderboardRanker, rank_of
from ..leaderboard.schemas import LeaderboardEntry
from .models import Achievement

logger = logging.getLogger(__name__)


class RewardIssuer:
    """Grants challenge rewards, at most once per user, challenge and reward."""

    def __init__(
        self,
        ranker: Optional[LeaderboardRanker] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize reward issuer.

        Args:
            ranker: Ranker used for top_3 / top_10 rewards when the caller
                does not pass a final leaderboard
            clock: Returns the current time
        """
        self.ranker = ranker or LeaderboardRanker()
        self.clock = clock or utc_now

    def award_if_eligible(
        self,
        session: Session,
        challenge_id: str,
        user_id: str,
        leaderboard: Optional[Sequence[LeaderboardEntry]] = None,
    ) -> list[Achievement]:
        """Grant every reward the user currently qualifies for.

        - participation: the user is on the roster
        - completion: the user's participant record is completed
        - top_3 / top_10: the challenge has reached ``completed`` and the
          user's rank on the final leaderboard is within the cutoff

        Rewards already granted are skipped silently. Users who left the
        challenge qualify for nothing further.

        Args:
            session: Database session
            challenge_id: Challenge ID
            user_id: User ID
            leaderboard: Final standings, if the caller already has them

        Returns:
            Achievements created by this call
        """
        challenge = session.get(Challenge, challenge_id)
        if challenge is None:
            raise UnknownChallenge(challenge_id)

        participant = find_participant(session, challenge_id, user_id)
        if participant is None:
            logger.debug("No active participant %s in %s; nothing to award", user_id, challenge_id)
            return []

        now = self.clock()
        final = challenge.status_at(now) == ChallengeStatus.COMPLETED
        rank: Optional[int] = None

        awarded = []
        for reward in challenge.rewards:
            condition = RewardCondition(reward.condition)

            if condition.rank_cutoff is not None:
                if not final:
                    continue
                if rank is None:
                    if leaderboard is None:
                        leaderboard = self.ranker.recompute(session, challenge_id)
                    rank = rank_of(leaderboard, user_id)
                if rank is None or rank > condition.rank_cutoff:
                    continue
            elif not self._is_eligible(condition, participant):
                continue

            achievement = self._grant(session, participant, reward, now)
            if achievement is not None:
                awarded.append(achievement)

        return awarded

    @staticmethod
    def _is_eligible(condition: RewardCondition, participant: Participant) -> bool:
        if condition == RewardCondition.PARTICIPATION:
            return True
        if condition == RewardCondition.COMPLETION:
            return participant.completed
        return False

    def _grant(
        self,
        session: Session,
        participant: Participant,
        reward: ChallengeReward,
        now: datetime,
    ) -> Optional[Achievement]:
        """Create the achievement unless it already exists."""
        if self.has_achievement(session, participant.user_id, reward.challenge_id, reward.id):
            logger.debug(
                "Reward %s already granted to %s in %s",
                reward.id,
                participant.user_id,
                reward.challenge_id,
            )
            return None

        achievement = Achievement(
            user_id=participant.user_id,
            challenge_id=reward.challenge_id,
            reward_id=reward.id,
            earned_at=to_iso(now),
            title=reward.name,
            description=reward.description,
            image_url=reward.image_url,
            reward_type=reward.reward_type,
            condition=reward.condition,
            value=reward.value,
        )
        session.add(achievement)
        session.flush()

        logger.info(
            "Granted %s reward %s to %s in %s",
            reward.condition,
            reward.id,
            participant.user_id,
            reward.challenge_id,
        )
        return achievement

    def has_achievement(
        self, session: Session, user_id: str, challenge_id: str, reward_id: str
    ) -> bool:
        """Check whether a reward was already granted."""
        stmt = select(Achievement.id).where(
            Achievement.user_id == user_id,
            Achievement.challenge_id == challenge_id,
            Achievement.reward_id == reward_id,
        )
        return session.execute(stmt).first() is not None

    def get_achievements(
        self,
        session: Session,
        user_id: str,
        challenge_id: Optional[str] = None,
    ) -> list[Achievement]:
        """Get a user's achievements, most recent first.

        Args:
            session: Database session
            user_id: User ID
            challenge_id: Restrict to one challenge

        Returns:
            List of achievements
        """
        stmt = select(Achievement).where(Achievement.user_id == user_id)
        if challenge_id:
            stmt = stmt.where(Achievement.challenge_id == challenge_id)
        stmt = stmt.order_by(Achievement.earned_at.desc(), Achievement.reward_id)
        return list(session.execute(stmt).scalars().all())
