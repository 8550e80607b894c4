"""Progress aggregation for challenge participants."""

import logging
import math
from collections.abc import Callable
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ..challenges.errors import (
    ChallengeClosed,
    InvalidProgressDelta,
    UnknownChallenge,
    UnknownParticipant,
    UnknownRequirement,
)
from ..challenges.manager import find_participant
from ..challenges.models import Challenge, Participant
from ..db.models import to_iso, utc_now
from ..rewards.issuer import RewardIssuer
from ..rewards.schemas import AchievementResponse
from .schemas import ProgressResult

logger = logging.getLogger(__name__)


def meets_all_targets(challenge: Challenge, progress: dict[str, float]) -> bool:
    """Check every requirement's accumulated value against its target."""
    return all(
        progress.get(requirement.id, 0.0) >= requirement.target
        for requirement in challenge.requirements
    )


class ProgressAggregator:
    """Applies progress deltas. The only writer of participant progress."""

    def __init__(
        self,
        issuer: Optional[RewardIssuer] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize progress aggregator.

        Args:
            issuer: Reward issuer notified when a participant completes
            clock: Returns the current time
        """
        self.issuer = issuer
        self.clock = clock or utc_now

    def update_progress(
        self,
        session: Session,
        challenge_id: str,
        user_id: str,
        requirement_id: str,
        delta: float,
    ) -> ProgressResult:
        """Add an amount accomplished to a participant's requirement.

        Deltas are increments, never absolute values, so accumulated
        progress only grows. When the last unmet requirement reaches its
        target the participant is marked completed, once, and completion
        rewards are issued.

        Args:
            session: Database session
            challenge_id: Challenge ID
            user_id: User ID
            requirement_id: Requirement the delta counts toward
            delta: Amount accomplished since the last report

        Returns:
            ProgressResult with the accumulated value

        Raises:
            InvalidProgressDelta: delta is negative or not finite
            UnknownChallenge: No such challenge
            ChallengeClosed: Challenge is completed or cancelled
            UnknownRequirement: Requirement not part of the challenge
            UnknownParticipant: User is not on the roster
        """
        if not math.isfinite(delta) or delta < 0:
            raise InvalidProgressDelta(delta, challenge_id=challenge_id)

        challenge = session.get(Challenge, challenge_id)
        if challenge is None:
            raise UnknownChallenge(challenge_id)

        now = self.clock()
        status = challenge.status_at(now)
        if status.is_terminal:
            raise ChallengeClosed(challenge_id, status.value)

        if challenge.get_requirement(requirement_id) is None:
            raise UnknownRequirement(challenge_id, requirement_id)

        participant = find_participant(session, challenge_id, user_id)
        if participant is None:
            raise UnknownParticipant(challenge_id, user_id)

        progress = participant.get_progress()
        progress[requirement_id] = progress.get(requirement_id, 0.0) + delta
        participant.set_progress(progress)

        newly_completed = self._check_completion(challenge, participant, progress, now)
        session.flush()

        awarded = []
        if newly_completed and self.issuer is not None:
            awarded = self.issuer.award_if_eligible(session, challenge_id, user_id)

        return ProgressResult(
            challenge_id=challenge_id,
            user_id=user_id,
            requirement_id=requirement_id,
            delta=delta,
            value=progress[requirement_id],
            completed=participant.completed,
            newly_completed=newly_completed,
            awarded=[AchievementResponse.model_validate(a) for a in awarded],
        )

    def _check_completion(
        self,
        challenge: Challenge,
        participant: Participant,
        progress: dict[str, float],
        now: datetime,
    ) -> bool:
        """Flip ``completed`` when all targets are met. Never flips back."""
        if participant.completed or not meets_all_targets(challenge, progress):
            return False

        participant.completed = True
        participant.completed_at = to_iso(now)
        logger.info("User %s completed challenge %s", participant.user_id, challenge.id)
        return True
