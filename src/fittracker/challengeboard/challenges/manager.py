"""Challenge store for challenge definitions and rosters."""

import logging
import math
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Optional, Union

from pydantic import ValidationError
from sqlalchemy import Select, and_, func, or_, select
from sqlalchemy.orm import Session

from ..db.models import from_iso, to_iso, utc_now
from .errors import (
    CapacityExceeded,
    ChallengeClosed,
    DuplicateParticipant,
    InvalidChallenge,
    UnknownChallenge,
    UnknownParticipant,
)
from .models import Challenge, ChallengeRequirement, ChallengeReward, Participant
from .schemas import (
    ChallengeCreate,
    ChallengeFilter,
    ChallengeResponse,
    ChallengeStatus,
    ParticipantResponse,
    RequirementResponse,
    RewardResponse,
)

if TYPE_CHECKING:
    from ..rewards.issuer import RewardIssuer

logger = logging.getLogger(__name__)


def roster_statement(challenge_id: str) -> Select:
    """Select the current participants of a challenge."""
    return (
        select(Participant)
        .where(
            Participant.challenge_id == challenge_id,
            Participant.left_at.is_(None),
        )
        .order_by(Participant.joined_at, Participant.user_id)
    )


def find_participant(
    session: Session, challenge_id: str, user_id: str
) -> Optional[Participant]:
    """Get a user's current participant record, if they are on the roster."""
    stmt = select(Participant).where(
        Participant.challenge_id == challenge_id,
        Participant.user_id == user_id,
        Participant.left_at.is_(None),
    )
    return session.execute(stmt).scalar_one_or_none()


def status_clause(status: ChallengeStatus, now: datetime):
    """SQL condition matching challenges whose derived status is ``status``.

    Mirrors ``resolve_status``; stored timestamps are fixed-width UTC
    strings, so they compare correctly as text.
    """
    now_str = to_iso(now)
    if status == ChallengeStatus.CANCELLED:
        return Challenge.cancelled_at.is_not(None)

    live = Challenge.cancelled_at.is_(None)
    if status == ChallengeStatus.COMPLETED:
        return and_(live, Challenge.end_date < now_str)
    if status == ChallengeStatus.ACTIVE:
        return and_(live, Challenge.start_date <= now_str, Challenge.end_date >= now_str)
    return and_(live, Challenge.start_date > now_str)


class ChallengeStore:
    """Repository of challenges and their participants.

    Every method works inside the caller's session so that a whole
    operation commits or rolls back as one unit.
    """

    def __init__(
        self,
        issuer: Optional["RewardIssuer"] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize challenge store.

        Args:
            issuer: Reward issuer notified when users join
            clock: Returns the current time
        """
        self.issuer = issuer
        self.clock = clock or utc_now

    # -------------------------------------------------------------------------
    # Challenge definitions
    # -------------------------------------------------------------------------

    def create(
        self, session: Session, data: Union[ChallengeCreate, dict]
    ) -> Challenge:
        """Create a new challenge.

        Args:
            session: Database session
            data: Challenge definition, as a schema or a raw payload

        Returns:
            Created challenge

        Raises:
            InvalidChallenge: The definition is malformed, the dates are out
                of order, a requirement target is not positive, or the id is
                taken
        """
        if isinstance(data, dict):
            try:
                data = ChallengeCreate.model_validate(data)
            except ValidationError as e:
                raise InvalidChallenge(f"Invalid challenge definition: {e}") from e

        start_date = from_iso(to_iso(data.start_date))
        end_date = from_iso(to_iso(data.end_date))
        self._validate(data, start_date, end_date)

        if data.id and session.get(Challenge, data.id) is not None:
            raise InvalidChallenge(
                f"Challenge id already exists: {data.id}", challenge_id=data.id
            )

        duration = data.duration
        if duration is None:
            duration = math.ceil((end_date - start_date) / timedelta(days=1))

        challenge = Challenge(
            title=data.title,
            description=data.description,
            challenge_type=data.challenge_type.value,
            category=data.category.value,
            difficulty=data.difficulty.value,
            duration=duration,
            start_date=to_iso(start_date),
            end_date=to_iso(end_date),
            progress_metric=data.progress_metric.value,
            progress_unit=data.progress_unit,
            max_participants=data.max_participants,
            created_by=data.created_by,
            featured=data.featured,
            image_url=data.image_url,
            created_at=to_iso(self.clock()),
        )
        if data.id:
            challenge.id = data.id
        challenge.set_tags(data.tags)

        for position, req in enumerate(data.requirements):
            challenge.requirements.append(
                ChallengeRequirement(
                    id=req.id or f"req_{position + 1}",
                    position=position,
                    requirement_type=req.requirement_type.value,
                    target=req.target,
                    unit=req.unit,
                    description=req.description,
                    exercise_id=req.exercise_id,
                )
            )

        for position, reward in enumerate(data.rewards):
            challenge.rewards.append(
                ChallengeReward(
                    id=reward.id or f"reward_{position + 1}",
                    position=position,
                    reward_type=reward.reward_type.value,
                    name=reward.name,
                    description=reward.description,
                    value=reward.value,
                    condition=reward.condition.value,
                    image_url=reward.image_url,
                )
            )

        session.add(challenge)
        session.flush()

        logger.info("Created challenge %s (%s)", challenge.id, challenge.title)
        return challenge

    @staticmethod
    def _validate(data: ChallengeCreate, start_date: datetime, end_date: datetime) -> None:
        """Reject definitions the engine cannot run."""
        if end_date <= start_date:
            raise InvalidChallenge("end_date must be after start_date", challenge_id=data.id)

        if not data.requirements:
            raise InvalidChallenge(
                "A challenge needs at least one requirement", challenge_id=data.id
            )

        for req in data.requirements:
            if not math.isfinite(req.target) or req.target <= 0:
                raise InvalidChallenge(
                    f"Requirement target must be positive, got {req.target}",
                    challenge_id=data.id,
                )

        requirement_ids = [r.id or f"req_{i + 1}" for i, r in enumerate(data.requirements)]
        if len(requirement_ids) != len(set(requirement_ids)):
            raise InvalidChallenge("Duplicate requirement ids", challenge_id=data.id)

        reward_ids = [r.id or f"reward_{i + 1}" for i, r in enumerate(data.rewards)]
        if len(reward_ids) != len(set(reward_ids)):
            raise InvalidChallenge("Duplicate reward ids", challenge_id=data.id)

        if data.max_participants is not None and data.max_participants < 1:
            raise InvalidChallenge(
                "max_participants must be at least 1", challenge_id=data.id
            )

        if data.duration is not None and data.duration < 1:
            raise InvalidChallenge("duration must be at least 1 day", challenge_id=data.id)

    def get(self, session: Session, challenge_id: str) -> Challenge:
        """Get a challenge by ID.

        Raises:
            UnknownChallenge: No such challenge
        """
        challenge = session.get(Challenge, challenge_id)
        if challenge is None:
            raise UnknownChallenge(challenge_id)
        return challenge

    def status(self, challenge: Challenge) -> ChallengeStatus:
        """Resolve a challenge's status now."""
        return challenge.status_at(self.clock())

    def cancel(self, session: Session, challenge_id: str) -> Challenge:
        """Cancel a challenge. Cancellation is terminal.

        Raises:
            UnknownChallenge: No such challenge
            ChallengeClosed: Already completed or cancelled
        """
        challenge = self.get(session, challenge_id)
        status = self.status(challenge)
        if status.is_terminal:
            raise ChallengeClosed(challenge_id, status.value)

        challenge.cancelled_at = to_iso(self.clock())
        session.flush()

        logger.info("Cancelled challenge %s", challenge_id)
        return challenge

    # -------------------------------------------------------------------------
    # Roster
    # -------------------------------------------------------------------------

    def join(
        self,
        session: Session,
        challenge_id: str,
        user_id: str,
        team: Optional[str] = None,
    ) -> Participant:
        """Add a user to a challenge and grant participation rewards.

        Args:
            session: Database session
            challenge_id: Challenge ID
            user_id: User ID
            team: Optional team tag

        Returns:
            The new participant record

        Raises:
            UnknownChallenge: No such challenge
            ChallengeClosed: Challenge is completed or cancelled
            DuplicateParticipant: User already on the roster
            CapacityExceeded: Roster is at max_participants
        """
        challenge = self.get(session, challenge_id)
        status = self.status(challenge)
        if status.is_terminal:
            raise ChallengeClosed(challenge_id, status.value)

        if find_participant(session, challenge_id, user_id) is not None:
            raise DuplicateParticipant(challenge_id, user_id)

        if challenge.max_participants is not None:
            if self.count_participants(session, challenge_id) >= challenge.max_participants:
                raise CapacityExceeded(challenge_id, challenge.max_participants)

        participant = Participant(
            challenge_id=challenge_id,
            user_id=user_id,
            joined_at=to_iso(self.clock()),
            team=team,
            completed=False,
        )
        participant.set_progress({})
        session.add(participant)
        session.flush()

        logger.info("User %s joined challenge %s", user_id, challenge_id)

        if self.issuer is not None:
            self.issuer.award_if_eligible(session, challenge_id, user_id)

        return participant

    def leave(self, session: Session, challenge_id: str, user_id: str) -> Participant:
        """Take a user off a challenge roster.

        The participant row and any achievements already earned are kept.

        Raises:
            UnknownChallenge: No such challenge
            ChallengeClosed: Challenge is completed or cancelled
            UnknownParticipant: User is not on the roster
        """
        challenge = self.get(session, challenge_id)
        status = self.status(challenge)
        if status.is_terminal:
            raise ChallengeClosed(challenge_id, status.value)

        participant = self.get_participant(session, challenge_id, user_id)
        participant.left_at = to_iso(self.clock())
        session.flush()

        logger.info("User %s left challenge %s", user_id, challenge_id)
        return participant

    def get_participant(
        self, session: Session, challenge_id: str, user_id: str
    ) -> Participant:
        """Get a user's participant record.

        Raises:
            UnknownParticipant: User is not on the roster
        """
        participant = find_participant(session, challenge_id, user_id)
        if participant is None:
            raise UnknownParticipant(challenge_id, user_id)
        return participant

    def roster(self, session: Session, challenge_id: str) -> list[Participant]:
        """Get the current participants, in join order."""
        return list(session.execute(roster_statement(challenge_id)).scalars().all())

    def count_participants(self, session: Session, challenge_id: str) -> int:
        """Count the current participants."""
        stmt = select(func.count(Participant.id)).where(
            Participant.challenge_id == challenge_id,
            Participant.left_at.is_(None),
        )
        return session.execute(stmt).scalar() or 0

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def list_challenges(
        self,
        session: Session,
        status: Optional[ChallengeStatus] = None,
    ) -> list[Challenge]:
        """List challenges, soonest start first.

        Args:
            session: Database session
            status: Filter by derived status

        Returns:
            List of challenges
        """
        stmt = select(Challenge)
        if status:
            stmt = stmt.where(status_clause(status, self.clock()))
        stmt = stmt.order_by(Challenge.start_date, Challenge.id)
        return list(session.execute(stmt).scalars().all())

    def active_challenges(self, session: Session) -> list[Challenge]:
        """Active challenges, featured first, then soonest to end."""
        stmt = (
            select(Challenge)
            .where(status_clause(ChallengeStatus.ACTIVE, self.clock()))
            .order_by(Challenge.featured.desc(), Challenge.end_date, Challenge.id)
        )
        return list(session.execute(stmt).scalars().all())

    def upcoming_challenges(self, session: Session) -> list[Challenge]:
        """Upcoming challenges, soonest to start first."""
        return self.list_challenges(session, ChallengeStatus.UPCOMING)

    def user_challenges(self, session: Session, user_id: str) -> list[Challenge]:
        """Challenges a user is currently enrolled in."""
        stmt = (
            select(Challenge)
            .join(Participant, Participant.challenge_id == Challenge.id)
            .where(Participant.user_id == user_id, Participant.left_at.is_(None))
            .order_by(Challenge.end_date, Challenge.id)
        )
        return list(session.execute(stmt).scalars().all())

    def search(self, session: Session, query: str) -> list[Challenge]:
        """Search challenges by title, description or tag.

        Args:
            session: Database session
            query: Case-insensitive search text

        Returns:
            Matching challenges
        """
        pattern = f"%{query.lower()}%"
        stmt = (
            select(Challenge)
            .where(
                or_(
                    func.lower(Challenge.title).like(pattern),
                    func.lower(Challenge.description).like(pattern),
                    func.lower(Challenge.tags).like(pattern),
                )
            )
            .order_by(Challenge.start_date, Challenge.id)
        )
        return list(session.execute(stmt).scalars().all())

    def filter(self, session: Session, filters: ChallengeFilter) -> list[Challenge]:
        """List challenges matching every non-empty filter."""
        stmt = select(Challenge)
        if filters.types:
            stmt = stmt.where(Challenge.challenge_type.in_([t.value for t in filters.types]))
        if filters.categories:
            stmt = stmt.where(Challenge.category.in_([c.value for c in filters.categories]))
        if filters.difficulties:
            stmt = stmt.where(
                Challenge.difficulty.in_([d.value for d in filters.difficulties])
            )
        if filters.statuses:
            now = self.clock()
            stmt = stmt.where(or_(*(status_clause(s, now) for s in filters.statuses)))
        stmt = stmt.order_by(Challenge.start_date, Challenge.id)
        return list(session.execute(stmt).scalars().all())

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def to_response(self, session: Session, challenge: Challenge) -> ChallengeResponse:
        """Build the response for a challenge with its status resolved now."""
        participants = {
            p.user_id: participant_response(p) for p in self.roster(session, challenge.id)
        }
        return ChallengeResponse(
            id=challenge.id,
            title=challenge.title,
            description=challenge.description,
            challenge_type=challenge.challenge_type,
            category=challenge.category,
            difficulty=challenge.difficulty,
            duration=challenge.duration,
            start_date=challenge.starts_at,
            end_date=challenge.ends_at,
            status=self.status(challenge),
            requirements=[
                RequirementResponse.model_validate(r) for r in challenge.requirements
            ],
            rewards=[RewardResponse.model_validate(r) for r in challenge.rewards],
            participants=participants,
            progress_metric=challenge.progress_metric,
            progress_unit=challenge.progress_unit,
            max_participants=challenge.max_participants,
            created_by=challenge.created_by,
            created_at=from_iso(challenge.created_at),
            featured=challenge.featured,
            tags=challenge.get_tags(),
            image_url=challenge.image_url,
            cancelled_at=from_iso(challenge.cancelled_at),
        )


def participant_response(participant: Participant) -> ParticipantResponse:
    """Build the response for a participant record."""
    return ParticipantResponse(
        user_id=participant.user_id,
        joined_at=participant.joined,
        progress=participant.get_progress(),
        completed=participant.completed,
        completed_at=from_iso(participant.completed_at),
        team=participant.team,
    )
