"""Challenge engine: the entry point for every challenge operation.

Each operation on a challenge runs while holding that challenge's lock and
inside a single database transaction, so progress, completion, rewards and
standings are written together or not at all. Operations on different
challenges share no lock and can run in parallel.
"""

import logging
import math
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime
from functools import partial
from threading import Lock, RLock
from typing import Optional, TypeVar, Union

from sqlalchemy import select
from sqlalchemy.orm import Session

from .challenges.errors import InvalidProgressDelta
from .challenges.manager import ChallengeStore, find_participant, participant_response
from .challenges.models import Challenge
from .challenges.schemas import (
    ChallengeCreate,
    ChallengeFilter,
    ChallengeResponse,
    ChallengeStatus,
    ParticipantResponse,
    RequirementType,
    UserStats,
)
from .config import Config, get_config
from .db.models import to_iso, utc_now
from .db.sqlite import Database, get_db
from .leaderboard.ranker import LeaderboardRanker
from .leaderboard.schemas import LeaderboardEntry
from .progress.aggregator import ProgressAggregator
from .progress.events import ActivityEvent, in_window, matching_requirements, requirement_type_for
from .progress.schemas import ProgressResult
from .rewards.issuer import RewardIssuer
from .rewards.schemas import AchievementResponse
from .teams.aggregator import TeamAggregator
from .teams.manager import TeamManager, team_response
from .teams.schemas import TeamCreate, TeamResponse, TeamStanding

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ChallengeLocks:
    """One re-entrant lock per challenge id."""

    def __init__(self):
        self._locks: dict[str, RLock] = {}
        self._guard = Lock()

    def get(self, challenge_id: str) -> RLock:
        """Get the lock for a challenge, creating it on first use."""
        with self._guard:
            lock = self._locks.get(challenge_id)
            if lock is None:
                lock = self._locks[challenge_id] = RLock()
            return lock

    @contextmanager
    def hold(self, challenge_id: str) -> Iterator[None]:
        """Hold a challenge's lock for the duration of the block."""
        with self.get(challenge_id):
            yield


class ChallengeEngine:
    """Coordinates the challenge store, progress, rewards and standings."""

    def __init__(
        self,
        db: Optional[Database] = None,
        config: Optional[Config] = None,
        clock: Optional[Callable[[], datetime]] = None,
        metric_map: Optional[dict[str, RequirementType]] = None,
    ):
        """Initialize challenge engine.

        Args:
            db: Database instance
            config: Configuration; defaults to the environment
            clock: Returns the current time; defaults to UTC now
            metric_map: Activity metric to requirement type mapping;
                defaults to ``DEFAULT_METRIC_MAP``
        """
        self.db = db or get_db()
        self.config = config or get_config()
        self.clock = clock or utc_now
        self.metric_map = metric_map

        self.ranker = LeaderboardRanker(batch_size=self.config.leaderboard_batch_size)
        self.issuer = RewardIssuer(ranker=self.ranker, clock=self.clock)
        self.store = ChallengeStore(issuer=self.issuer, clock=self.clock)
        self.progress = ProgressAggregator(issuer=self.issuer, clock=self.clock)
        self.teams = TeamManager(clock=self.clock)
        self.team_aggregator = TeamAggregator(ranker=self.ranker)
        self.locks = ChallengeLocks()

    # -------------------------------------------------------------------------
    # Units of work
    # -------------------------------------------------------------------------

    def _run(self, challenge_id: str, operation: Callable[[Session], T]) -> T:
        """Run an operation on one challenge atomically and exclusively."""
        with self.locks.hold(challenge_id):
            self._settle(challenge_id)
            with self.db.get_session() as session:
                return operation(session)

    def _settle(self, challenge_id: str) -> bool:
        """Apply the completed-transition side effects if they are due.

        Runs in its own transaction so they persist even when the
        operation that follows is rejected.

        Returns:
            True if the challenge was finalized by this call
        """
        with self.locks.hold(challenge_id), self.db.get_session() as session:
            challenge = session.get(Challenge, challenge_id)
            if challenge is None or challenge.finalized_at is not None:
                return False
            if challenge.status_at(self.clock()) != ChallengeStatus.COMPLETED:
                return False
            self._finalize(session, challenge)
            return True

    def _finalize(self, session: Session, challenge: Challenge) -> None:
        """Issue final-rank rewards from the final leaderboard, once."""
        entries = self._refresh_standings(session, challenge.id)
        for entry in entries:
            self.issuer.award_if_eligible(session, challenge.id, entry.user_id, leaderboard=entries)
        challenge.finalized_at = to_iso(self.clock())
        session.flush()
        logger.info("Finalized challenge %s with %d participants", challenge.id, len(entries))

    def _refresh_standings(self, session: Session, challenge_id: str) -> list[LeaderboardEntry]:
        """Recompute and cache the leaderboard and team standings."""
        challenge = self.store.get(session, challenge_id)
        entries = self.ranker.recompute(session, challenge_id)
        standings = self.team_aggregator.recompute(session, challenge_id, entries)

        challenge.set_leaderboard([e.model_dump() for e in entries])
        challenge.set_team_standings([s.model_dump() for s in standings])
        session.flush()
        return entries

    # -------------------------------------------------------------------------
    # Challenge lifecycle
    # -------------------------------------------------------------------------

    def create_challenge(self, data: Union[ChallengeCreate, dict]) -> ChallengeResponse:
        """Create a new challenge.

        Args:
            data: Challenge definition

        Returns:
            Created challenge
        """
        with self.db.get_session() as session:
            challenge = self.store.create(session, data)
            self._refresh_standings(session, challenge.id)
            return self.store.to_response(session, challenge)

    def cancel(self, challenge_id: str) -> ChallengeResponse:
        """Cancel a challenge; every later write fails with ChallengeClosed."""

        def _cancel(session: Session) -> ChallengeResponse:
            challenge = self.store.cancel(session, challenge_id)
            return self.store.to_response(session, challenge)

        return self._run(challenge_id, _cancel)

    def join(
        self, challenge_id: str, user_id: str, team: Optional[str] = None
    ) -> ParticipantResponse:
        """Join a challenge.

        Args:
            challenge_id: Challenge ID
            user_id: User ID
            team: Optional team tag; if it names a registered team the user
                is added to that team

        Returns:
            The new participant
        """

        def _join(session: Session) -> ParticipantResponse:
            participant = self.store.join(session, challenge_id, user_id, team=team)
            if team:
                self.teams.ensure_member(session, team, user_id)
            self._refresh_standings(session, challenge_id)
            return participant_response(participant)

        return self._run(challenge_id, _join)

    def leave(self, challenge_id: str, user_id: str) -> ParticipantResponse:
        """Leave a challenge. Earned achievements are kept.

        Returns:
            The participant record as it stood when the user left
        """

        def _leave(session: Session) -> ParticipantResponse:
            participant = self.store.leave(session, challenge_id, user_id)
            self._refresh_standings(session, challenge_id)
            return participant_response(participant)

        return self._run(challenge_id, _leave)

    # -------------------------------------------------------------------------
    # Progress
    # -------------------------------------------------------------------------

    def update_progress(
        self,
        challenge_id: str,
        user_id: str,
        requirement_id: str,
        delta: float,
    ) -> ProgressResult:
        """Add progress toward one requirement and refresh standings.

        Args:
            challenge_id: Challenge ID
            user_id: User ID
            requirement_id: Requirement ID
            delta: Amount accomplished since the last report

        Returns:
            ProgressResult
        """

        def _update(session: Session) -> ProgressResult:
            result = self.progress.update_progress(
                session, challenge_id, user_id, requirement_id, delta
            )
            self._refresh_standings(session, challenge_id)
            return result

        return self._run(challenge_id, _update)

    def record_activity(self, event: ActivityEvent) -> list[ProgressResult]:
        """Apply an activity event to every challenge it counts toward.

        The event counts toward the user's active challenges whose dates
        contain the event timestamp, once for each matching requirement.
        Each challenge is updated in its own unit of work.

        Args:
            event: Activity event from a tracking source

        Returns:
            One result per requirement updated
        """
        if not math.isfinite(event.value) or event.value < 0:
            raise InvalidProgressDelta(event.value)

        if requirement_type_for(event.metric_type, self.metric_map) is None:
            logger.debug("Ignoring untracked metric %s", event.metric_type)
            return []

        with self.db.get_session() as session:
            challenge_ids = [c.id for c in self.store.user_challenges(session, event.user_id)]

        results: list[ProgressResult] = []
        for challenge_id in challenge_ids:
            apply = partial(self._apply_event, challenge_id=challenge_id, event=event)
            results.extend(self._run(challenge_id, apply))
        return results

    def _apply_event(
        self, session: Session, challenge_id: str, event: ActivityEvent
    ) -> list[ProgressResult]:
        challenge = self.store.get(session, challenge_id)
        if self.store.status(challenge) != ChallengeStatus.ACTIVE:
            return []
        if not in_window(challenge, event.timestamp):
            return []
        if find_participant(session, challenge_id, event.user_id) is None:
            return []

        results = [
            self.progress.update_progress(
                session, challenge_id, event.user_id, requirement.id, event.value
            )
            for requirement in matching_requirements(challenge, event, self.metric_map)
        ]
        if results:
            self._refresh_standings(session, challenge_id)
        return results

    # -------------------------------------------------------------------------
    # Rewards
    # -------------------------------------------------------------------------

    def award_if_eligible(self, challenge_id: str, user_id: str) -> list[AchievementResponse]:
        """Grant whatever rewards the user qualifies for and lacks.

        Returns:
            Achievements created by this call; empty when nothing is due
        """

        def _award(session: Session) -> list[AchievementResponse]:
            awarded = self.issuer.award_if_eligible(session, challenge_id, user_id)
            return [AchievementResponse.model_validate(a) for a in awarded]

        return self._run(challenge_id, _award)

    def get_achievements(self, user_id: str) -> list[AchievementResponse]:
        """Get a user's achievements, most recent first."""
        self.finalize_due()
        with self.db.get_session() as session:
            return [
                AchievementResponse.model_validate(a)
                for a in self.issuer.get_achievements(session, user_id)
            ]

    def finalize_due(self) -> list[str]:
        """Finalize every challenge that has ended but not been finalized.

        Meant to be run by a scheduler at or after end dates; reads also
        finalize lazily, so running it is never required.

        Returns:
            IDs of the challenges finalized
        """
        now = to_iso(self.clock())
        with self.db.get_session() as session:
            stmt = select(Challenge.id).where(
                Challenge.cancelled_at.is_(None),
                Challenge.finalized_at.is_(None),
                Challenge.end_date < now,
            )
            due = list(session.execute(stmt).scalars().all())

        return [challenge_id for challenge_id in due if self._settle(challenge_id)]

    # -------------------------------------------------------------------------
    # Standings
    # -------------------------------------------------------------------------

    def recompute_leaderboard(self, challenge_id: str) -> list[LeaderboardEntry]:
        """Recompute and cache a challenge's standings."""
        return self._run(challenge_id, lambda s: self._refresh_standings(s, challenge_id))

    def get_leaderboard(self, challenge_id: str) -> list[LeaderboardEntry]:
        """Get a challenge's leaderboard, ordered by rank."""

        def _get(session: Session) -> list[LeaderboardEntry]:
            challenge = self.store.get(session, challenge_id)
            cached = challenge.get_leaderboard()
            if cached is None:
                return self._refresh_standings(session, challenge_id)
            return [LeaderboardEntry.model_validate(e) for e in cached]

        return self._run(challenge_id, _get)

    def get_team_standings(self, challenge_id: str) -> list[TeamStanding]:
        """Get a team challenge's team standings, ordered by rank."""

        def _get(session: Session) -> list[TeamStanding]:
            challenge = self.store.get(session, challenge_id)
            if challenge.get_team_standings() is None:
                self._refresh_standings(session, challenge_id)
            return [TeamStanding.model_validate(s) for s in challenge.get_team_standings()]

        return self._run(challenge_id, _get)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_challenge(self, challenge_id: str) -> ChallengeResponse:
        """Get a challenge with its status resolved now."""
        return self._run(
            challenge_id,
            lambda s: self.store.to_response(s, self.store.get(s, challenge_id)),
        )

    def _responses(self, query: Callable[[Session], list[Challenge]]) -> list[ChallengeResponse]:
        with self.db.get_session() as session:
            return [self.store.to_response(session, c) for c in query(session)]

    def list_challenges(self, status: Optional[ChallengeStatus] = None) -> list[ChallengeResponse]:
        """List challenges, optionally by status."""
        return self._responses(lambda s: self.store.list_challenges(s, status))

    def get_active_challenges(self) -> list[ChallengeResponse]:
        """Active challenges, featured first, then soonest to end."""
        return self._responses(self.store.active_challenges)

    def get_upcoming_challenges(self) -> list[ChallengeResponse]:
        """Upcoming challenges, soonest to start first."""
        return self._responses(self.store.upcoming_challenges)

    def get_user_challenges(self, user_id: str) -> list[ChallengeResponse]:
        """Challenges a user is enrolled in."""
        return self._responses(lambda s: self.store.user_challenges(s, user_id))

    def search_challenges(self, query: str) -> list[ChallengeResponse]:
        """Search challenges by title, description or tag."""
        return self._responses(lambda s: self.store.search(s, query))

    def filter_challenges(self, filters: ChallengeFilter) -> list[ChallengeResponse]:
        """List challenges matching the filters."""
        return self._responses(lambda s: self.store.filter(s, filters))

    def get_user_stats(self, user_id: str) -> UserStats:
        """Summarize a user's challenge activity."""
        achievements = self.get_achievements(user_id)
        with self.db.get_session() as session:
            challenges = self.store.user_challenges(session, user_id)
            completed = sum(
                1
                for c in challenges
                if self.store.get_participant(session, c.id, user_id).completed
            )
            teams = self.teams.user_teams(session, user_id)

        return UserStats(
            user_id=user_id,
            challenges_joined=len(challenges),
            challenges_completed=completed,
            achievements_earned=len(achievements),
            teams_joined=len(teams),
            total_points=sum(a.value for a in achievements),
        )

    # -------------------------------------------------------------------------
    # Teams
    # -------------------------------------------------------------------------

    def create_team(self, data: TeamCreate) -> TeamResponse:
        """Create a team."""
        with self.db.get_session() as session:
            return team_response(self.teams.create_team(session, data))

    def get_team(self, team_id: str) -> TeamResponse:
        """Get a team by ID."""
        with self.db.get_session() as session:
            return team_response(self.teams.get_team(session, team_id))

    def list_teams(self) -> list[TeamResponse]:
        """List all teams."""
        with self.db.get_session() as session:
            return [team_response(t) for t in self.teams.list_teams(session)]

    def get_user_teams(self, user_id: str) -> list[TeamResponse]:
        """Teams a user belongs to."""
        with self.db.get_session() as session:
            return [team_response(t) for t in self.teams.user_teams(session, user_id)]

    def join_team(self, team_id: str, user_id: str) -> bool:
        """Add a user to a team."""
        with self.db.get_session() as session:
            return self.teams.join_team(session, team_id, user_id)

    def leave_team(self, team_id: str, user_id: str) -> bool:
        """Remove a user from a team."""
        with self.db.get_session() as session:
            return self.teams.leave_team(session, team_id, user_id)
