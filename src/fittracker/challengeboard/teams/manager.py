"""Team manager for team definitions and membership."""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..challenges.errors import DuplicateTeam, UnknownTeam
from ..db.models import from_iso, to_iso, utc_now
from .models import Team, TeamMember
from .schemas import TeamCreate, TeamResponse

logger = logging.getLogger(__name__)


class TeamManager:
    """Manages teams and their members."""

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self.clock = clock or utc_now

    def create_team(self, session: Session, data: TeamCreate) -> Team:
        """Create a new team.

        Args:
            session: Database session
            data: Team creation data

        Returns:
            Created team

        Raises:
            DuplicateTeam: A team with the requested id exists
        """
        if data.id and session.get(Team, data.id) is not None:
            raise DuplicateTeam(data.id)

        now = to_iso(self.clock())
        team = Team(
            name=data.name,
            description=data.description,
            captain=data.captain,
            color=data.color,
            motto=data.motto,
            created_at=now,
        )
        if data.id:
            team.id = data.id

        members = list(dict.fromkeys(data.members))
        if data.captain and data.captain not in members:
            members.insert(0, data.captain)
        for user_id in members:
            team.members.append(TeamMember(user_id=user_id, joined_at=now))

        session.add(team)
        session.flush()

        logger.info("Created team %s (%s)", team.id, team.name)
        return team

    def get_team(self, session: Session, team_id: str) -> Team:
        """Get a team by ID.

        Raises:
            UnknownTeam: No such team
        """
        team = session.get(Team, team_id)
        if team is None:
            raise UnknownTeam(team_id)
        return team

    def list_teams(self, session: Session) -> list[Team]:
        """List all teams by name."""
        stmt = select(Team).order_by(Team.name, Team.id)
        return list(session.execute(stmt).scalars().all())

    def user_teams(self, session: Session, user_id: str) -> list[Team]:
        """Teams a user belongs to."""
        stmt = (
            select(Team)
            .join(TeamMember, TeamMember.team_id == Team.id)
            .where(TeamMember.user_id == user_id)
            .order_by(Team.name, Team.id)
        )
        return list(session.execute(stmt).scalars().all())

    def join_team(self, session: Session, team_id: str, user_id: str) -> bool:
        """Add a user to a team.

        Returns:
            True if added, False if already a member

        Raises:
            UnknownTeam: No such team
        """
        team = self.get_team(session, team_id)
        if user_id in team.member_ids:
            return False

        team.members.append(TeamMember(user_id=user_id, joined_at=to_iso(self.clock())))
        session.flush()

        logger.info("User %s joined team %s", user_id, team_id)
        return True

    def leave_team(self, session: Session, team_id: str, user_id: str) -> bool:
        """Remove a user from a team.

        Returns:
            True if removed, False if not a member

        Raises:
            UnknownTeam: No such team
        """
        team = self.get_team(session, team_id)
        for member in team.members:
            if member.user_id == user_id:
                team.members.remove(member)
                session.flush()
                logger.info("User %s left team %s", user_id, team_id)
                return True
        return False

    def ensure_member(self, session: Session, team_id: str, user_id: str) -> bool:
        """Add a user to a team if the team exists.

        Team tags on challenge participants need not name a registered
        team; unknown tags are left alone. Returns False when the user
        is already a member.
        """
        if session.get(Team, team_id) is None:
            return False

        # team_members is shared by every challenge; a join from another
        # challenge may have inserted the same row first
        try:
            with session.begin_nested():
                return self.join_team(session, team_id, user_id)
        except IntegrityError:
            logger.debug("User %s already on team %s", user_id, team_id)
            return False


def team_response(team: Team) -> TeamResponse:
    """Build the response for a team."""
    return TeamResponse(
        id=team.id,
        name=team.name,
        description=team.description,
        captain=team.captain,
        color=team.color,
        motto=team.motto,
        members=team.member_ids,
        created_at=from_iso(team.created_at),
    )
