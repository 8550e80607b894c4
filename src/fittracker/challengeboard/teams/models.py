"""SQLAlchemy models for teams.

Tables:
- teams: Team definitions
- team_members: Users belonging to a team
"""

from typing import Optional

from sqlalchemy import ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..db.models import Base, generate_uuid, now_iso


class Team(Base):
    """Team model - a named group competing in team challenges.

    Scores are not stored here; they are derived per challenge.
    """

    __tablename__ = "teams"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, default="")
    captain: Mapped[Optional[str]] = mapped_column(String(64))
    color: Mapped[Optional[str]] = mapped_column(String(20))
    motto: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[str] = mapped_column(String(32), default=now_iso)

    members: Mapped[list["TeamMember"]] = relationship(
        "TeamMember",
        back_populates="team",
        cascade="all, delete-orphan",
        order_by="TeamMember.user_id",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Team(id={self.id}, name='{self.name}')>"

    @property
    def member_ids(self) -> list[str]:
        return [m.user_id for m in self.members]


class TeamMember(Base):
    """Association of a user with a team."""

    __tablename__ = "team_members"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    team_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("teams.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    joined_at: Mapped[str] = mapped_column(String(32), default=now_iso)

    team: Mapped["Team"] = relationship("Team", back_populates="members")

    # A user appears once per team
    __table_args__ = (UniqueConstraint("team_id", "user_id", name="uq_team_member"),)

    def __repr__(self) -> str:
        return f"<TeamMember(team_id={self.team_id}, user_id={self.user_id})>"
