"""SQLAlchemy models for fitness challenges.

Tables:
- challenges: Challenge definitions and cached standings
- challenge_requirements: Ordered quantitative targets per challenge
- challenge_rewards: Rewards a challenge can grant
- challenge_participants: Enrollment and progress records
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..db.models import (
    Base,
    dump_json,
    from_iso,
    generate_uuid,
    load_json,
    now_iso,
)
from .schemas import ChallengeStatus


def resolve_status(
    now: datetime,
    start_date: datetime,
    end_date: datetime,
    cancelled: bool = False,
) -> ChallengeStatus:
    """Derive a challenge's status from the clock and its dates.

    Cancellation wins over everything. Otherwise a challenge is upcoming
    before ``start_date``, active from ``start_date`` through ``end_date``
    and completed once ``now`` is past ``end_date``.
    """
    if cancelled:
        return ChallengeStatus.CANCELLED
    if now > end_date:
        return ChallengeStatus.COMPLETED
    if now >= start_date:
        return ChallengeStatus.ACTIVE
    return ChallengeStatus.UPCOMING


class Challenge(Base):
    """Challenge model - stores challenge definitions."""

    __tablename__ = "challenges"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=generate_uuid)
    title: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, default="")

    challenge_type: Mapped[str] = mapped_column(String(20), default="individual", index=True)
    category: Mapped[str] = mapped_column(String(20), default="workout")
    difficulty: Mapped[str] = mapped_column(String(20), default="Medium")

    # Time window, ISO timestamps in UTC
    duration: Mapped[int] = mapped_column(Integer, default=0)  # days
    start_date: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    end_date: Mapped[str] = mapped_column(String(32), nullable=False, index=True)

    # Only cancellation is stored; status is derived from dates
    cancelled_at: Mapped[Optional[str]] = mapped_column(String(32))
    # Set once the final leaderboard rewards have been issued
    finalized_at: Mapped[Optional[str]] = mapped_column(String(32))

    progress_metric: Mapped[str] = mapped_column(String(20), default="total")
    progress_unit: Mapped[str] = mapped_column(String(50), default="")
    max_participants: Mapped[Optional[int]] = mapped_column(Integer)

    # Meta
    created_by: Mapped[str] = mapped_column(String(64), default="system")
    featured: Mapped[bool] = mapped_column(Boolean, default=False)
    tags: Mapped[Optional[str]] = mapped_column(Text)  # JSON array
    image_url: Mapped[Optional[str]] = mapped_column(Text)

    # Derived standings cache (JSON), rewritten after every mutation
    leaderboard: Mapped[Optional[str]] = mapped_column(Text)
    team_standings: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[str] = mapped_column(String(32), default=now_iso)
    updated_at: Mapped[str] = mapped_column(String(32), default=now_iso, onupdate=now_iso)

    requirements: Mapped[list["ChallengeRequirement"]] = relationship(
        "ChallengeRequirement",
        back_populates="challenge",
        cascade="all, delete-orphan",
        order_by="ChallengeRequirement.position",
        lazy="selectin",
    )
    rewards: Mapped[list["ChallengeReward"]] = relationship(
        "ChallengeReward",
        back_populates="challenge",
        cascade="all, delete-orphan",
        order_by="ChallengeReward.position",
        lazy="selectin",
    )
    participants: Mapped[list["Participant"]] = relationship(
        "Participant", back_populates="challenge", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Challenge(id={self.id}, title='{self.title}')>"

    def get_tags(self) -> list[str]:
        """Get tags as list."""
        return load_json(self.tags, [])

    def set_tags(self, tags: list[str]) -> None:
        """Set tags from list."""
        self.tags = dump_json(tags) if tags else None

    def get_leaderboard(self) -> Optional[list[dict]]:
        """Get the cached leaderboard entries, if computed."""
        return load_json(self.leaderboard)

    def set_leaderboard(self, entries: list[dict]) -> None:
        self.leaderboard = dump_json(entries)

    def get_team_standings(self) -> Optional[list[dict]]:
        """Get the cached team standings, if computed."""
        return load_json(self.team_standings)

    def set_team_standings(self, standings: list[dict]) -> None:
        self.team_standings = dump_json(standings)

    @property
    def starts_at(self) -> datetime:
        return from_iso(self.start_date)

    @property
    def ends_at(self) -> datetime:
        return from_iso(self.end_date)

    def status_at(self, now: datetime) -> ChallengeStatus:
        """Resolve the status at a given instant."""
        return resolve_status(
            now, self.starts_at, self.ends_at, cancelled=self.cancelled_at is not None
        )

    def get_requirement(self, requirement_id: str) -> Optional["ChallengeRequirement"]:
        """Look up a requirement by id."""
        for requirement in self.requirements:
            if requirement.id == requirement_id:
                return requirement
        return None


class ChallengeRequirement(Base):
    """A single quantitative target a participant must meet."""

    __tablename__ = "challenge_requirements"

    challenge_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("challenges.id", ondelete="CASCADE"),
        primary_key=True,
    )
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    requirement_type: Mapped[str] = mapped_column(String(30), nullable=False)
    target: Mapped[float] = mapped_column(Float, nullable=False)
    unit: Mapped[str] = mapped_column(String(30), default="")
    description: Mapped[str] = mapped_column(Text, default="")

    # Only events for this exercise count, when set
    exercise_id: Mapped[Optional[str]] = mapped_column(String(64))

    challenge: Mapped["Challenge"] = relationship("Challenge", back_populates="requirements")

    def __repr__(self) -> str:
        return f"<ChallengeRequirement(id={self.id}, {self.target} {self.unit})>"


class ChallengeReward(Base):
    """A reward offered by a challenge."""

    __tablename__ = "challenge_rewards"

    challenge_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("challenges.id", ondelete="CASCADE"),
        primary_key=True,
    )
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    reward_type: Mapped[str] = mapped_column(String(30), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    value: Mapped[float] = mapped_column(Float, default=0)
    condition: Mapped[str] = mapped_column(String(20), nullable=False)
    image_url: Mapped[Optional[str]] = mapped_column(Text)

    challenge: Mapped["Challenge"] = relationship("Challenge", back_populates="rewards")

    def __repr__(self) -> str:
        return f"<ChallengeReward(id={self.id}, condition={self.condition})>"


class Participant(Base):
    """A user's enrollment in a challenge.

    Rows are never deleted. Leaving stamps ``left_at`` and takes the row off
    the roster; a later re-join creates a fresh row.
    """

    __tablename__ = "challenge_participants"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    challenge_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("challenges.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    joined_at: Mapped[str] = mapped_column(String(32), nullable=False, default=now_iso)
    left_at: Mapped[Optional[str]] = mapped_column(String(32))

    # requirement id -> accumulated value (JSON object)
    progress: Mapped[Optional[str]] = mapped_column(Text)
    completed: Mapped[bool] = mapped_column(Boolean, default=False)
    completed_at: Mapped[Optional[str]] = mapped_column(String(32))

    team: Mapped[Optional[str]] = mapped_column(String(64), index=True)

    challenge: Mapped["Challenge"] = relationship("Challenge", back_populates="participants")

    __table_args__ = (
        Index("ix_participant_roster", "challenge_id", "left_at", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<Participant(challenge_id={self.challenge_id}, user_id={self.user_id})>"

    def get_progress(self) -> dict[str, float]:
        """Get progress as dict."""
        return load_json(self.progress, {})

    def set_progress(self, progress: dict[str, float]) -> None:
        """Set progress from dict."""
        self.progress = dump_json(progress)

    def progress_for(self, requirement_id: str) -> float:
        """Accumulated value for one requirement, zero if never reported."""
        return self.get_progress().get(requirement_id, 0.0)

    @property
    def is_active(self) -> bool:
        """Check if the participant is still on the roster."""
        return self.left_at is None

    @property
    def joined(self) -> datetime:
        return from_iso(self.joined_at)
