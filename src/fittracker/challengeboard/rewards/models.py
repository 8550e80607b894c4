"""SQLAlchemy models for earned rewards.

Tables:
- achievements: Immutable records of rewards granted to users
"""

from typing import Optional

from sqlalchemy import Float, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ..db.models import Base, generate_uuid, now_iso


class Achievement(Base):
    """Achievement model - one granted reward for one user in one challenge."""

    __tablename__ = "achievements"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    challenge_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("challenges.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    reward_id: Mapped[str] = mapped_column(String(64), nullable=False)

    earned_at: Mapped[str] = mapped_column(String(32), nullable=False, default=now_iso)

    # Copied from the reward when granted
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    image_url: Mapped[Optional[str]] = mapped_column(Text)
    reward_type: Mapped[str] = mapped_column(String(30), nullable=False)
    condition: Mapped[str] = mapped_column(String(20), nullable=False)
    value: Mapped[float] = mapped_column(Float, default=0)

    # A reward is granted at most once per user and challenge
    __table_args__ = (
        UniqueConstraint("user_id", "challenge_id", "reward_id", name="uq_achievement"),
    )

    def __repr__(self) -> str:
        return (
            f"<Achievement(user_id={self.user_id}, challenge_id={self.challenge_id}, "
            f"reward_id={self.reward_id})>"
        )
