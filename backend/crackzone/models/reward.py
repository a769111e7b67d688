"""Rewards and claims."""

from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import JSON, Boolean, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from crackzone.models.base import Base, TimestampMixin, UUIDMixin, UTCDateTime, enum_column, utcnow


class RewardType(str, Enum):
    COINS = "COINS"
    EXPERIENCE = "EXPERIENCE"
    BADGE = "BADGE"
    ITEM = "ITEM"


class Reward(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "rewards"

    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[RewardType] = mapped_column(enum_column(RewardType), nullable=False, index=True)
    value: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    # RewardRequirements document
    requirements: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class UserReward(Base, UUIDMixin):
    """A user's one-time claim of a reward."""

    __tablename__ = "user_rewards"
    __table_args__ = (UniqueConstraint("user_id", "reward_id"),)

    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )
    reward_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("rewards.id"),
        nullable=False,
        index=True,
    )
    claimed: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    claimed_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        default=utcnow,
        nullable=False,
    )

    reward: Mapped[Reward] = relationship(lazy="raise")
