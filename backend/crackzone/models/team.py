"""Team and membership models."""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from crackzone.models.base import Base, TimestampMixin, UUIDMixin, UTCDateTime, enum_column, utcnow

if TYPE_CHECKING:
    from crackzone.models.user import User


class TeamRole(str, Enum):
    LEADER = "LEADER"
    MEMBER = "MEMBER"


class Team(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "teams"

    name: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    avatar: Mapped[str | None] = mapped_column(String(500), nullable=True)
    avatar_public_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    max_members: Mapped[int] = mapped_column(Integer, default=5, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    members: Mapped[list["TeamMember"]] = relationship(
        back_populates="team",
        lazy="raise",
    )


class TeamMember(Base, UUIDMixin):
    """Membership of a user in a team.

    A user belongs to at most one team; that rule is checked when joining
    or creating, not by a constraint.
    """

    __tablename__ = "team_members"
    __table_args__ = (UniqueConstraint("team_id", "user_id"),)

    team_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("teams.id"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )
    role: Mapped[TeamRole] = mapped_column(
        enum_column(TeamRole),
        default=TeamRole.MEMBER,
        nullable=False,
    )
    joined_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        default=utcnow,
        nullable=False,
    )

    team: Mapped[Team] = relationship(back_populates="members", lazy="raise")
    user: Mapped["User"] = relationship(back_populates="team_memberships", lazy="raise")
