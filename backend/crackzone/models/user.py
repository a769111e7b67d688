"""User, profile and game profile models."""

from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from sqlalchemy import JSON, Boolean, Date, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from crackzone.models.base import Base, TimestampMixin, UUIDMixin, UTCDateTime, enum_column

if TYPE_CHECKING:
    from crackzone.models.team import TeamMember


class UserRole(str, Enum):
    """Account role. Roles are independent; none implies another."""

    USER = "USER"
    MODERATOR = "MODERATOR"
    ADMIN = "ADMIN"


class User(Base, UUIDMixin, TimestampMixin):
    """Player account with gamification counters."""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    username: Mapped[str] = mapped_column(String(30), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    first_name: Mapped[str | None] = mapped_column(String(50), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(50), nullable=True)
    avatar: Mapped[str | None] = mapped_column(String(500), nullable=True)
    avatar_public_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    gamer_tag: Mapped[str | None] = mapped_column(String(50), unique=True, nullable=True)

    # Gamification
    level: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    experience: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    coins: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    role: Mapped[UserRole] = mapped_column(
        enum_column(UserRole),
        default=UserRole.USER,
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Onboarding flags
    profile_setup: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    game_setup: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    onboarding_complete: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    last_login: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    profile: Mapped["Profile | None"] = relationship(
        back_populates="user",
        uselist=False,
        lazy="raise",
    )
    team_memberships: Mapped[list["TeamMember"]] = relationship(
        back_populates="user",
        lazy="raise",
    )

    def __repr__(self) -> str:
        return f"<User {self.username}>"


class Profile(Base, UUIDMixin, TimestampMixin):
    """Optional personal details, one per user."""

    __tablename__ = "profiles"

    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id"),
        unique=True,
        nullable=False,
    )
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)
    country: Mapped[str | None] = mapped_column(String(2), nullable=True)
    timezone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    date_of_birth: Mapped[date | None] = mapped_column(Date, nullable=True)
    preferences: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    user: Mapped[User] = relationship(back_populates="profile", lazy="raise")


class GameProfile(Base, UUIDMixin, TimestampMixin):
    """In-game identity for one game."""

    __tablename__ = "game_profiles"
    __table_args__ = (UniqueConstraint("user_id", "game_id"),)

    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )
    game_id: Mapped[str] = mapped_column(String(50), nullable=False)
    game_name: Mapped[str] = mapped_column(String(100), nullable=False)
    game_uid: Mapped[str] = mapped_column(String(100), nullable=False)
    in_game_name: Mapped[str] = mapped_column(String(100), nullable=False)
    is_primary: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
