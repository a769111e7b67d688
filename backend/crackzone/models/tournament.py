"""Tournament and participant models."""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from crackzone.models.base import Base, TimestampMixin, UUIDMixin, UTCDateTime, enum_column, utcnow

if TYPE_CHECKING:
    from crackzone.models.match import Match
    from crackzone.models.user import User


class TournamentFormat(str, Enum):
    SINGLE_ELIMINATION = "SINGLE_ELIMINATION"
    DOUBLE_ELIMINATION = "DOUBLE_ELIMINATION"
    ROUND_ROBIN = "ROUND_ROBIN"
    SWISS = "SWISS"


class TournamentStatus(str, Enum):
    """Tournament lifecycle status."""

    UPCOMING = "UPCOMING"
    REGISTRATION_OPEN = "REGISTRATION_OPEN"
    REGISTRATION_CLOSED = "REGISTRATION_CLOSED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class Tournament(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "tournaments"

    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    game: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    format: Mapped[TournamentFormat] = mapped_column(
        enum_column(TournamentFormat),
        nullable=False,
    )
    status: Mapped[TournamentStatus] = mapped_column(
        enum_column(TournamentStatus),
        default=TournamentStatus.UPCOMING,
        nullable=False,
        index=True,
    )
    max_participants: Mapped[int] = mapped_column(Integer, nullable=False)
    entry_fee: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    prize_pool: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    start_date: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    end_date: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    rules: Mapped[str | None] = mapped_column(Text, nullable=True)
    banner_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    banner_public_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    participants: Mapped[list["TournamentParticipant"]] = relationship(
        back_populates="tournament",
        lazy="raise",
        order_by="TournamentParticipant.registered_at",
    )
    matches: Mapped[list["Match"]] = relationship(
        back_populates="tournament",
        lazy="raise",
    )


class TournamentParticipant(Base, UUIDMixin):
    """Registration of a user in a tournament."""

    __tablename__ = "tournament_participants"
    __table_args__ = (UniqueConstraint("tournament_id", "user_id"),)

    tournament_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("tournaments.id"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )
    registered_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        default=utcnow,
        nullable=False,
    )

    tournament: Mapped[Tournament] = relationship(back_populates="participants", lazy="raise")
    user: Mapped["User"] = relationship(lazy="raise")
