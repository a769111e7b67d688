"""Match and match participant models."""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from sqlalchemy import JSON, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from crackzone.models.base import Base, TimestampMixin, UUIDMixin, UTCDateTime, enum_column

if TYPE_CHECKING:
    from crackzone.models.tournament import Tournament
    from crackzone.models.user import User


class MatchStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class Match(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "matches"

    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    game: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    tournament_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("tournaments.id"),
        nullable=True,
        index=True,
    )
    round: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[MatchStatus] = mapped_column(
        enum_column(MatchStatus),
        default=MatchStatus.SCHEDULED,
        nullable=False,
        index=True,
    )
    scheduled_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    ended_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    # {"results": [MatchResultEntry...], "submittedBy": ..., "notes": ...}
    result: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    screenshots: Mapped[list[dict[str, Any]] | None] = mapped_column(JSON, nullable=True)

    tournament: Mapped["Tournament | None"] = relationship(back_populates="matches", lazy="raise")
    participants: Mapped[list["MatchParticipant"]] = relationship(
        back_populates="match",
        lazy="raise",
        order_by="MatchParticipant.position",
    )


class MatchParticipant(Base, UUIDMixin):
    __tablename__ = "match_participants"
    __table_args__ = (UniqueConstraint("match_id", "user_id"),)

    match_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("matches.id"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )
    score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    position: Mapped[int | None] = mapped_column(Integer, nullable=True)

    match: Mapped[Match] = relationship(back_populates="participants", lazy="raise")
    user: Mapped["User"] = relationship(lazy="raise")
