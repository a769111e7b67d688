"""Per-user notification records."""

from enum import Enum
from typing import Any

from sqlalchemy import JSON, Boolean, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from crackzone.models.base import Base, TimestampMixin, UUIDMixin, enum_column


class NotificationType(str, Enum):
    SYSTEM = "SYSTEM"
    TOURNAMENT = "TOURNAMENT"
    TEAM = "TEAM"
    MATCH = "MATCH"
    TRANSACTION = "TRANSACTION"
    REWARD = "REWARD"
    ORDER = "ORDER"


class Notification(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "notifications"

    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[NotificationType] = mapped_column(
        enum_column(NotificationType),
        default=NotificationType.SYSTEM,
        nullable=False,
    )
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    meta: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSON, nullable=True)
