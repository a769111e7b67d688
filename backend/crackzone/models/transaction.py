"""Coin ledger entries."""

from enum import Enum
from typing import Any

from sqlalchemy import JSON, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from crackzone.models.base import Base, TimestampMixin, UUIDMixin, enum_column


class TransactionType(str, Enum):
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    PURCHASE = "PURCHASE"
    REFUND = "REFUND"
    REWARD = "REWARD"


class TransactionStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class Transaction(Base, UUIDMixin, TimestampMixin):
    """Ledger entry affecting a user's coin balance.

    Deposits and withdrawals start PENDING and only touch the balance when
    approved; purchases, refunds and rewards are written COMPLETED together
    with the balance change.
    """

    __tablename__ = "transactions"

    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )
    type: Mapped[TransactionType] = mapped_column(
        enum_column(TransactionType),
        nullable=False,
        index=True,
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[TransactionStatus] = mapped_column(
        enum_column(TransactionStatus),
        default=TransactionStatus.PENDING,
        nullable=False,
        index=True,
    )
    # "metadata" is reserved on declarative classes
    meta: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSON, nullable=True)
