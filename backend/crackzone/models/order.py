"""Shop orders."""

from enum import Enum
from typing import Any

from sqlalchemy import JSON, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from crackzone.models.base import Base, TimestampMixin, UUIDMixin, enum_column


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class PaymentMethod(str, Enum):
    COINS = "coins"
    CARD = "card"
    UPI = "upi"
    CASH_ON_DELIVERY = "cod"


class Order(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "orders"

    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )
    items: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)
    total_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[OrderStatus] = mapped_column(
        enum_column(OrderStatus),
        default=OrderStatus.PENDING,
        nullable=False,
        index=True,
    )
    shipping_address: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    payment_method: Mapped[PaymentMethod | None] = mapped_column(
        enum_column(PaymentMethod),
        nullable=True,
    )
