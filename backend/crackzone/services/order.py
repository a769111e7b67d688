"""Shop order service.

Orders move PENDING -> CONFIRMED -> SHIPPED -> DELIVERED; only a PENDING
order can be cancelled. Orders paid with coins debit the balance when
placed and are refunded on cancellation.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from crackzone.models.notification import NotificationType
from crackzone.models.order import Order, OrderStatus, PaymentMethod
from crackzone.models.transaction import Transaction, TransactionStatus, TransactionType
from crackzone.schemas.common import PaginationParams
from crackzone.schemas.payloads import NotificationMetadata, PurchaseMetadata, RefundMetadata, ShippingAddress
from crackzone.schemas.requests import OrderCreateRequest
from crackzone.services.events import get_outbox
from crackzone.utils.db import atomic, credit, get_or_404, guarded_debit, paginate
from crackzone.utils.errors import BusinessRuleError, NotFoundError
from crackzone.ws.events import EventType, user_room

logger = logging.getLogger(__name__)

# target status -> (required current status, error message, notification text)
_TRANSITIONS = {
    OrderStatus.CONFIRMED: (
        OrderStatus.PENDING,
        "Only pending orders can be confirmed",
        "Your order has been confirmed.",
    ),
    OrderStatus.SHIPPED: (
        OrderStatus.CONFIRMED,
        "Only confirmed orders can be shipped",
        "Your order has been shipped.",
    ),
    OrderStatus.DELIVERED: (
        OrderStatus.SHIPPED,
        "Only shipped orders can be marked as delivered",
        "Your order has been delivered.",
    ),
}


class OrderService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.outbox = get_outbox(db)

    async def list_for_user(
        self,
        user_id: str,
        params: PaginationParams,
        status: OrderStatus | None = None,
    ) -> tuple[list[Order], int]:
        stmt = select(Order).where(Order.user_id == user_id)
        if status:
            stmt = stmt.where(Order.status == status)
        stmt = stmt.order_by(Order.created_at.desc())
        return await paginate(self.db, stmt, params)

    async def list_all(
        self,
        params: PaginationParams,
        status: OrderStatus | None = None,
    ) -> tuple[list[Order], int]:
        stmt = select(Order)
        if status:
            stmt = stmt.where(Order.status == status)
        stmt = stmt.order_by(Order.created_at.desc())
        return await paginate(self.db, stmt, params)

    async def get_for_user(self, order_id: str, user_id: str) -> Order:
        order = await self.db.scalar(select(Order).where(Order.id == order_id, Order.user_id == user_id))
        if order is None:
            raise NotFoundError("Order not found")
        return order

    async def create_order(self, user_id: str, data: OrderCreateRequest) -> Order:
        """Place an order.

        Coin orders debit the balance and record a PURCHASE transaction in
        the same unit of work; if the balance is short nothing is written.

        Raises:
            InsufficientBalanceError: Coin payment exceeds the balance
        """
        async with atomic(self.db):
            order = Order(
                user_id=user_id,
                items=[item.to_column() for item in data.items],
                total_amount=data.total_amount,
                status=OrderStatus.PENDING,
                shipping_address=data.shipping_address.to_column() if data.shipping_address else None,
                payment_method=data.payment_method,
            )
            self.db.add(order)
            await self.db.flush()

            if order.payment_method == PaymentMethod.COINS:
                await guarded_debit(self.db, user_id, data.total_amount)
                self.db.add(
                    Transaction(
                        user_id=user_id,
                        type=TransactionType.PURCHASE,
                        amount=data.total_amount,
                        description=f"Order #{order.id}",
                        status=TransactionStatus.COMPLETED,
                        meta=PurchaseMetadata(order_id=order.id).to_column(),
                    )
                )

        logger.info(f"Order {order.id} placed by {user_id} ({order.total_amount}, {order.payment_method})")
        self._publish(order)
        return order

    async def cancel_order(self, order_id: str, user_id: str) -> Order:
        order = await self.get_for_user(order_id, user_id)
        if order.status != OrderStatus.PENDING:
            raise BusinessRuleError("Only pending orders can be cancelled")

        async with atomic(self.db):
            order.status = OrderStatus.CANCELLED
            if order.payment_method == PaymentMethod.COINS:
                await credit(self.db, user_id, coins=order.total_amount)
                self.db.add(
                    Transaction(
                        user_id=user_id,
                        type=TransactionType.REFUND,
                        amount=order.total_amount,
                        description=f"Refund for order #{order.id}",
                        status=TransactionStatus.COMPLETED,
                        meta=RefundMetadata(order_id=order.id).to_column(),
                    )
                )

        refunded = " Your coins have been refunded." if order.payment_method == PaymentMethod.COINS else ""
        await self.outbox.notify(
            user_id,
            "Order Cancelled",
            f"Your order has been cancelled.{refunded}",
            NotificationType.ORDER,
            NotificationMetadata(order_id=order.id),
        )
        self._publish(order)
        return order

    async def _advance(self, order_id: str, target: OrderStatus) -> Order:
        order = await get_or_404(self.db, Order, order_id, "Order not found")
        required, error, notice = _TRANSITIONS[target]
        if order.status != required:
            raise BusinessRuleError(error)

        order.status = target
        await self.db.flush()

        await self.outbox.notify(
            order.user_id,
            f"Order {target.value.capitalize()}",
            notice,
            NotificationType.ORDER,
            NotificationMetadata(order_id=order.id),
        )
        self._publish(order)
        logger.info(f"Order {order.id} -> {target.value}")
        return order

    async def confirm_order(self, order_id: str) -> Order:
        return await self._advance(order_id, OrderStatus.CONFIRMED)

    async def ship_order(self, order_id: str, tracking_number: str | None = None) -> Order:
        if tracking_number:
            order = await get_or_404(self.db, Order, order_id, "Order not found")
            if order.status == OrderStatus.CONFIRMED:
                address = ShippingAddress.from_column(order.shipping_address)
                address.tracking_number = tracking_number
                order.shipping_address = address.to_column()
        return await self._advance(order_id, OrderStatus.SHIPPED)

    async def deliver_order(self, order_id: str) -> Order:
        return await self._advance(order_id, OrderStatus.DELIVERED)

    def _publish(self, order: Order) -> None:
        self.outbox.publish(
            user_room(order.user_id),
            EventType.ORDER_UPDATED,
            {"orderId": order.id, "status": order.status.value},
        )
