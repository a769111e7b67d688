"""Coin ledger service.

Deposits and withdrawals are requested by users as PENDING entries; the
balance only changes when an admin approves them.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from crackzone.models.base import utcnow
from crackzone.models.notification import NotificationType
from crackzone.models.transaction import Transaction, TransactionStatus, TransactionType
from crackzone.models.user import User
from crackzone.schemas.common import PaginationParams
from crackzone.schemas.payloads import (
    DepositMetadata,
    NotificationMetadata,
    WithdrawalMetadata,
    parse_transaction_metadata,
)
from crackzone.schemas.requests import DepositRequest, WithdrawalRequest
from crackzone.services.events import get_outbox
from crackzone.utils.db import atomic, credit, get_or_404, guarded_debit, paginate
from crackzone.utils.errors import BusinessRuleError, InsufficientBalanceError, NotFoundError
from crackzone.ws.events import EventType, user_room

logger = logging.getLogger(__name__)


class TransactionService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.outbox = get_outbox(db)

    async def list_for_user(
        self,
        user_id: str,
        params: PaginationParams,
        type: TransactionType | None = None,
    ) -> tuple[list[Transaction], int]:
        stmt = select(Transaction).where(Transaction.user_id == user_id)
        if type:
            stmt = stmt.where(Transaction.type == type)
        stmt = stmt.order_by(Transaction.created_at.desc())
        return await paginate(self.db, stmt, params)

    async def list_all(
        self,
        params: PaginationParams,
        status: TransactionStatus | None = None,
        type: TransactionType | None = None,
    ) -> tuple[list[Transaction], int]:
        stmt = select(Transaction)
        if status:
            stmt = stmt.where(Transaction.status == status)
        if type:
            stmt = stmt.where(Transaction.type == type)
        stmt = stmt.order_by(Transaction.created_at.desc())
        return await paginate(self.db, stmt, params)

    async def get_for_user(self, transaction_id: str, user_id: str) -> Transaction:
        transaction = await self.db.scalar(
            select(Transaction).where(
                Transaction.id == transaction_id,
                Transaction.user_id == user_id,
            )
        )
        if transaction is None:
            raise NotFoundError("Transaction not found")
        return transaction

    async def request_deposit(self, user_id: str, data: DepositRequest) -> Transaction:
        transaction = Transaction(
            user_id=user_id,
            type=TransactionType.DEPOSIT,
            amount=data.amount,
            description=f"Deposit via {data.payment_method}",
            status=TransactionStatus.PENDING,
            meta=DepositMetadata(
                payment_method=data.payment_method,
                reference=data.reference,
            ).to_column(),
        )
        self.db.add(transaction)
        await self.db.flush()
        return transaction

    async def request_withdrawal(self, user_id: str, data: WithdrawalRequest) -> Transaction:
        """Create a PENDING withdrawal; the balance is checked again on approval."""
        coins = await self.db.scalar(select(User.coins).where(User.id == user_id))
        if coins is None:
            raise NotFoundError("User not found")
        if coins < data.amount:
            raise InsufficientBalanceError(details={"balance": coins, "required": data.amount})

        transaction = Transaction(
            user_id=user_id,
            type=TransactionType.WITHDRAWAL,
            amount=data.amount,
            description=f"Withdrawal via {data.payment_method}",
            status=TransactionStatus.PENDING,
            meta=WithdrawalMetadata(
                payment_method=data.payment_method,
                account_details=data.account_details,
            ).to_column(),
        )
        self.db.add(transaction)
        await self.db.flush()
        return transaction

    async def _get_pending(self, transaction_id: str) -> Transaction:
        transaction = await get_or_404(self.db, Transaction, transaction_id, "Transaction not found")
        if transaction.status != TransactionStatus.PENDING:
            raise BusinessRuleError("Transaction is not pending")
        return transaction

    def _review_metadata(self, transaction: Transaction, reviewer_id: str, reason: str | None = None) -> dict:
        metadata = parse_transaction_metadata(transaction.meta)
        if metadata is None:
            return {"reviewedBy": reviewer_id, "reviewedAt": utcnow().isoformat(), "rejectionReason": reason}
        metadata.reviewed_by = reviewer_id
        metadata.reviewed_at = utcnow()
        metadata.rejection_reason = reason
        return metadata.to_column()

    async def approve(self, transaction_id: str, reviewer_id: str) -> Transaction:
        """Complete a pending deposit or withdrawal and apply it to the balance.

        Raises:
            InsufficientBalanceError: The user no longer holds enough coins for a withdrawal
        """
        transaction = await self._get_pending(transaction_id)

        async with atomic(self.db):
            if transaction.type == TransactionType.DEPOSIT:
                await credit(self.db, transaction.user_id, coins=transaction.amount)
            elif transaction.type == TransactionType.WITHDRAWAL:
                await guarded_debit(self.db, transaction.user_id, transaction.amount)
            transaction.status = TransactionStatus.COMPLETED
            transaction.meta = self._review_metadata(transaction, reviewer_id)

        await self.outbox.notify(
            transaction.user_id,
            "Transaction Approved",
            f"Your {transaction.type.value.lower()} of {transaction.amount} coins has been approved.",
            NotificationType.TRANSACTION,
            NotificationMetadata(transaction_id=transaction.id),
        )
        self._publish(transaction)
        logger.info(f"Transaction {transaction.id} approved by {reviewer_id}")
        return transaction

    async def reject(self, transaction_id: str, reviewer_id: str, reason: str) -> Transaction:
        transaction = await self._get_pending(transaction_id)

        async with atomic(self.db):
            transaction.status = TransactionStatus.FAILED
            transaction.meta = self._review_metadata(transaction, reviewer_id, reason)

        await self.outbox.notify(
            transaction.user_id,
            "Transaction Rejected",
            f"Your {transaction.type.value.lower()} has been rejected. Reason: {reason}",
            NotificationType.TRANSACTION,
            NotificationMetadata(transaction_id=transaction.id, reason=reason),
        )
        self._publish(transaction)
        logger.info(f"Transaction {transaction.id} rejected by {reviewer_id}")
        return transaction

    def _publish(self, transaction: Transaction) -> None:
        self.outbox.publish(
            user_room(transaction.user_id),
            EventType.TRANSACTION_UPDATED,
            {
                "transactionId": transaction.id,
                "type": transaction.type.value,
                "status": transaction.status.value,
                "amount": transaction.amount,
            },
        )
