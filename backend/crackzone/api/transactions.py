"""Coin ledger API endpoints."""

from fastapi import APIRouter, status

from crackzone.api.deps import CurrentUser, DbSession, Pagination, TransactionManager
from crackzone.models.transaction import TransactionStatus, TransactionType
from crackzone.schemas.common import ERROR_RESPONSES, PaginationMeta
from crackzone.schemas.requests import DepositRequest, RejectTransactionRequest, WithdrawalRequest
from crackzone.schemas.responses import TransactionListResponse, TransactionResponse
from crackzone.services.transaction import TransactionService

router = APIRouter(prefix="/transactions", tags=["Transactions"])


def _page(transactions, pagination, total) -> TransactionListResponse:
    return TransactionListResponse(
        transactions=[TransactionResponse.model_validate(t) for t in transactions],
        pagination=PaginationMeta.build(pagination, total),
    )


@router.get("", response_model=TransactionListResponse, responses=ERROR_RESPONSES)
async def list_my_transactions(
    current_user: CurrentUser,
    db: DbSession,
    pagination: Pagination,
    type: TransactionType | None = None,
):
    transactions, total = await TransactionService(db).list_for_user(current_user.id, pagination, type)
    return _page(transactions, pagination, total)


@router.post(
    "/deposit",
    response_model=TransactionResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
)
async def request_deposit(request_body: DepositRequest, current_user: CurrentUser, db: DbSession):
    """Request a deposit. Coins are credited once an admin approves it."""
    return await TransactionService(db).request_deposit(current_user.id, request_body)


@router.post(
    "/withdraw",
    response_model=TransactionResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
)
async def request_withdrawal(request_body: WithdrawalRequest, current_user: CurrentUser, db: DbSession):
    return await TransactionService(db).request_withdrawal(current_user.id, request_body)


@router.get("/admin/all", response_model=TransactionListResponse, responses=ERROR_RESPONSES)
async def list_all_transactions(
    manager: TransactionManager,
    db: DbSession,
    pagination: Pagination,
    status: TransactionStatus | None = None,
    type: TransactionType | None = None,
):
    transactions, total = await TransactionService(db).list_all(pagination, status, type)
    return _page(transactions, pagination, total)


@router.get("/{transaction_id}", response_model=TransactionResponse, responses=ERROR_RESPONSES)
async def get_transaction(transaction_id: str, current_user: CurrentUser, db: DbSession):
    return await TransactionService(db).get_for_user(transaction_id, current_user.id)


@router.post("/{transaction_id}/approve", response_model=TransactionResponse, responses=ERROR_RESPONSES)
async def approve_transaction(transaction_id: str, manager: TransactionManager, db: DbSession):
    return await TransactionService(db).approve(transaction_id, manager.id)


@router.post("/{transaction_id}/reject", response_model=TransactionResponse, responses=ERROR_RESPONSES)
async def reject_transaction(
    transaction_id: str,
    manager: TransactionManager,
    db: DbSession,
    request_body: RejectTransactionRequest | None = None,
):
    reason = request_body.reason if request_body else RejectTransactionRequest().reason
    return await TransactionService(db).reject(transaction_id, manager.id, reason)
