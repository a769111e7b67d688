"""Shop order API endpoints."""

from fastapi import APIRouter, status

from crackzone.api.deps import CurrentUser, DbSession, OrderManager, Pagination
from crackzone.models.order import OrderStatus
from crackzone.schemas.common import ERROR_RESPONSES, PaginationMeta
from crackzone.schemas.requests import OrderCreateRequest, ShipOrderRequest
from crackzone.schemas.responses import OrderListResponse, OrderResponse
from crackzone.services.order import OrderService

router = APIRouter(prefix="/orders", tags=["Orders"])


def _page(orders, pagination, total) -> OrderListResponse:
    return OrderListResponse(
        orders=[OrderResponse.model_validate(o) for o in orders],
        pagination=PaginationMeta.build(pagination, total),
    )


@router.get("", response_model=OrderListResponse, responses=ERROR_RESPONSES)
async def list_my_orders(
    current_user: CurrentUser,
    db: DbSession,
    pagination: Pagination,
    status: OrderStatus | None = None,
):
    orders, total = await OrderService(db).list_for_user(current_user.id, pagination, status)
    return _page(orders, pagination, total)


@router.post(
    "",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
)
async def create_order(request_body: OrderCreateRequest, current_user: CurrentUser, db: DbSession):
    """Place an order. With ``paymentMethod: "coins"`` the total is debited immediately."""
    return await OrderService(db).create_order(current_user.id, request_body)


@router.get("/admin/all", response_model=OrderListResponse, responses=ERROR_RESPONSES)
async def list_all_orders(
    manager: OrderManager,
    db: DbSession,
    pagination: Pagination,
    status: OrderStatus | None = None,
):
    orders, total = await OrderService(db).list_all(pagination, status)
    return _page(orders, pagination, total)


@router.get("/{order_id}", response_model=OrderResponse, responses=ERROR_RESPONSES)
async def get_order(order_id: str, current_user: CurrentUser, db: DbSession):
    return await OrderService(db).get_for_user(order_id, current_user.id)


@router.post("/{order_id}/cancel", response_model=OrderResponse, responses=ERROR_RESPONSES)
async def cancel_order(order_id: str, current_user: CurrentUser, db: DbSession):
    return await OrderService(db).cancel_order(order_id, current_user.id)


@router.post("/{order_id}/confirm", response_model=OrderResponse, responses=ERROR_RESPONSES)
async def confirm_order(order_id: str, manager: OrderManager, db: DbSession):
    return await OrderService(db).confirm_order(order_id)


@router.post("/{order_id}/ship", response_model=OrderResponse, responses=ERROR_RESPONSES)
async def ship_order(
    order_id: str,
    manager: OrderManager,
    db: DbSession,
    request_body: ShipOrderRequest | None = None,
):
    tracking_number = request_body.tracking_number if request_body else None
    return await OrderService(db).ship_order(order_id, tracking_number)


@router.post("/{order_id}/deliver", response_model=OrderResponse, responses=ERROR_RESPONSES)
async def deliver_order(order_id: str, manager: OrderManager, db: DbSession):
    return await OrderService(db).deliver_order(order_id)
