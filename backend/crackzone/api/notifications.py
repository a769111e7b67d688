"""Notification inbox API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Query

from crackzone.api.deps import CurrentUser, DbSession, Pagination
from crackzone.models.notification import NotificationType
from crackzone.schemas.common import ERROR_RESPONSES, MessageResponse, PaginationMeta
from crackzone.schemas.responses import (
    CountResponse,
    NotificationCountResponse,
    NotificationListResponse,
    NotificationResponse,
)
from crackzone.services.notification import NotificationService

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=NotificationListResponse, responses=ERROR_RESPONSES)
async def list_notifications(
    current_user: CurrentUser,
    db: DbSession,
    pagination: Pagination,
    type: NotificationType | None = None,
    is_read: Annotated[bool | None, Query(alias="isRead")] = None,
):
    notifications, total = await NotificationService(db).list_notifications(
        current_user.id, pagination, type, is_read
    )
    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(n) for n in notifications],
        pagination=PaginationMeta.build(pagination, total),
    )


@router.get("/count", response_model=NotificationCountResponse, responses=ERROR_RESPONSES)
async def notification_counts(current_user: CurrentUser, db: DbSession):
    return NotificationCountResponse(**await NotificationService(db).counts(current_user.id))


@router.put("/read-all", response_model=CountResponse, responses=ERROR_RESPONSES)
async def mark_all_read(current_user: CurrentUser, db: DbSession):
    count = await NotificationService(db).mark_all_read(current_user.id)
    return CountResponse(message="All notifications marked as read", count=count)


@router.delete("/clear-all", response_model=CountResponse, responses=ERROR_RESPONSES)
async def clear_all(current_user: CurrentUser, db: DbSession):
    count = await NotificationService(db).clear_all(current_user.id)
    return CountResponse(message="All notifications cleared", count=count)


@router.put("/{notification_id}/read", response_model=NotificationResponse, responses=ERROR_RESPONSES)
async def mark_read(notification_id: str, current_user: CurrentUser, db: DbSession):
    return await NotificationService(db).mark_read(notification_id, current_user.id)


@router.delete("/{notification_id}", response_model=MessageResponse, responses=ERROR_RESPONSES)
async def delete_notification(notification_id: str, current_user: CurrentUser, db: DbSession):
    await NotificationService(db).delete_notification(notification_id, current_user.id)
    return MessageResponse(message="Notification deleted")
