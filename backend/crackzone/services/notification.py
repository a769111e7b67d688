"""Notification inbox. Every query is scoped to the owning user."""

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from crackzone.models.notification import Notification, NotificationType
from crackzone.schemas.common import PaginationParams
from crackzone.utils.db import paginate
from crackzone.utils.errors import NotFoundError


class NotificationService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_notifications(
        self,
        user_id: str,
        params: PaginationParams,
        type: NotificationType | None = None,
        is_read: bool | None = None,
    ) -> tuple[list[Notification], int]:
        stmt = select(Notification).where(Notification.user_id == user_id)
        if type:
            stmt = stmt.where(Notification.type == type)
        if is_read is not None:
            stmt = stmt.where(Notification.is_read.is_(is_read))
        stmt = stmt.order_by(Notification.created_at.desc())
        return await paginate(self.db, stmt, params)

    async def counts(self, user_id: str) -> dict[str, int]:
        total = await self.db.scalar(
            select(func.count()).select_from(Notification).where(Notification.user_id == user_id)
        ) or 0
        unread = await self.db.scalar(
            select(func.count())
            .select_from(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        ) or 0
        return {"unread": unread, "total": total}

    async def _get_own(self, notification_id: str, user_id: str) -> Notification:
        notification = await self.db.scalar(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.user_id == user_id,
            )
        )
        if notification is None:
            raise NotFoundError("Notification not found")
        return notification

    async def mark_read(self, notification_id: str, user_id: str) -> Notification:
        notification = await self._get_own(notification_id, user_id)
        notification.is_read = True
        await self.db.flush()
        return notification

    async def mark_all_read(self, user_id: str) -> int:
        result = await self.db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def delete_notification(self, notification_id: str, user_id: str) -> None:
        notification = await self._get_own(notification_id, user_id)
        await self.db.delete(notification)
        await self.db.flush()

    async def clear_all(self, user_id: str) -> int:
        result = await self.db.execute(
            delete(Notification)
            .where(Notification.user_id == user_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

