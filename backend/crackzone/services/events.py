"""Notification outbox bound to a database session.

Services never push to sockets directly. They stage notifications and room
events on the session's outbox:

- ``notify`` inserts a :class:`Notification` row in the current transaction
  and queues a ``notification`` event for the recipient's personal room;
- ``publish`` queues an arbitrary room event.

The session owner (``finish_session``) calls :meth:`EventOutbox.dispatch`
after a successful commit and :meth:`EventOutbox.discard` after a rollback,
so clients never hear about changes that did not persist.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from crackzone.models.notification import Notification, NotificationType
from crackzone.schemas.payloads import NotificationMetadata
from crackzone.utils.db import OUTBOX_KEY
from crackzone.ws.events import EventType, user_room
from crackzone.ws.notifier import RealtimeNotifier, get_notifier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OutboundEvent:
    room: str
    event: EventType
    payload: dict[str, Any]


class EventOutbox:
    def __init__(self, session: AsyncSession, notifier: RealtimeNotifier | None = None):
        self.session = session
        self._notifier = notifier
        self._pending: list[OutboundEvent] = []

    @property
    def notifier(self) -> RealtimeNotifier:
        return self._notifier or get_notifier()

    @property
    def pending(self) -> list[OutboundEvent]:
        return list(self._pending)

    async def notify(
        self,
        user_id: str,
        title: str,
        message: str,
        type: NotificationType = NotificationType.SYSTEM,
        metadata: NotificationMetadata | None = None,
    ) -> Notification:
        """Stage a notification row and its realtime push."""
        notification = Notification(
            user_id=user_id,
            title=title,
            message=message,
            type=type,
            is_read=False,
            meta=metadata.to_column() if metadata else None,
        )
        self.session.add(notification)
        await self.session.flush()

        self._pending.append(
            OutboundEvent(
                room=user_room(user_id),
                event=EventType.NOTIFICATION,
                payload={
                    "id": notification.id,
                    "title": title,
                    "message": message,
                    "type": type.value,
                    "metadata": notification.meta,
                    "createdAt": notification.created_at.isoformat(),
                },
            )
        )
        return notification

    def publish(self, room: str, event: EventType, payload: dict[str, Any]) -> None:
        self._pending.append(OutboundEvent(room=room, event=event, payload=payload))

    async def dispatch(self) -> int:
        events, self._pending = self._pending, []
        delivered = 0
        for item in events:
            delivered += await self.notifier.emit(item.room, item.event, item.payload)
        if events:
            logger.debug(f"Dispatched {len(events)} outbox events ({delivered} local deliveries)")
        return delivered

    def discard(self) -> None:
        if self._pending:
            logger.debug(f"Discarding {len(self._pending)} outbox events after rollback")
        self._pending.clear()


def get_outbox(session: AsyncSession) -> EventOutbox:
    """Return the outbox attached to ``session``, creating it on first use."""
    outbox = session.info.get(OUTBOX_KEY)
    if outbox is None:
        outbox = EventOutbox(session)
        session.info[OUTBOX_KEY] = outbox
    return outbox
