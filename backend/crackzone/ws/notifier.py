"""Fire-and-forget publisher used by services.

Delivery failures are logged and swallowed: a realtime event is a hint to
connected clients, never part of a request's outcome.
"""

from __future__ import annotations

import logging
from typing import Any

from crackzone.ws.events import EventType, room_name, user_room
from crackzone.ws.manager import ConnectionManager
from crackzone.ws.messages import MessageEnvelope

logger = logging.getLogger(__name__)


class RealtimeNotifier:
    def __init__(self, manager: ConnectionManager | None = None):
        self.manager = manager

    async def emit(self, room: str, event: EventType, payload: dict[str, Any]) -> int:
        if self.manager is None:
            logger.debug(f"Realtime disabled, dropping {event.value} for {room}")
            return 0
        message = MessageEnvelope.create(event, payload).to_dict()
        try:
            return await self.manager.broadcast_to_room(room, message)
        except Exception as e:
            logger.warning(f"Failed to emit {event.value} to {room}: {e}")
            return 0

    async def notify_user(self, user_id: str, event: EventType, payload: dict[str, Any]) -> int:
        return await self.emit(user_room(user_id), event, payload)

    async def notify_tournament(self, tournament_id: str, event: EventType, payload: dict[str, Any]) -> int:
        return await self.emit(room_name("tournament", tournament_id), event, payload)

    async def notify_team(self, team_id: str, event: EventType, payload: dict[str, Any]) -> int:
        return await self.emit(room_name("team", team_id), event, payload)

    async def notify_match(self, match_id: str, event: EventType, payload: dict[str, Any]) -> int:
        return await self.emit(room_name("match", match_id), event, payload)

    async def broadcast(self, event: EventType, payload: dict[str, Any]) -> int:
        if self.manager is None:
            return 0
        message = MessageEnvelope.create(event, payload).to_dict()
        try:
            return await self.manager.broadcast_all(message)
        except Exception as e:
            logger.warning(f"Failed to broadcast {event.value}: {e}")
            return 0


_notifier = RealtimeNotifier()


def get_notifier() -> RealtimeNotifier:
    return _notifier


def set_notifier(notifier: RealtimeNotifier) -> None:
    global _notifier
    _notifier = notifier
