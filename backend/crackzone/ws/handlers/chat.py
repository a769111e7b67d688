"""Room chat and typing indicators."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import uuid4

from crackzone.ws.connection import WebSocketConnection
from crackzone.ws.events import CHAT_ROOM_KINDS, EventType, room_name
from crackzone.ws.handlers.base import BaseHandler, HandlerError
from crackzone.ws.messages import MessageEnvelope

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 500


class ChatHandler(BaseHandler):
    """Relays chat messages and typing state to a room, excluding the sender.

    The payload names the room by entity id plus kind:
    ``{"room": "<id>", "type": "tournament" | "team" | "match", ...}``.
    """

    handled_events = (EventType.SEND_MESSAGE, EventType.TYPING_START, EventType.TYPING_STOP)

    async def handle(
        self,
        conn: WebSocketConnection,
        event: MessageEnvelope,
    ) -> MessageEnvelope | None:
        room = self._target_room(event)

        if event.type == EventType.SEND_MESSAGE:
            await self._relay_message(conn, event, room)
        elif event.type == EventType.TYPING_START:
            await self._relay_typing(conn, room, EventType.USER_TYPING)
        else:
            await self._relay_typing(conn, room, EventType.USER_STOPPED_TYPING)
        return None

    @staticmethod
    def _target_room(event: MessageEnvelope) -> str:
        kind = event.payload.get("type")
        ident = event.payload.get("room")
        if kind not in CHAT_ROOM_KINDS:
            raise HandlerError(
                "INVALID_PAYLOAD",
                f"type must be one of {', '.join(sorted(CHAT_ROOM_KINDS))}",
            )
        if not ident or not isinstance(ident, str):
            raise HandlerError("INVALID_PAYLOAD", "room is required")
        return room_name(kind, ident)

    async def _relay_message(
        self,
        conn: WebSocketConnection,
        event: MessageEnvelope,
        room: str,
    ) -> None:
        text = event.payload.get("message")
        if not isinstance(text, str) or not text.strip():
            raise HandlerError("INVALID_PAYLOAD", "message is required")
        if len(text) > MAX_MESSAGE_LENGTH:
            raise HandlerError(
                "MESSAGE_TOO_LONG",
                f"message must be at most {MAX_MESSAGE_LENGTH} characters",
            )

        outgoing = MessageEnvelope.create(
            EventType.NEW_MESSAGE,
            {
                "id": str(uuid4()),
                "userId": conn.user_id,
                "username": conn.username,
                "message": text,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "type": event.payload["type"],
            },
            trace_id=event.trace_id,
        )
        sent = await self.manager.broadcast_to_room(
            room,
            outgoing.to_dict(),
            exclude_connection=conn.connection_id,
        )
        logger.debug(f"Chat message from {conn.user_id} relayed to {room} ({sent} local)")

    async def _relay_typing(
        self,
        conn: WebSocketConnection,
        room: str,
        event_type: EventType,
    ) -> None:
        outgoing = MessageEnvelope.create(
            event_type,
            {"userId": conn.user_id, "username": conn.username},
        )
        await self.manager.broadcast_to_room(
            room,
            outgoing.to_dict(),
            exclude_connection=conn.connection_id,
        )
