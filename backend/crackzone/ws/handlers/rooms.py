"""Join/leave handlers for tournament, team and match rooms."""

import logging

from crackzone.ws.connection import WebSocketConnection
from crackzone.ws.events import ROOM_EVENTS, EventType, room_name
from crackzone.ws.handlers.base import BaseHandler, HandlerError
from crackzone.ws.messages import MessageEnvelope

logger = logging.getLogger(__name__)


class RoomHandler(BaseHandler):
    """Subscribes a connection to entity rooms.

    Rooms are open: any authenticated connection may listen to any
    tournament, team or match.
    """

    handled_events = tuple(ROOM_EVENTS)

    async def handle(
        self,
        conn: WebSocketConnection,
        event: MessageEnvelope,
    ) -> MessageEnvelope | None:
        kind, joining = ROOM_EVENTS[event.type]
        ident = event.payload.get(f"{kind}Id") or event.payload.get("id")
        if not ident or not isinstance(ident, str):
            raise HandlerError("INVALID_PAYLOAD", f"{kind}Id is required")

        room = room_name(kind, ident)
        if joining:
            self.manager.join(conn.connection_id, room)
            logger.info(f"User {conn.user_id} joined {room}")
            reply = EventType.ROOM_JOINED
        else:
            self.manager.leave(conn.connection_id, room)
            logger.info(f"User {conn.user_id} left {room}")
            reply = EventType.ROOM_LEFT

        return MessageEnvelope.create(
            reply,
            {"room": room},
            request_id=event.request_id,
        )
