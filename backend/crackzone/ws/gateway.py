"""WebSocket gateway endpoint.

Connection flow:
1. Client connects to ``/ws``, optionally with ``Authorization: Bearer <token>``
2. Without the header, the first frame must be ``{"type": "AUTH", "payload": {"token": ...}}``
   and arrive within ``ws_auth_timeout_seconds``
3. The token is verified and the user must exist and be active; otherwise
   the socket is closed with 4001
4. The connection joins ``user:{id}`` and receives ``connected``
5. Client events are dispatched to the room and chat handlers
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from redis.asyncio import Redis

from crackzone.config import get_settings
from crackzone.models.user import User
from crackzone.utils.db import get_db_session
from crackzone.utils.redis_client import get_redis
from crackzone.utils.security import TokenError, verify_access_token
from crackzone.ws.connection import WebSocketConnection
from crackzone.ws.events import CLIENT_TO_SERVER_EVENTS, EventType, user_room
from crackzone.ws.handlers import BaseHandler, ChatHandler, HandlerError, RoomHandler
from crackzone.ws.manager import ConnectionLimitExceeded, ConnectionManager
from crackzone.ws.messages import MessageEnvelope, create_error_message
from crackzone.ws.notifier import RealtimeNotifier, set_notifier

logger = logging.getLogger(__name__)
router = APIRouter(tags=["WebSocket"])

AUTH_FAILED = 4001

# Global connection manager (initialized on startup)
_manager: ConnectionManager | None = None


async def init_manager(redis: Redis | None = None) -> ConnectionManager:
    """Create and start the connection manager and point the notifier at it."""
    global _manager
    if _manager is None:
        _manager = ConnectionManager(redis)
        await _manager.start()
        set_notifier(RealtimeNotifier(_manager))
    return _manager


async def get_manager() -> ConnectionManager:
    return _manager or await init_manager(get_redis())


async def shutdown_manager() -> None:
    """Shutdown the connection manager."""
    global _manager
    if _manager:
        await _manager.stop()
        _manager = None
    set_notifier(RealtimeNotifier())


class HandlerRegistry:
    """Maps client event types to handlers."""

    def __init__(self, manager: ConnectionManager):
        self._handlers: dict[EventType, BaseHandler] = {}
        self._register_handler(RoomHandler(manager))
        self._register_handler(ChatHandler(manager))

    def _register_handler(self, handler: BaseHandler) -> None:
        for event_type in handler.handled_events:
            self._handlers[event_type] = handler

    def get_handler(self, event_type: EventType) -> BaseHandler | None:
        return self._handlers.get(event_type)


def _bearer_token(websocket: WebSocket) -> str | None:
    header = websocket.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()
    return None


async def _receive_auth_token(websocket: WebSocket, timeout: float) -> str | None:
    """Wait for the AUTH frame and return its token, or None."""
    try:
        data = await asyncio.wait_for(websocket.receive_json(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("WebSocket auth timeout - no auth message received")
        return None
    except (WebSocketDisconnect, ValueError) as e:
        logger.warning(f"WebSocket auth error: {e}")
        return None

    if not isinstance(data, dict) or data.get("type") != EventType.AUTH.value:
        logger.warning("WebSocket invalid auth message type")
        return None
    payload = data.get("payload") or {}
    return payload.get("token") or data.get("token")


async def authenticate(token: str | None) -> User | None:
    """Resolve the active user behind an access token."""
    if not token:
        return None
    try:
        payload = verify_access_token(token)
    except TokenError as e:
        logger.warning(f"WebSocket token error: {e.code}")
        return None
    if not payload or not payload.get("sub"):
        return None

    async with get_db_session() as db:
        user = await db.get(User, payload["sub"])
    if user is None or not user.is_active:
        return None
    return user


async def _dispatch(conn: WebSocketConnection, registry: HandlerRegistry, data: Any) -> None:
    try:
        if not isinstance(data, dict):
            raise ValueError("frame must be a JSON object")
        event = MessageEnvelope.from_dict(data)
    except (KeyError, ValueError) as e:
        await conn.send(create_error_message("INVALID_MESSAGE", f"Invalid message format: {e}").to_dict())
        return

    if event.type not in CLIENT_TO_SERVER_EVENTS:
        await conn.send(
            create_error_message(
                "INVALID_EVENT_DIRECTION",
                f"Event {event.type.value} cannot be sent by client",
                request_id=event.request_id,
            ).to_dict()
        )
        return

    if event.type == EventType.PING:
        await conn.send(MessageEnvelope.create(EventType.PONG, {}, request_id=event.request_id).to_dict())
        return

    handler = registry.get_handler(event.type)
    if handler is None:
        await conn.send(
            create_error_message(
                "UNKNOWN_EVENT",
                f"Unknown event type: {event.type.value}",
                request_id=event.request_id,
            ).to_dict()
        )
        return

    try:
        reply = await handler.handle(conn, event)
    except HandlerError as e:
        await conn.send(create_error_message(e.code, e.message, request_id=event.request_id).to_dict())
        return
    except Exception as e:
        logger.exception(f"Handler error: {e}")
        await conn.send(
            create_error_message("HANDLER_ERROR", "Internal handler error", request_id=event.request_id).to_dict()
        )
        return

    if reply is not None:
        await conn.send(reply.to_dict())


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    settings = get_settings()
    await websocket.accept()

    token = _bearer_token(websocket)
    if token is None:
        token = await _receive_auth_token(websocket, settings.ws_auth_timeout_seconds)

    user = await authenticate(token)
    if user is None:
        await websocket.close(AUTH_FAILED, "Authentication failed")
        return

    manager = await get_manager()
    conn = WebSocketConnection(
        websocket=websocket,
        user_id=user.id,
        username=user.username,
        connection_id=str(uuid4()),
        connected_at=datetime.now(timezone.utc),
    )

    try:
        await manager.connect(conn)
    except ConnectionLimitExceeded as e:
        logger.warning(str(e))
        await websocket.close(1013, "Server is at capacity")
        return

    await conn.send(
        MessageEnvelope.create(
            EventType.CONNECTED,
            {"userId": user.id, "username": user.username, "room": user_room(user.id)},
        ).to_dict()
    )
    logger.info(f"WebSocket connected: user={user.id}, conn={conn.connection_id}")

    registry = HandlerRegistry(manager)
    try:
        while True:
            data = await websocket.receive_json()
            await _dispatch(conn, registry, data)
    except WebSocketDisconnect as e:
        logger.info(f"WebSocket disconnected: user={user.id}, conn={conn.connection_id}, code={e.code}")
    except Exception as e:
        logger.exception(f"WebSocket error: {e}")
    finally:
        await manager.disconnect(conn.connection_id)


@router.get("/ws/stats")
async def websocket_stats() -> dict[str, Any]:
    """Connection statistics for monitoring."""
    manager = await get_manager()
    return {"connections": manager.connection_count, "status": "running"}
