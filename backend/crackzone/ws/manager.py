"""Connection registry and room fan-out.

Rooms are tracked per process. When a Redis client is supplied, every
broadcast is also published on ``ws:pubsub:{room}`` so other API processes
deliver it to their own members; without Redis delivery is local only.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections import defaultdict
from typing import Any
from uuid import uuid4

from redis.asyncio import Redis

from crackzone.config import get_settings
from crackzone.utils.json_utils import json_dumps, json_loads
from crackzone.ws.connection import WebSocketConnection
from crackzone.ws.events import user_room

logger = logging.getLogger(__name__)

PUBSUB_PREFIX = "ws:pubsub:"

CLOSE_GOING_AWAY = 1001
CLOSE_REPLACED = 4002


class ConnectionLimitExceeded(Exception):
    """This process already holds ``ws_max_connections`` sockets."""


class ConnectionManager:
    def __init__(self, redis: Redis | None = None):
        settings = get_settings()
        self.redis = redis

        self._connections: dict[str, WebSocketConnection] = {}
        self._by_user: defaultdict[str, set[str]] = defaultdict(set)
        self._rooms: defaultdict[str, set[str]] = defaultdict(set)

        self._max_connections = settings.ws_max_connections
        self._max_connections_per_user = settings.ws_max_connections_per_user

        self._instance_id = uuid4().hex[:8]
        self._listener: asyncio.Task | None = None

    # -- lifecycle ------------------------------------------------------------

    async def start(self) -> None:
        if self.redis is not None and self._listener is None:
            pubsub = self.redis.pubsub()
            await pubsub.psubscribe(f"{PUBSUB_PREFIX}*")
            self._listener = asyncio.create_task(self._listen(pubsub))
        logger.info(
            f"Realtime hub {self._instance_id} started "
            f"({'redis' if self.redis is not None else 'local'} fan-out)"
        )

    async def stop(self) -> None:
        if self._listener is not None:
            self._listener.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._listener
            self._listener = None

        open_connections = list(self._connections.values())
        for conn in open_connections:
            await conn.close(CLOSE_GOING_AWAY, "Server shutting down")
            await self.disconnect(conn.connection_id)
        logger.info(f"Realtime hub {self._instance_id} stopped, closed {len(open_connections)} sockets")

    # -- connections ----------------------------------------------------------

    async def connect(self, conn: WebSocketConnection) -> None:
        """Register a socket and subscribe it to its owner's personal room.

        Past the per-user limit the user's oldest socket is closed with 4002.

        Raises:
            ConnectionLimitExceeded: the process is at capacity
        """
        if len(self._connections) >= self._max_connections:
            raise ConnectionLimitExceeded(f"Connection limit of {self._max_connections} reached")

        existing = self.get_user_connections(conn.user_id)
        if len(existing) >= self._max_connections_per_user:
            oldest = min(existing, key=lambda c: c.connected_at)
            logger.info(f"User {conn.user_id} opened too many sockets, replacing {oldest.connection_id}")
            await oldest.close(CLOSE_REPLACED, "New connection opened")
            await self.disconnect(oldest.connection_id)

        self._connections[conn.connection_id] = conn
        self._by_user[conn.user_id].add(conn.connection_id)
        self.join(conn.connection_id, user_room(conn.user_id))
        logger.info(f"Socket {conn.connection_id} open for user {conn.user_id} ({len(self._connections)} total)")

    async def disconnect(self, connection_id: str) -> None:
        conn = self._connections.pop(connection_id, None)
        if conn is None:
            return

        for room in conn.rooms:
            self._discard_member(room, connection_id)
        conn.rooms.clear()

        owned = self._by_user.get(conn.user_id)
        if owned is not None:
            owned.discard(connection_id)
            if not owned:
                del self._by_user[conn.user_id]
        logger.info(f"Socket {connection_id} closed ({len(self._connections)} remaining)")

    def get_connection(self, connection_id: str) -> WebSocketConnection | None:
        return self._connections.get(connection_id)

    def get_user_connections(self, user_id: str) -> list[WebSocketConnection]:
        return self._resolve(self._by_user.get(user_id, ()))

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def _resolve(self, connection_ids) -> list[WebSocketConnection]:
        return [self._connections[cid] for cid in connection_ids if cid in self._connections]

    # -- rooms ----------------------------------------------------------------

    def join(self, connection_id: str, room: str) -> bool:
        conn = self._connections.get(connection_id)
        if conn is None:
            return False
        self._rooms[room].add(connection_id)
        conn.rooms.add(room)
        return True

    def leave(self, connection_id: str, room: str) -> bool:
        conn = self._connections.get(connection_id)
        if conn is None:
            return False
        self._discard_member(room, connection_id)
        conn.rooms.discard(room)
        return True

    def _discard_member(self, room: str, connection_id: str) -> None:
        members = self._rooms.get(room)
        if members is not None:
            members.discard(connection_id)
            if not members:
                del self._rooms[room]

    def room_members(self, room: str) -> list[WebSocketConnection]:
        return self._resolve(self._rooms.get(room, ()))

    # -- delivery -------------------------------------------------------------

    async def broadcast_to_room(
        self,
        room: str,
        message: dict[str, Any],
        exclude_connection: str | None = None,
    ) -> int:
        """Deliver to every member of a room on every process.

        Returns how many local sockets accepted the message.
        """
        if self.redis is not None:
            envelope = {
                "source_instance": self._instance_id,
                "exclude_connection": exclude_connection,
                "message": message,
            }
            try:
                await self.redis.publish(f"{PUBSUB_PREFIX}{room}", json_dumps(envelope))
            except Exception as e:
                logger.warning(f"Fan-out publish to {room} failed: {e}")

        return await self._deliver_local(room, message, exclude_connection)

    async def broadcast_all(self, message: dict[str, Any]) -> int:
        return await self._send_each(list(self._connections.values()), message)

    async def send_to_user(self, user_id: str, message: dict[str, Any]) -> int:
        return await self.broadcast_to_room(user_room(user_id), message)

    async def _deliver_local(self, room: str, message: dict[str, Any], exclude_connection: str | None) -> int:
        targets = [conn for conn in self.room_members(room) if conn.connection_id != exclude_connection]
        return await self._send_each(targets, message)

    @staticmethod
    async def _send_each(targets: list[WebSocketConnection], message: dict[str, Any]) -> int:
        delivered = 0
        for conn in targets:
            if await conn.send(message):
                delivered += 1
        return delivered

    # -- redis fan-out --------------------------------------------------------

    async def _listen(self, pubsub) -> None:
        try:
            while True:
                try:
                    message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                    if message is not None and message["type"] == "pmessage":
                        await self._handle_pubsub_message(message)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.error(f"Fan-out listener error: {e}")
                    await asyncio.sleep(1)
        finally:
            await pubsub.punsubscribe(f"{PUBSUB_PREFIX}*")
            await pubsub.aclose()

    async def _handle_pubsub_message(self, message: dict[str, Any]) -> None:
        """Deliver a message published by another process to local members."""
        channel = message.get("channel") or ""
        if isinstance(channel, bytes):
            channel = channel.decode()
        try:
            envelope = json_loads(message.get("data") or "{}")
            if envelope.get("source_instance") == self._instance_id:
                return
            await self._deliver_local(
                channel.removeprefix(PUBSUB_PREFIX),
                envelope["message"],
                envelope.get("exclude_connection"),
            )
        except Exception as e:
            logger.error(f"Dropping malformed fan-out message on {channel}: {e}")
