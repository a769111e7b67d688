"""An authenticated socket and the rooms it listens to."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from fastapi import WebSocket

from crackzone.utils.json_utils import json_dumps

logger = logging.getLogger(__name__)


@dataclass
class WebSocketConnection:
    websocket: WebSocket
    user_id: str
    username: str
    connection_id: str
    connected_at: datetime
    rooms: set[str] = field(default_factory=set)

    async def send(self, message: dict[str, Any]) -> bool:
        """Write one frame; a dead socket yields False instead of raising."""
        try:
            await self.websocket.send_text(json_dumps(message))
        except Exception as e:
            logger.warning(f"Dropping frame for {self.connection_id} (user {self.user_id}): {e}")
            return False
        return True

    async def close(self, code: int = 1000, reason: str = "") -> None:
        try:
            await self.websocket.close(code, reason)
        except Exception as e:
            # Already closed by the peer
            logger.debug(f"Close of {self.connection_id} ignored: {e}")

    def in_room(self, room: str) -> bool:
        return room in self.rooms
