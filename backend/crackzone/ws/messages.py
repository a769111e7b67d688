"""Frames exchanged over the realtime socket.

Every frame, in either direction, is a JSON object::

    {"type": "<event>", "ts": <epoch ms>, "traceId": "...", "payload": {...}, "requestId": "..."}

``requestId`` is optional and echoed back on replies so clients can match them.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass
from typing import Any

from crackzone.ws.events import EventType


def _epoch_ms() -> int:
    return time.time_ns() // 1_000_000


def _trace_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class MessageEnvelope:
    type: EventType
    ts: int
    trace_id: str
    payload: dict[str, Any]
    request_id: str | None = None

    @classmethod
    def create(
        cls,
        event_type: EventType,
        payload: dict[str, Any],
        request_id: str | None = None,
        trace_id: str | None = None,
    ) -> MessageEnvelope:
        return cls(event_type, _epoch_ms(), trace_id or _trace_id(), payload, request_id)

    @classmethod
    def from_dict(cls, frame: dict[str, Any]) -> MessageEnvelope:
        """Parse a client frame, filling in ``ts`` and ``traceId`` when absent.

        Raises:
            KeyError: ``type`` missing
            ValueError: unknown event type or non-object payload
        """
        event_type = EventType(frame["type"])
        payload = frame.get("payload") or {}
        if not isinstance(payload, dict):
            raise ValueError("payload must be an object")
        return cls(
            event_type,
            frame.get("ts") or _epoch_ms(),
            frame.get("traceId") or _trace_id(),
            payload,
            frame.get("requestId"),
        )

    def to_dict(self) -> dict[str, Any]:
        frame = {"type": self.type.value, "ts": self.ts, "traceId": self.trace_id, "payload": self.payload}
        if self.request_id:
            frame["requestId"] = self.request_id
        return frame


def create_error_message(
    error_code: str,
    error_message: str,
    details: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> MessageEnvelope:
    payload = {"errorCode": error_code, "errorMessage": error_message, "details": details or {}}
    return MessageEnvelope.create(EventType.ERROR, payload, request_id=request_id)
