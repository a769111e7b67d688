"""Realtime WebSocket gateway."""

from crackzone.ws.events import EventType
from crackzone.ws.manager import ConnectionManager
from crackzone.ws.notifier import RealtimeNotifier, get_notifier

__all__ = [
    "ConnectionManager",
    "EventType",
    "RealtimeNotifier",
    "get_notifier",
]
