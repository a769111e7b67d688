"""Realtime event handlers."""

from crackzone.ws.handlers.base import BaseHandler, HandlerError
from crackzone.ws.handlers.chat import ChatHandler
from crackzone.ws.handlers.rooms import RoomHandler

__all__ = [
    "BaseHandler",
    "HandlerError",
    "ChatHandler",
    "RoomHandler",
]
