"""Handler contract for client events."""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, ClassVar

from crackzone.ws.connection import WebSocketConnection
from crackzone.ws.events import EventType
from crackzone.ws.messages import MessageEnvelope

if TYPE_CHECKING:
    from crackzone.ws.manager import ConnectionManager


class HandlerError(Exception):
    """Rejected client event; sent back to the sender as an ``error`` frame."""

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(message)


class BaseHandler(ABC):
    """Owns a group of related client events.

    Subclasses list those events in ``handled_events``; the gateway routes
    each one to ``handle`` and sends back whatever envelope it returns.
    """

    handled_events: ClassVar[tuple[EventType, ...]] = ()

    def __init__(self, manager: "ConnectionManager"):
        self.manager = manager

    @abstractmethod
    async def handle(self, conn: WebSocketConnection, event: MessageEnvelope) -> MessageEnvelope | None:
        """Process one event; None means nothing goes back to the sender."""
