"""Room and chat handlers."""

import pytest
import pytest_asyncio

from crackzone.ws.events import EventType
from crackzone.ws.handlers import ChatHandler, HandlerError, RoomHandler
from crackzone.ws.manager import ConnectionManager
from crackzone.ws.messages import MessageEnvelope

from factories import make_connection


def envelope(event_type: EventType, payload: dict, request_id: str | None = None) -> MessageEnvelope:
    return MessageEnvelope.create(event_type, payload, request_id=request_id)


@pytest.fixture
def manager():
    return ConnectionManager()


class TestRoomHandler:
    @pytest.mark.asyncio
    async def test_join_and_leave(self, manager):
        conn = make_connection(user_id="u1")
        await manager.connect(conn)
        handler = RoomHandler(manager)

        joined = await handler.handle(conn, envelope(EventType.JOIN_TOURNAMENT, {"tournamentId": "t1"}, "r-1"))

        assert joined.type == EventType.ROOM_JOINED
        assert joined.payload == {"room": "tournament:t1"}
        assert joined.request_id == "r-1"
        assert conn.in_room("tournament:t1")

        left = await handler.handle(conn, envelope(EventType.LEAVE_TOURNAMENT, {"tournamentId": "t1"}))

        assert left.type == EventType.ROOM_LEFT
        assert not conn.in_room("tournament:t1")

    @pytest.mark.asyncio
    async def test_generic_id_key(self, manager):
        conn = make_connection(user_id="u1")
        await manager.connect(conn)

        reply = await RoomHandler(manager).handle(conn, envelope(EventType.JOIN_MATCH, {"id": "m1"}))

        assert reply.payload == {"room": "match:m1"}

    @pytest.mark.asyncio
    async def test_missing_id(self, manager):
        conn = make_connection(user_id="u1")
        await manager.connect(conn)

        with pytest.raises(HandlerError) as exc_info:
            await RoomHandler(manager).handle(conn, envelope(EventType.JOIN_TEAM, {}))

        assert exc_info.value.code == "INVALID_PAYLOAD"
        assert exc_info.value.message == "teamId is required"


class TestChatHandler:
    @pytest_asyncio.fixture
    async def room(self, manager):
        sender = make_connection(user_id="u1", username="ada")
        listener = make_connection(user_id="u2", username="bob")
        for conn in (sender, listener):
            await manager.connect(conn)
            manager.join(conn.connection_id, "team:t1")
        return sender, listener

    @pytest.mark.asyncio
    async def test_message_relayed_to_others_verbatim(self, manager, room):
        sender, listener = room

        reply = await ChatHandler(manager).handle(
            sender,
            envelope(EventType.SEND_MESSAGE, {"room": "t1", "type": "team", "message": "a < b, <b>gg</b> "}),
        )

        assert reply is None
        assert sender.websocket.sent_messages == []
        [message] = listener.websocket.sent_messages
        assert message["type"] == "new_message"
        assert message["payload"]["message"] == "a < b, <b>gg</b> "
        assert message["payload"]["username"] == "ada"
        assert message["payload"]["type"] == "team"

    @pytest.mark.asyncio
    async def test_typing_indicators(self, manager, room):
        sender, listener = room
        handler = ChatHandler(manager)

        await handler.handle(sender, envelope(EventType.TYPING_START, {"room": "t1", "type": "team"}))
        await handler.handle(sender, envelope(EventType.TYPING_STOP, {"room": "t1", "type": "team"}))

        assert [m["type"] for m in listener.websocket.sent_messages] == ["user_typing", "user_stopped_typing"]
        assert listener.websocket.sent_messages[0]["payload"] == {"userId": "u1", "username": "ada"}

    @pytest.mark.asyncio
    async def test_message_too_long(self, manager, room):
        sender, _ = room

        with pytest.raises(HandlerError) as exc_info:
            await ChatHandler(manager).handle(
                sender,
                envelope(EventType.SEND_MESSAGE, {"room": "t1", "type": "team", "message": "x" * 501}),
            )

        assert exc_info.value.code == "MESSAGE_TOO_LONG"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            {"room": "t1", "type": "user", "message": "hi"},
            {"type": "team", "message": "hi"},
            {"room": "t1", "type": "team", "message": "   "},
        ],
    )
    async def test_invalid_payloads(self, manager, room, payload):
        sender, _ = room

        with pytest.raises(HandlerError) as exc_info:
            await ChatHandler(manager).handle(sender, envelope(EventType.SEND_MESSAGE, payload))

        assert exc_info.value.code == "INVALID_PAYLOAD"
