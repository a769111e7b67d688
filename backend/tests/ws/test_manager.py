"""Connection registry, rooms and fan-out."""

from datetime import datetime, timedelta, timezone

import pytest

from crackzone.utils.json_utils import json_dumps, json_loads
from crackzone.ws.manager import PUBSUB_PREFIX, ConnectionLimitExceeded, ConnectionManager

from factories import MockWebSocket, make_connection


class RecordingRedis:
    def __init__(self):
        self.published: list[tuple[str, str]] = []

    async def publish(self, channel, data):
        self.published.append((channel, data))


@pytest.fixture
def manager():
    return ConnectionManager()


class TestConnections:
    @pytest.mark.asyncio
    async def test_connect_joins_personal_room(self, manager):
        conn = make_connection(user_id="u1")

        await manager.connect(conn)

        assert manager.connection_count == 1
        assert conn.in_room("user:u1")
        assert manager.room_members("user:u1") == [conn]
        assert manager.get_user_connections("u1") == [conn]

    @pytest.mark.asyncio
    async def test_disconnect_cleans_up(self, manager):
        conn = make_connection(user_id="u1")
        await manager.connect(conn)
        manager.join(conn.connection_id, "team:t1")

        await manager.disconnect(conn.connection_id)
        await manager.disconnect(conn.connection_id)

        assert manager.connection_count == 0
        assert manager.room_members("team:t1") == []
        assert manager.get_user_connections("u1") == []
        assert conn.rooms == set()

    @pytest.mark.asyncio
    async def test_instance_limit(self, manager):
        manager._max_connections = 1
        await manager.connect(make_connection(user_id="u1"))

        with pytest.raises(ConnectionLimitExceeded):
            await manager.connect(make_connection(user_id="u2"))

    @pytest.mark.asyncio
    async def test_oldest_socket_replaced_past_per_user_limit(self, manager):
        start = datetime.now(timezone.utc)
        conns = [
            make_connection(user_id="u1", connected_at=start + timedelta(seconds=i))
            for i in range(manager._max_connections_per_user + 1)
        ]
        for conn in conns:
            await manager.connect(conn)

        oldest = conns[0]
        assert oldest.websocket.closed
        assert oldest.websocket.close_code == 4002
        assert manager.get_connection(oldest.connection_id) is None
        assert len(manager.get_user_connections("u1")) == manager._max_connections_per_user

    @pytest.mark.asyncio
    async def test_stop_closes_everything(self, manager):
        conn = make_connection(user_id="u1")
        await manager.start()
        await manager.connect(conn)

        await manager.stop()

        assert conn.websocket.close_code == 1001
        assert manager.connection_count == 0


class TestRooms:
    @pytest.mark.asyncio
    async def test_join_unknown_connection(self, manager):
        assert manager.join("nope", "team:t1") is False
        assert manager.leave("nope", "team:t1") is False

    @pytest.mark.asyncio
    async def test_broadcast_to_room(self, manager):
        a = make_connection(user_id="a")
        b = make_connection(user_id="b")
        c = make_connection(user_id="c")
        for conn in (a, b, c):
            await manager.connect(conn)
        manager.join(a.connection_id, "match:m1")
        manager.join(b.connection_id, "match:m1")

        delivered = await manager.broadcast_to_room("match:m1", {"type": "match_updated"}, exclude_connection=a.connection_id)

        assert delivered == 1
        assert a.websocket.sent_messages == []
        assert b.websocket.sent_messages == [{"type": "match_updated"}]
        assert c.websocket.sent_messages == []

    @pytest.mark.asyncio
    async def test_leave_stops_delivery(self, manager):
        conn = make_connection(user_id="a")
        await manager.connect(conn)
        manager.join(conn.connection_id, "team:t1")
        manager.leave(conn.connection_id, "team:t1")

        assert await manager.broadcast_to_room("team:t1", {"type": "team_updated"}) == 0

    @pytest.mark.asyncio
    async def test_send_to_user_reaches_every_socket(self, manager):
        first = make_connection(user_id="u1")
        second = make_connection(user_id="u1")
        await manager.connect(first)
        await manager.connect(second)

        assert await manager.send_to_user("u1", {"type": "notification"}) == 2

    @pytest.mark.asyncio
    async def test_failed_send_is_not_counted(self, manager):
        healthy = make_connection(user_id="a")
        broken = make_connection(user_id="b", websocket=MockWebSocket(fail_send=True))
        await manager.connect(healthy)
        await manager.connect(broken)

        assert await manager.broadcast_all({"type": "announcement"}) == 1


class TestRedisFanOut:
    @pytest.mark.asyncio
    async def test_broadcast_is_published(self):
        redis = RecordingRedis()
        manager = ConnectionManager(redis)

        await manager.broadcast_to_room("team:t1", {"type": "team_updated"}, exclude_connection="c1")

        [(channel, data)] = redis.published
        assert channel == f"{PUBSUB_PREFIX}team:t1"
        assert json_loads(data) == {
            "source_instance": manager._instance_id,
            "exclude_connection": "c1",
            "message": {"type": "team_updated"},
        }

    @pytest.mark.asyncio
    async def test_remote_messages_delivered_locally(self, manager):
        conn = make_connection(user_id="u1")
        await manager.connect(conn)

        await manager._handle_pubsub_message(
            {
                "channel": f"{PUBSUB_PREFIX}user:u1".encode(),
                "data": json_dumps({"source_instance": "other", "message": {"type": "notification"}}),
            }
        )

        assert conn.websocket.sent_messages == [{"type": "notification"}]

    @pytest.mark.asyncio
    async def test_own_messages_ignored(self, manager):
        conn = make_connection(user_id="u1")
        await manager.connect(conn)

        await manager._handle_pubsub_message(
            {
                "channel": f"{PUBSUB_PREFIX}user:u1",
                "data": json_dumps({"source_instance": manager._instance_id, "message": {"type": "notification"}}),
            }
        )

        assert conn.websocket.sent_messages == []
