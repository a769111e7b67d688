"""Realtime event names."""

from enum import Enum


class EventType(str, Enum):
    # Connection
    AUTH = "AUTH"
    CONNECTED = "connected"
    PING = "ping"
    PONG = "pong"
    ERROR = "error"

    # Rooms (client -> server)
    JOIN_TOURNAMENT = "join_tournament"
    LEAVE_TOURNAMENT = "leave_tournament"
    JOIN_TEAM = "join_team"
    LEAVE_TEAM = "leave_team"
    JOIN_MATCH = "join_match"
    LEAVE_MATCH = "leave_match"

    # Rooms (server -> client)
    ROOM_JOINED = "room_joined"
    ROOM_LEFT = "room_left"

    # Chat
    SEND_MESSAGE = "send_message"
    TYPING_START = "typing_start"
    TYPING_STOP = "typing_stop"
    NEW_MESSAGE = "new_message"
    USER_TYPING = "user_typing"
    USER_STOPPED_TYPING = "user_stopped_typing"

    # Domain events
    NOTIFICATION = "notification"
    TOURNAMENT_UPDATED = "tournament_updated"
    TOURNAMENT_STARTED = "tournament_started"
    TOURNAMENT_COMPLETED = "tournament_completed"
    TOURNAMENT_CANCELLED = "tournament_cancelled"
    PARTICIPANT_JOINED = "participant_joined"
    PARTICIPANT_LEFT = "participant_left"
    TEAM_UPDATED = "team_updated"
    TEAM_DISBANDED = "team_disbanded"
    TEAM_MEMBER_JOINED = "team_member_joined"
    TEAM_MEMBER_LEFT = "team_member_left"
    TEAM_MEMBER_KICKED = "team_member_kicked"
    TEAM_LEADER_CHANGED = "team_leader_changed"
    MATCH_UPDATED = "match_updated"
    MATCH_STARTED = "match_started"
    MATCH_COMPLETED = "match_completed"
    MATCH_CANCELLED = "match_cancelled"
    ORDER_UPDATED = "order_updated"
    TRANSACTION_UPDATED = "transaction_updated"
    REWARD_CLAIMED = "reward_claimed"
    ANNOUNCEMENT = "announcement"


ROOM_EVENTS: dict[EventType, tuple[str, bool]] = {
    # event -> (room kind, join?)
    EventType.JOIN_TOURNAMENT: ("tournament", True),
    EventType.LEAVE_TOURNAMENT: ("tournament", False),
    EventType.JOIN_TEAM: ("team", True),
    EventType.LEAVE_TEAM: ("team", False),
    EventType.JOIN_MATCH: ("match", True),
    EventType.LEAVE_MATCH: ("match", False),
}

CHAT_ROOM_KINDS = frozenset({"tournament", "team", "match"})

CLIENT_TO_SERVER_EVENTS = frozenset(
    {
        EventType.PING,
        *ROOM_EVENTS,
        EventType.SEND_MESSAGE,
        EventType.TYPING_START,
        EventType.TYPING_STOP,
    }
)


def room_name(kind: str, ident: str) -> str:
    """Room naming shared by handlers and the notifier."""
    return f"{kind}:{ident}"


def user_room(user_id: str) -> str:
    return room_name("user", user_id)
