"""Row builders and request payload helpers for tests."""

from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import uuid4

from crackzone.models import (
    Banner,
    Match,
    MatchParticipant,
    Notification,
    NotificationType,
    Profile,
    Reward,
    RewardType,
    Team,
    TeamMember,
    TeamRole,
    Tournament,
    TournamentFormat,
    TournamentParticipant,
    TournamentStatus,
    User,
    UserRole,
)
from crackzone.utils.db import async_session_factory
from crackzone.utils.json_utils import json_loads
from crackzone.utils.security import create_access_token, hash_password
from crackzone.ws.connection import WebSocketConnection

DEFAULT_PASSWORD = "Passw0rd!"

_password_hash: str | None = None


def _default_hash() -> str:
    # bcrypt is slow on purpose; hash the shared password once per run
    global _password_hash
    if _password_hash is None:
        _password_hash = hash_password(DEFAULT_PASSWORD)
    return _password_hash


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


def make_register_data(**overrides: Any) -> dict[str, Any]:
    suffix = uuid4().hex[:8]
    data = {
        "email": f"gamer_{suffix}@example.com",
        "username": f"gamer_{suffix}",
        "password": "Str0ng!Pass",
        "firstName": "Test",
        "lastName": "Gamer",
    }
    data.update(overrides)
    return data


def make_tournament_data(**overrides: Any) -> dict[str, Any]:
    start = datetime.now(timezone.utc) + timedelta(days=7)
    data = {
        "title": "Friday Night Clash",
        "description": "Weekly community cup",
        "game": "valorant",
        "format": TournamentFormat.SINGLE_ELIMINATION.value,
        "maxParticipants": 8,
        "entryFee": 0,
        "prizePool": 500,
        "startDate": start.isoformat(),
        "endDate": (start + timedelta(hours=6)).isoformat(),
    }
    data.update(overrides)
    return data


async def _save(*rows):
    async with async_session_factory() as session:
        session.add_all(rows)
        await session.commit()
    return rows[0] if len(rows) == 1 else rows


async def reload(model, pk: str):
    """Fetch a fresh copy of a row in a throwaway session."""
    async with async_session_factory() as session:
        return await session.get(model, pk)


async def create_user(
    username: str | None = None,
    email: str | None = None,
    role: UserRole = UserRole.USER,
    coins: int = 0,
    level: int = 1,
    experience: int = 0,
    is_active: bool = True,
    is_verified: bool = True,
) -> User:
    suffix = uuid4().hex[:8]
    user = User(
        username=username or f"user_{suffix}",
        email=email or f"user_{suffix}@example.com",
        password_hash=_default_hash(),
        role=role,
        coins=coins,
        level=level,
        experience=experience,
        is_active=is_active,
        is_verified=is_verified,
    )
    user.profile = Profile()
    return await _save(user)


async def create_tournament(
    status: TournamentStatus = TournamentStatus.REGISTRATION_OPEN,
    max_participants: int = 8,
    participants: list[User] = (),
    **fields: Any,
) -> Tournament:
    tournament = Tournament(
        title=fields.pop("title", "Weekend Cup"),
        game=fields.pop("game", "valorant"),
        format=fields.pop("format", TournamentFormat.SINGLE_ELIMINATION),
        status=status,
        max_participants=max_participants,
        start_date=fields.pop("start_date", datetime.now(timezone.utc) + timedelta(days=3)),
        **fields,
    )
    await _save(tournament)
    if participants:
        await _save(
            *(TournamentParticipant(tournament_id=tournament.id, user_id=p.id) for p in participants)
        )
    return tournament


async def create_team(leader: User, members: list[User] = (), max_members: int = 5, name: str = "Night Owls") -> Team:
    team = Team(name=name, max_members=max_members)
    await _save(team)
    rows = [TeamMember(team_id=team.id, user_id=leader.id, role=TeamRole.LEADER)]
    rows += [TeamMember(team_id=team.id, user_id=m.id, role=TeamRole.MEMBER) for m in members]
    await _save(*rows)
    return team


async def create_match(participants: list[User], tournament: Tournament | None = None, **fields: Any) -> Match:
    match = Match(
        title=fields.pop("title", "Quarter Final"),
        game=fields.pop("game", "valorant"),
        tournament_id=tournament.id if tournament else None,
        **fields,
    )
    await _save(match)
    await _save(*(MatchParticipant(match_id=match.id, user_id=p.id) for p in participants))
    return match


async def create_reward(
    type: RewardType = RewardType.COINS,
    value: int = 100,
    requirements: dict[str, Any] | None = None,
    is_active: bool = True,
    title: str = "Welcome Bonus",
) -> Reward:
    return await _save(
        Reward(title=title, type=type, value=value, requirements=requirements, is_active=is_active)
    )


async def create_notification(
    user: User,
    title: str = "Heads up",
    type: NotificationType = NotificationType.SYSTEM,
    is_read: bool = False,
    meta: dict[str, Any] | None = None,
) -> Notification:
    return await _save(
        Notification(user_id=user.id, title=title, message=f"{title}!", type=type, is_read=is_read, meta=meta)
    )


async def create_banner(
    title: str = "Season Finals",
    priority: int = 0,
    is_active: bool = True,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    image_public_id: str | None = None,
) -> Banner:
    return await _save(
        Banner(
            title=title,
            image_url=f"/media/crackzone/banners/{uuid4().hex}.jpg",
            image_public_id=image_public_id,
            priority=priority,
            is_active=is_active,
            start_date=start_date,
            end_date=end_date,
        )
    )


# =============================================================================
# Realtime
# =============================================================================


class MockWebSocket:
    """Stands in for a Starlette WebSocket; records outgoing frames."""

    def __init__(self, fail_send: bool = False):
        self.fail_send = fail_send
        self.closed = False
        self.close_code: int | None = None
        self.close_reason: str | None = None
        self.sent_messages: list[dict[str, Any]] = []

    async def send_text(self, data: str) -> None:
        if self.fail_send:
            raise RuntimeError("socket is gone")
        self.sent_messages.append(json_loads(data))

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.closed = True
        self.close_code = code
        self.close_reason = reason

    def of_type(self, event_type: str) -> list[dict[str, Any]]:
        return [m for m in self.sent_messages if m["type"] == event_type]


def make_connection(user: User | None = None, user_id: str | None = None, username: str = "tester", **kwargs: Any):
    return WebSocketConnection(
        websocket=kwargs.pop("websocket", None) or MockWebSocket(),
        user_id=user.id if user else (user_id or str(uuid4())),
        username=user.username if user else username,
        connection_id=kwargs.pop("connection_id", None) or str(uuid4()),
        connected_at=kwargs.pop("connected_at", None) or datetime.now(timezone.utc),
    )


async def connect_socket(manager, user: User) -> MockWebSocket:
    """Register a socket for ``user`` and return it."""
    conn = make_connection(user)
    await manager.connect(conn)
    return conn.websocket
