"""Team service.

A team has exactly one LEADER while it has members. Only the leader can
edit, invite, kick or hand over leadership, and the leader may leave only
once nobody else is left.
"""

import logging

from sqlalchemy import case, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from crackzone.models.notification import NotificationType
from crackzone.models.team import Team, TeamMember, TeamRole
from crackzone.models.user import User
from crackzone.schemas.common import PaginationParams
from crackzone.schemas.payloads import NotificationMetadata
from crackzone.schemas.requests import TeamCreateRequest, TeamUpdateRequest
from crackzone.services.events import get_outbox
from crackzone.services.image import TEAM_LOGO, ImageStorage
from crackzone.utils.db import atomic, paginate, unique_insert
from crackzone.utils.errors import (
    BusinessRuleError,
    ConflictError,
    ErrorCode,
    NotFoundError,
    PermissionDeniedError,
)
from crackzone.utils.sql import icontains
from crackzone.ws.events import EventType, room_name

logger = logging.getLogger(__name__)

_LEADER_FIRST = case((TeamMember.role == TeamRole.LEADER, 0), else_=1)


class TeamService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.outbox = get_outbox(db)

    async def list_teams(self, params: PaginationParams, search: str | None = None) -> tuple[list[Team], int]:
        stmt = select(Team).where(Team.is_active.is_(True))
        if search:
            stmt = stmt.where(icontains(Team.name, search))
        stmt = stmt.order_by(Team.created_at.desc())
        return await paginate(self.db, stmt, params, options=(selectinload(Team.members),))

    async def get_team(self, team_id: str, active_only: bool = True) -> Team:
        result = await self.db.execute(
            select(Team)
            .options(selectinload(Team.members).selectinload(TeamMember.user))
            .where(Team.id == team_id)
            .execution_options(populate_existing=True)
        )
        team = result.scalar_one_or_none()
        if team is None or (active_only and not team.is_active):
            raise NotFoundError("Team not found")
        team.members.sort(key=lambda m: (m.role != TeamRole.LEADER, m.joined_at))
        return team

    async def _membership_of(self, user_id: str) -> TeamMember | None:
        return await self.db.scalar(select(TeamMember).where(TeamMember.user_id == user_id))

    async def _member(self, team_id: str, user_id: str) -> TeamMember | None:
        return await self.db.scalar(
            select(TeamMember).where(TeamMember.team_id == team_id, TeamMember.user_id == user_id)
        )

    async def _require_leader(self, team_id: str, user_id: str, action: str) -> TeamMember:
        membership = await self._member(team_id, user_id)
        if membership is None or membership.role != TeamRole.LEADER:
            raise PermissionDeniedError(f"Only team leaders can {action}")
        return membership

    async def _member_count(self, team_id: str) -> int:
        return await self.db.scalar(
            select(func.count()).select_from(TeamMember).where(TeamMember.team_id == team_id)
        ) or 0

    async def create_team(self, user_id: str, data: TeamCreateRequest) -> Team:
        """Create a team led by ``user_id``."""
        if await self._membership_of(user_id) is not None:
            raise ConflictError("You are already a member of a team")

        team = Team(name=data.name, description=data.description, max_members=data.max_members)
        self.db.add(team)
        await self.db.flush()
        self.db.add(TeamMember(team_id=team.id, user_id=user_id, role=TeamRole.LEADER))
        await self.db.flush()

        logger.info(f"Team created: {team.id} by {user_id}")
        return await self.get_team(team.id)

    async def update_team(self, team_id: str, user_id: str, data: TeamUpdateRequest) -> Team:
        await self._require_leader(team_id, user_id, "update team details")
        team = await self.get_team(team_id)

        changes = data.model_dump(by_alias=False, exclude_unset=True, exclude_none=True)
        if "max_members" in changes and changes["max_members"] < len(team.members):
            raise BusinessRuleError("maxMembers cannot be lower than the current member count")
        for field, value in changes.items():
            setattr(team, field, value)
        await self.db.flush()

        self.outbox.publish(
            room_name("team", team.id),
            EventType.TEAM_UPDATED,
            {"teamId": team.id, "name": team.name},
        )
        return team

    async def delete_team(self, team_id: str, user_id: str) -> None:
        """Deactivate the team and release all memberships."""
        await self._require_leader(team_id, user_id, "delete the team")
        team = await self.get_team(team_id)
        member_ids = [m.user_id for m in team.members]

        team.is_active = False
        await self.db.execute(delete(TeamMember).where(TeamMember.team_id == team_id))
        await self.db.flush()

        metadata = NotificationMetadata(team_id=team_id)
        for member_id in member_ids:
            if member_id != user_id:
                await self.outbox.notify(
                    member_id,
                    "Team Disbanded",
                    f"{team.name} has been disbanded by its leader.",
                    NotificationType.TEAM,
                    metadata,
                )
        self.outbox.publish(room_name("team", team_id), EventType.TEAM_DISBANDED, {"teamId": team_id})

    async def join_team(self, team_id: str, user_id: str) -> TeamMember:
        team = await self.db.get(Team, team_id)
        if team is None or not team.is_active:
            raise NotFoundError("Team not found")

        if await self._member_count(team_id) >= team.max_members:
            raise BusinessRuleError("Team is full", code=ErrorCode.CAPACITY_REACHED)

        if await self._membership_of(user_id) is not None:
            raise ConflictError("You are already a member of a team")

        member = TeamMember(team_id=team_id, user_id=user_id, role=TeamRole.MEMBER)
        async with unique_insert(self.db, "You are already a member of this team"):
            self.db.add(member)

        self.outbox.publish(
            room_name("team", team_id),
            EventType.TEAM_MEMBER_JOINED,
            {"teamId": team_id, "userId": user_id},
        )
        return member

    async def leave_team(self, team_id: str, user_id: str) -> None:
        membership = await self._member(team_id, user_id)
        if membership is None:
            raise NotFoundError("You are not a member of this team")

        if membership.role == TeamRole.LEADER and await self._member_count(team_id) > 1:
            raise BusinessRuleError("Transfer leadership before leaving the team")

        await self.db.delete(membership)
        await self.db.flush()

        if await self._member_count(team_id) == 0:
            team = await self.db.get(Team, team_id)
            if team is not None:
                team.is_active = False
                await self.db.flush()

        self.outbox.publish(
            room_name("team", team_id),
            EventType.TEAM_MEMBER_LEFT,
            {"teamId": team_id, "userId": user_id},
        )

    async def list_members(self, team_id: str) -> list[TeamMember]:
        team = await self.db.get(Team, team_id)
        if team is None or not team.is_active:
            raise NotFoundError("Team not found")
        result = await self.db.scalars(
            select(TeamMember)
            .options(selectinload(TeamMember.user))
            .where(TeamMember.team_id == team_id)
            .order_by(_LEADER_FIRST, TeamMember.joined_at.asc())
        )
        return list(result.all())

    async def invite(self, team_id: str, user_id: str, username: str) -> None:
        await self._require_leader(team_id, user_id, "invite members")
        team = await self.db.get(Team, team_id)
        if team is None or not team.is_active:
            raise NotFoundError("Team not found")

        invitee = await self.db.scalar(select(User).where(User.username == username))
        if invitee is None:
            raise NotFoundError("User not found")

        await self.outbox.notify(
            invitee.id,
            "Team Invitation",
            f"You have been invited to join {team.name}",
            NotificationType.TEAM,
            NotificationMetadata(team_id=team_id, invited_by=user_id),
        )

    async def kick(self, team_id: str, user_id: str, target_user_id: str) -> None:
        await self._require_leader(team_id, user_id, "kick members")
        if user_id == target_user_id:
            raise BusinessRuleError("Cannot kick yourself")

        target = await self._member(team_id, target_user_id)
        if target is None:
            raise NotFoundError("User is not a member of this team")

        await self.db.delete(target)
        await self.db.flush()

        await self.outbox.notify(
            target_user_id,
            "Removed from Team",
            "You have been removed from your team.",
            NotificationType.TEAM,
            NotificationMetadata(team_id=team_id),
        )
        self.outbox.publish(
            room_name("team", team_id),
            EventType.TEAM_MEMBER_KICKED,
            {"teamId": team_id, "userId": target_user_id},
        )

    async def promote(self, team_id: str, user_id: str, target_user_id: str) -> None:
        """Hand leadership to another member in one step."""
        leader = await self._require_leader(team_id, user_id, "promote members")
        if user_id == target_user_id:
            raise BusinessRuleError("You are already the team leader")

        target = await self._member(team_id, target_user_id)
        if target is None:
            raise NotFoundError("User is not a member of this team")

        async with atomic(self.db):
            leader.role = TeamRole.MEMBER
            target.role = TeamRole.LEADER

        await self.outbox.notify(
            target_user_id,
            "Team Leadership",
            "You are now the leader of your team.",
            NotificationType.TEAM,
            NotificationMetadata(team_id=team_id),
        )
        self.outbox.publish(
            room_name("team", team_id),
            EventType.TEAM_LEADER_CHANGED,
            {"teamId": team_id, "leaderId": target_user_id, "previousLeaderId": user_id},
        )

    async def set_logo(
        self,
        team_id: str,
        user_id: str,
        data: bytes,
        content_type: str | None,
        storage: ImageStorage,
    ) -> Team:
        await self._require_leader(team_id, user_id, "update the team logo")
        team = await self.get_team(team_id)
        image = await storage.upload(data, content_type, TEAM_LOGO)
        old_public_id = team.avatar_public_id

        team.avatar = image.url
        team.avatar_public_id = image.public_id
        await self.db.flush()

        await storage.delete_quietly(old_public_id)
        self.outbox.publish(
            room_name("team", team.id),
            EventType.TEAM_UPDATED,
            {"teamId": team.id, "avatar": team.avatar},
        )
        return team
