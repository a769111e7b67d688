"""User service."""

import logging
from typing import Any

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from crackzone.config import get_settings
from crackzone.models.match import MatchParticipant
from crackzone.models.notification import Notification, NotificationType
from crackzone.models.order import Order
from crackzone.models.reward import UserReward
from crackzone.models.team import TeamMember
from crackzone.models.tournament import TournamentParticipant
from crackzone.models.transaction import Transaction
from crackzone.models.user import GameProfile, Profile, User
from crackzone.schemas.common import PaginationParams
from crackzone.schemas.payloads import NotificationMetadata
from crackzone.schemas.requests import (
    AdminCreateUserRequest,
    AdminUpdateUserRequest,
    GameProfileRequest,
    UpdateProfileRequest,
)
from crackzone.schemas.responses import PublicProfileResponse, UserStats
from crackzone.services.events import get_outbox
from crackzone.services.image import AVATAR, ImageStorage
from crackzone.utils.cache import Cache, invalidate_user, user_profile_key
from crackzone.utils.db import atomic, paginate
from crackzone.utils.errors import ConflictError, NotFoundError
from crackzone.utils.security import hash_password
from crackzone.utils.sql import icontains

logger = logging.getLogger(__name__)

settings = get_settings()

SORTABLE_FIELDS = {
    "createdAt": User.created_at,
    "username": User.username,
    "level": User.level,
    "experience": User.experience,
}

# Tables referencing users.id, in deletion order
_USER_DEPENDENTS = (
    Notification,
    Transaction,
    UserReward,
    Order,
    TeamMember,
    TournamentParticipant,
    MatchParticipant,
    GameProfile,
    Profile,
)


async def get_user_with_profile(db: AsyncSession, user_id: str) -> User:
    result = await db.execute(
        select(User)
        .options(selectinload(User.profile))
        .where(User.id == user_id)
        .execution_options(populate_existing=True)
    )
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFoundError("User not found")
    return user


async def ensure_unique_identity(
    db: AsyncSession,
    email: str | None = None,
    username: str | None = None,
) -> None:
    """Raise ConflictError if the email or username is already used."""
    if email is not None:
        existing = await db.scalar(select(User.id).where(User.email == email))
        if existing:
            raise ConflictError("Email already registered")
    if username is not None:
        existing = await db.scalar(select(User.id).where(User.username == username))
        if existing:
            raise ConflictError("Username already taken")


class UserService:
    """Service for user management operations."""

    def __init__(self, db: AsyncSession, cache: Cache):
        self.db = db
        self.cache = cache

    async def list_users(
        self,
        params: PaginationParams,
        search: str | None = None,
        sort_by: str = "createdAt",
        sort_order: str = "desc",
    ) -> tuple[list[User], int]:
        """List active users, optionally filtered by a name search."""
        stmt = select(User).where(User.is_active.is_(True))
        if search:
            stmt = stmt.where(
                or_(
                    icontains(User.username, search),
                    icontains(User.first_name, search),
                    icontains(User.last_name, search),
                )
            )

        column = SORTABLE_FIELDS.get(sort_by, User.created_at)
        stmt = stmt.order_by(column.asc() if sort_order == "asc" else column.desc())
        return await paginate(self.db, stmt, params, options=(selectinload(User.profile),))

    async def get_public_profile(self, user_id: str) -> PublicProfileResponse:
        """Public profile with participation counts, cached for a few minutes."""
        cached = await self.cache.get(user_profile_key(user_id))
        if cached is not None:
            return PublicProfileResponse.model_validate(cached)

        user = await get_user_with_profile(self.db, user_id)
        stats = UserStats(
            teams=await self._count(TeamMember, user_id),
            tournaments=await self._count(TournamentParticipant, user_id),
            matches=await self._count(MatchParticipant, user_id),
        )
        profile = PublicProfileResponse.model_validate(user)
        profile.stats = stats

        await self.cache.set(
            user_profile_key(user_id),
            profile.model_dump(mode="json"),
            ttl=settings.user_profile_cache_ttl,
        )
        return profile

    async def _count(self, model: Any, user_id: str) -> int:
        return await self.db.scalar(
            select(func.count()).select_from(model).where(model.user_id == user_id)
        ) or 0

    async def update_profile(self, user_id: str, data: UpdateProfileRequest) -> User:
        """Update account fields and upsert the profile record.

        Raises:
            ConflictError: The gamer tag belongs to someone else
        """
        user = await get_user_with_profile(self.db, user_id)
        changes = data.model_dump(by_alias=False, exclude_unset=True)

        gamer_tag = changes.get("gamer_tag")
        if gamer_tag and gamer_tag != user.gamer_tag:
            taken = await self.db.scalar(
                select(User.id).where(User.gamer_tag == gamer_tag, User.id != user_id)
            )
            if taken:
                raise ConflictError("Gamer tag already taken")

        for field in ("first_name", "last_name", "phone", "gamer_tag"):
            if field in changes:
                setattr(user, field, changes[field])

        profile_fields = {
            k: v
            for k, v in changes.items()
            if k in ("bio", "country", "timezone", "date_of_birth", "preferences")
        }
        if profile_fields:
            if user.profile is None:
                user.profile = Profile(user_id=user.id, **profile_fields)
            else:
                for field, value in profile_fields.items():
                    setattr(user.profile, field, value)

        user.profile_setup = True
        await self.db.flush()
        await invalidate_user(self.cache, user_id)
        return await get_user_with_profile(self.db, user_id)

    async def set_avatar(self, user_id: str, data: bytes, content_type: str | None, storage: ImageStorage) -> User:
        user = await get_user_with_profile(self.db, user_id)
        image = await storage.upload(data, content_type, AVATAR)
        old_public_id = user.avatar_public_id

        user.avatar = image.url
        user.avatar_public_id = image.public_id
        await self.db.flush()

        await storage.delete_quietly(old_public_id)
        await invalidate_user(self.cache, user_id)
        return user

    async def remove_avatar(self, user_id: str, storage: ImageStorage) -> None:
        user = await get_user_with_profile(self.db, user_id)
        old_public_id = user.avatar_public_id
        user.avatar = None
        user.avatar_public_id = None
        await self.db.flush()

        await storage.delete_quietly(old_public_id)
        await invalidate_user(self.cache, user_id)

    # =========================================================================
    # Game profiles
    # =========================================================================

    async def list_game_profiles(self, user_id: str) -> list[GameProfile]:
        result = await self.db.scalars(
            select(GameProfile)
            .where(GameProfile.user_id == user_id)
            .order_by(GameProfile.is_primary.desc(), GameProfile.created_at)
        )
        return list(result.all())

    async def upsert_game_profile(self, user_id: str, data: GameProfileRequest) -> GameProfile:
        """Create or replace the profile for one game.

        At most one game profile per user is primary.
        """
        profile = await self.db.scalar(
            select(GameProfile).where(
                GameProfile.user_id == user_id,
                GameProfile.game_id == data.game_id,
            )
        )
        if profile is None:
            profile = GameProfile(user_id=user_id, game_id=data.game_id)
            self.db.add(profile)

        profile.game_name = data.game_name
        profile.game_uid = data.game_uid
        profile.in_game_name = data.in_game_name
        profile.is_primary = data.is_primary

        if data.is_primary:
            others = await self.db.scalars(
                select(GameProfile).where(
                    GameProfile.user_id == user_id,
                    GameProfile.game_id != data.game_id,
                    GameProfile.is_primary.is_(True),
                )
            )
            for other in others.all():
                other.is_primary = False

        user = await self.db.get(User, user_id)
        if user is not None:
            user.game_setup = True

        await self.db.flush()
        await invalidate_user(self.cache, user_id)
        return profile

    async def delete_game_profile(self, user_id: str, game_id: str) -> None:
        profile = await self.db.scalar(
            select(GameProfile).where(
                GameProfile.user_id == user_id,
                GameProfile.game_id == game_id,
            )
        )
        if profile is None:
            raise NotFoundError("Game profile not found")
        await self.db.delete(profile)
        await self.db.flush()

    # =========================================================================
    # Administration
    # =========================================================================

    async def create_user(self, data: AdminCreateUserRequest) -> User:
        await ensure_unique_identity(self.db, email=data.email, username=data.username)
        user = User(
            email=data.email,
            username=data.username,
            password_hash=hash_password(data.password),
            first_name=data.first_name,
            last_name=data.last_name,
            role=data.role,
            is_verified=data.is_verified,
            profile=Profile(),
        )
        self.db.add(user)
        await self.db.flush()
        logger.info(f"Admin created user {user.id} ({user.role.value})")
        return await get_user_with_profile(self.db, user.id)

    async def update_user(self, user_id: str, data: AdminUpdateUserRequest) -> User:
        user = await get_user_with_profile(self.db, user_id)
        for field, value in data.model_dump(by_alias=False, exclude_unset=True, exclude_none=True).items():
            setattr(user, field, value)
        await self.db.flush()
        await invalidate_user(self.cache, user_id)
        return user

    async def delete_user(self, user_id: str, hard: bool = False) -> None:
        """Deactivate a user, or remove the user and every dependent row."""
        user = await self.db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")

        if not hard:
            user.is_active = False
            await self.db.flush()
        else:
            async with atomic(self.db):
                for model in _USER_DEPENDENTS:
                    await self.db.execute(delete(model).where(model.user_id == user_id))
                await self.db.execute(delete(User).where(User.id == user_id))
            logger.info(f"Hard-deleted user {user_id}")

        await invalidate_user(self.cache, user_id)

    async def set_banned(self, user_id: str, banned: bool, reason: str | None = None) -> None:
        user = await self.db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")

        user.is_active = not banned
        outbox = get_outbox(self.db)
        if banned:
            await outbox.notify(
                user_id,
                "Account Suspended",
                reason or "Your account has been suspended.",
                NotificationType.SYSTEM,
                NotificationMetadata(reason=reason) if reason else None,
            )
        else:
            await outbox.notify(
                user_id,
                "Account Restored",
                "Your account has been restored.",
                NotificationType.SYSTEM,
            )
        await invalidate_user(self.cache, user_id)
