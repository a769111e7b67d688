"""User API endpoints."""

from typing import Annotated, Literal

from fastapi import APIRouter, Depends, File, Query, UploadFile, status

from crackzone.api.deps import CacheDep, CurrentUser, DbSession, Pagination, UserAdmin, UserModerator
from crackzone.schemas.common import ERROR_RESPONSES, MessageResponse, PaginationMeta
from crackzone.schemas.requests import (
    AdminCreateUserRequest,
    AdminUpdateUserRequest,
    BanUserRequest,
    GameProfileRequest,
    UpdateProfileRequest,
)
from crackzone.schemas.responses import (
    GameProfileResponse,
    PublicProfileResponse,
    UserEnvelope,
    UserListResponse,
    UserResponse,
)
from crackzone.services.image import ImageStorage, get_image_storage
from crackzone.services.user import UserService

router = APIRouter(prefix="/users", tags=["Users"])

StorageDep = Annotated[ImageStorage, Depends(get_image_storage)]


@router.get("", response_model=UserListResponse, responses=ERROR_RESPONSES)
async def list_users(
    current_user: CurrentUser,
    db: DbSession,
    cache: CacheDep,
    pagination: Pagination,
    search: str | None = None,
    sort_by: Annotated[str, Query(alias="sortBy")] = "createdAt",
    sort_order: Annotated[Literal["asc", "desc"], Query(alias="sortOrder")] = "desc",
):
    """List active users. Unknown ``sortBy`` values fall back to creation date."""
    users, total = await UserService(db, cache).list_users(pagination, search, sort_by, sort_order)
    return UserListResponse(
        users=[PublicProfileResponse.model_validate(u) for u in users],
        pagination=PaginationMeta.build(pagination, total),
    )


# =============================================================================
# Own account
# =============================================================================


@router.put("/me/profile", response_model=UserEnvelope, responses=ERROR_RESPONSES)
async def update_profile(request_body: UpdateProfileRequest, current_user: CurrentUser, db: DbSession, cache: CacheDep):
    user = await UserService(db, cache).update_profile(current_user.id, request_body)
    return UserEnvelope(message="Profile updated successfully", user=UserResponse.model_validate(user))


@router.post("/me/avatar", response_model=UserEnvelope, responses=ERROR_RESPONSES)
async def upload_avatar(
    current_user: CurrentUser,
    db: DbSession,
    cache: CacheDep,
    storage: StorageDep,
    avatar: Annotated[UploadFile, File()],
):
    data = await avatar.read()
    user = await UserService(db, cache).set_avatar(current_user.id, data, avatar.content_type, storage)
    return UserEnvelope(message="Avatar uploaded successfully", user=UserResponse.model_validate(user))


@router.delete("/me/avatar", response_model=MessageResponse, responses=ERROR_RESPONSES)
async def delete_avatar(current_user: CurrentUser, db: DbSession, cache: CacheDep, storage: StorageDep):
    await UserService(db, cache).remove_avatar(current_user.id, storage)
    return MessageResponse(message="Avatar removed successfully")


@router.get("/me/game-profiles", response_model=list[GameProfileResponse], responses=ERROR_RESPONSES)
async def list_game_profiles(current_user: CurrentUser, db: DbSession, cache: CacheDep):
    return await UserService(db, cache).list_game_profiles(current_user.id)


@router.put("/me/game-profiles", response_model=GameProfileResponse, responses=ERROR_RESPONSES)
async def upsert_game_profile(
    request_body: GameProfileRequest,
    current_user: CurrentUser,
    db: DbSession,
    cache: CacheDep,
):
    """Create or replace the caller's profile for one game."""
    return await UserService(db, cache).upsert_game_profile(current_user.id, request_body)


@router.delete("/me/game-profiles/{game_id}", response_model=MessageResponse, responses=ERROR_RESPONSES)
async def delete_game_profile(game_id: str, current_user: CurrentUser, db: DbSession, cache: CacheDep):
    await UserService(db, cache).delete_game_profile(current_user.id, game_id)
    return MessageResponse(message="Game profile deleted")


# =============================================================================
# Administration
# =============================================================================


@router.post(
    "",
    response_model=UserEnvelope,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
)
async def create_user(request_body: AdminCreateUserRequest, admin: UserAdmin, db: DbSession, cache: CacheDep):
    user = await UserService(db, cache).create_user(request_body)
    return UserEnvelope(message="User created successfully", user=UserResponse.model_validate(user))


@router.get("/{user_id}", response_model=PublicProfileResponse, responses=ERROR_RESPONSES)
async def get_user(user_id: str, db: DbSession, cache: CacheDep):
    return await UserService(db, cache).get_public_profile(user_id)


@router.put("/{user_id}", response_model=UserEnvelope, responses=ERROR_RESPONSES)
async def update_user(
    user_id: str,
    request_body: AdminUpdateUserRequest,
    admin: UserAdmin,
    db: DbSession,
    cache: CacheDep,
):
    user = await UserService(db, cache).update_user(user_id, request_body)
    return UserEnvelope(message="User updated successfully", user=UserResponse.model_validate(user))


@router.delete("/{user_id}", response_model=MessageResponse, responses=ERROR_RESPONSES)
async def delete_user(user_id: str, admin: UserAdmin, db: DbSession, cache: CacheDep, hard: bool = False):
    """Deactivate a user; ``?hard=true`` removes the account and all of its records."""
    await UserService(db, cache).delete_user(user_id, hard=hard)
    return MessageResponse(message="User deleted successfully" if hard else "User deactivated successfully")


@router.post("/{user_id}/ban", response_model=MessageResponse, responses=ERROR_RESPONSES)
async def ban_user(
    user_id: str,
    moderator: UserModerator,
    db: DbSession,
    cache: CacheDep,
    request_body: BanUserRequest | None = None,
):
    reason = request_body.reason if request_body else None
    await UserService(db, cache).set_banned(user_id, True, reason)
    return MessageResponse(message="User banned successfully")


@router.post("/{user_id}/unban", response_model=MessageResponse, responses=ERROR_RESPONSES)
async def unban_user(user_id: str, moderator: UserModerator, db: DbSession, cache: CacheDep):
    await UserService(db, cache).set_banned(user_id, False)
    return MessageResponse(message="User unbanned successfully")
