"""Reward API endpoints."""

from fastapi import APIRouter, status

from crackzone.api.deps import CurrentUser, DbSession, Pagination, RewardManager
from crackzone.models.reward import RewardType
from crackzone.schemas.common import ERROR_RESPONSES, MessageResponse, PaginationMeta
from crackzone.schemas.requests import RewardCreateRequest, RewardUpdateRequest
from crackzone.schemas.responses import (
    ClaimRewardResponse,
    RewardCountResponse,
    RewardListResponse,
    RewardResponse,
    UserRewardResponse,
)
from crackzone.services.reward import RewardService

router = APIRouter(prefix="/rewards", tags=["Rewards"])


@router.get("", response_model=RewardListResponse, responses=ERROR_RESPONSES)
async def list_rewards(db: DbSession, pagination: Pagination, type: RewardType | None = None):
    rewards, total = await RewardService(db).list_rewards(pagination, type)
    return RewardListResponse(
        rewards=[RewardResponse.model_validate(r) for r in rewards],
        pagination=PaginationMeta.build(pagination, total),
    )


@router.get("/available", response_model=list[RewardResponse], responses=ERROR_RESPONSES)
async def list_available(current_user: CurrentUser, db: DbSession):
    """Active rewards the caller has not claimed yet and qualifies for."""
    return await RewardService(db).list_available(current_user.id)


@router.get("/claimed", response_model=list[UserRewardResponse], responses=ERROR_RESPONSES)
async def list_claimed(current_user: CurrentUser, db: DbSession):
    return await RewardService(db).list_claimed(current_user.id)


@router.get("/count", response_model=RewardCountResponse, responses=ERROR_RESPONSES)
async def reward_counts(current_user: CurrentUser, db: DbSession):
    return RewardCountResponse(**await RewardService(db).counts(current_user.id))


@router.post(
    "",
    response_model=RewardResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
)
async def create_reward(request_body: RewardCreateRequest, manager: RewardManager, db: DbSession):
    return await RewardService(db).create_reward(request_body)


@router.get("/{reward_id}", response_model=RewardResponse, responses=ERROR_RESPONSES)
async def get_reward(reward_id: str, db: DbSession):
    return await RewardService(db).get_reward(reward_id)


@router.put("/{reward_id}", response_model=RewardResponse, responses=ERROR_RESPONSES)
async def update_reward(reward_id: str, request_body: RewardUpdateRequest, manager: RewardManager, db: DbSession):
    return await RewardService(db).update_reward(reward_id, request_body)


@router.delete("/{reward_id}", response_model=MessageResponse, responses=ERROR_RESPONSES)
async def delete_reward(reward_id: str, manager: RewardManager, db: DbSession):
    """Deactivate a reward. Existing claims are kept."""
    await RewardService(db).delete_reward(reward_id)
    return MessageResponse(message="Reward deleted successfully")


@router.post("/{reward_id}/claim", response_model=ClaimRewardResponse, responses=ERROR_RESPONSES)
async def claim_reward(reward_id: str, current_user: CurrentUser, db: DbSession):
    outcome = await RewardService(db).claim(reward_id, current_user.id)
    return ClaimRewardResponse(
        message="Reward claimed successfully",
        user_reward=UserRewardResponse.model_validate(outcome.user_reward),
        coins=outcome.coins,
        experience=outcome.experience,
    )
