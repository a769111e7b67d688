"""Reward catalogue and claims."""

import logging
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from crackzone.models.match import MatchParticipant
from crackzone.models.notification import NotificationType
from crackzone.models.reward import Reward, RewardType, UserReward
from crackzone.models.tournament import TournamentParticipant
from crackzone.models.transaction import Transaction, TransactionStatus, TransactionType
from crackzone.models.user import User
from crackzone.schemas.common import PaginationParams
from crackzone.schemas.payloads import NotificationMetadata, RewardMetadata, RewardRequirements
from crackzone.schemas.requests import RewardCreateRequest, RewardUpdateRequest
from crackzone.services.events import get_outbox
from crackzone.utils.db import atomic, credit, get_or_404, paginate
from crackzone.utils.errors import BusinessRuleError, ConflictError, ErrorCode, NotFoundError
from crackzone.ws.events import EventType, user_room

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlayerStats:
    level: int
    experience: int
    tournaments: int
    matches: int


def unmet_requirement(requirements: RewardRequirements, stats: PlayerStats) -> str | None:
    """Return the message for the first unmet requirement, or None."""
    if requirements.min_level is not None and stats.level < requirements.min_level:
        return "Level requirement not met"
    if requirements.min_experience is not None and stats.experience < requirements.min_experience:
        return "Experience requirement not met"
    if requirements.min_tournaments is not None and stats.tournaments < requirements.min_tournaments:
        return "Tournament participation requirement not met"
    if requirements.min_matches is not None and stats.matches < requirements.min_matches:
        return "Match participation requirement not met"
    return None


@dataclass(frozen=True)
class ClaimOutcome:
    user_reward: UserReward
    coins: int
    experience: int


class RewardService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.outbox = get_outbox(db)

    async def list_rewards(
        self,
        params: PaginationParams,
        type: RewardType | None = None,
    ) -> tuple[list[Reward], int]:
        stmt = select(Reward).where(Reward.is_active.is_(True))
        if type:
            stmt = stmt.where(Reward.type == type)
        stmt = stmt.order_by(Reward.created_at.desc())
        return await paginate(self.db, stmt, params)

    async def get_reward(self, reward_id: str) -> Reward:
        reward = await self.db.get(Reward, reward_id)
        if reward is None or not reward.is_active:
            raise NotFoundError("Reward not found")
        return reward

    async def player_stats(self, user_id: str) -> PlayerStats:
        row = (await self.db.execute(select(User.level, User.experience).where(User.id == user_id))).one_or_none()
        if row is None:
            raise NotFoundError("User not found")
        tournaments = await self.db.scalar(
            select(func.count()).select_from(TournamentParticipant).where(TournamentParticipant.user_id == user_id)
        )
        matches = await self.db.scalar(
            select(func.count()).select_from(MatchParticipant).where(MatchParticipant.user_id == user_id)
        )
        return PlayerStats(level=row.level, experience=row.experience, tournaments=tournaments or 0, matches=matches or 0)

    async def _claimed_ids(self, user_id: str) -> set[str]:
        result = await self.db.scalars(select(UserReward.reward_id).where(UserReward.user_id == user_id))
        return set(result.all())

    async def list_available(self, user_id: str) -> list[Reward]:
        """Active rewards the user has not claimed and currently qualifies for."""
        stats = await self.player_stats(user_id)
        claimed = await self._claimed_ids(user_id)
        rewards = await self.db.scalars(
            select(Reward).where(Reward.is_active.is_(True)).order_by(Reward.created_at.desc())
        )
        return [
            reward
            for reward in rewards.all()
            if reward.id not in claimed
            and unmet_requirement(RewardRequirements.from_column(reward.requirements), stats) is None
        ]

    async def list_claimed(self, user_id: str) -> list[UserReward]:
        result = await self.db.scalars(
            select(UserReward)
            .options(selectinload(UserReward.reward))
            .where(UserReward.user_id == user_id)
            .order_by(UserReward.claimed_at.desc())
        )
        return list(result.all())

    async def counts(self, user_id: str) -> dict[str, int]:
        total = await self.db.scalar(
            select(func.count()).select_from(Reward).where(Reward.is_active.is_(True))
        ) or 0
        claimed = len(await self._claimed_ids(user_id))
        available = len(await self.list_available(user_id))
        return {"total": total, "claimed": claimed, "available": available}

    async def claim(self, reward_id: str, user_id: str) -> ClaimOutcome:
        """Claim a reward once and apply its value.

        Raises:
            NotFoundError: Reward missing or inactive
            ConflictError: Already claimed
            BusinessRuleError: A requirement is not met
        """
        reward = await self.db.get(Reward, reward_id)
        if reward is None or not reward.is_active:
            raise NotFoundError("Reward not found or inactive")

        existing = await self.db.scalar(
            select(UserReward.id).where(UserReward.user_id == user_id, UserReward.reward_id == reward_id)
        )
        if existing is not None:
            raise ConflictError("Reward already claimed")

        stats = await self.player_stats(user_id)
        problem = unmet_requirement(RewardRequirements.from_column(reward.requirements), stats)
        if problem:
            raise BusinessRuleError(problem, code=ErrorCode.REQUIREMENT_NOT_MET)

        async with atomic(self.db):
            user_reward = UserReward(user_id=user_id, reward_id=reward.id, claimed=True)
            self.db.add(user_reward)

            if reward.type == RewardType.COINS and reward.value:
                await credit(self.db, user_id, coins=reward.value)
                self.db.add(
                    Transaction(
                        user_id=user_id,
                        type=TransactionType.REWARD,
                        amount=reward.value,
                        description=f"Reward: {reward.title}",
                        status=TransactionStatus.COMPLETED,
                        meta=RewardMetadata(reward_id=reward.id).to_column(),
                    )
                )
            elif reward.type == RewardType.EXPERIENCE and reward.value:
                await credit(self.db, user_id, experience=reward.value)

        user_reward.reward = reward
        balance = (await self.db.execute(select(User.coins, User.experience).where(User.id == user_id))).one()

        await self.outbox.notify(
            user_id,
            "Reward Claimed",
            f"You claimed {reward.title}!",
            NotificationType.REWARD,
            NotificationMetadata(reward_id=reward.id),
        )
        self.outbox.publish(
            user_room(user_id),
            EventType.REWARD_CLAIMED,
            {"rewardId": reward.id, "title": reward.title, "type": reward.type.value, "value": reward.value},
        )
        logger.info(f"Reward {reward.id} claimed by {user_id}")
        return ClaimOutcome(user_reward=user_reward, coins=balance.coins, experience=balance.experience)

    # =========================================================================
    # Admin
    # =========================================================================

    async def create_reward(self, data: RewardCreateRequest) -> Reward:
        reward = Reward(
            title=data.title,
            description=data.description,
            type=data.type,
            value=data.value,
            requirements=data.requirements.to_column() if data.requirements else None,
            is_active=data.is_active,
        )
        self.db.add(reward)
        await self.db.flush()
        return reward

    async def update_reward(self, reward_id: str, data: RewardUpdateRequest) -> Reward:
        reward = await get_or_404(self.db, Reward, reward_id, "Reward not found")
        changes = data.model_dump(by_alias=False, exclude_unset=True, exclude={"requirements"})
        for field, value in changes.items():
            setattr(reward, field, value)
        if "requirements" in data.model_fields_set:
            reward.requirements = data.requirements.to_column() if data.requirements else None
        await self.db.flush()
        return reward

    async def delete_reward(self, reward_id: str) -> None:
        reward = await get_or_404(self.db, Reward, reward_id, "Reward not found")
        reward.is_active = False
        await self.db.flush()
