"""Match service."""

import logging

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from crackzone.models.base import utcnow
from crackzone.models.match import Match, MatchParticipant, MatchStatus
from crackzone.models.notification import NotificationType
from crackzone.models.tournament import Tournament
from crackzone.models.user import User
from crackzone.permissions import Capability, Principal
from crackzone.schemas.common import PaginationParams
from crackzone.schemas.payloads import MatchResult, MatchScreenshot, NotificationMetadata
from crackzone.schemas.requests import MatchCreateRequest, MatchResultRequest, MatchUpdateRequest
from crackzone.services.events import get_outbox
from crackzone.services.image import MATCH_SCREENSHOT, ImageStorage
from crackzone.utils.db import atomic, credit, paginate
from crackzone.utils.errors import BusinessRuleError, NotFoundError, PermissionDeniedError
from crackzone.utils.sql import icontains
from crackzone.ws.events import EventType, room_name

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = frozenset({MatchStatus.COMPLETED, MatchStatus.CANCELLED})

_WITH_PARTICIPANTS = selectinload(Match.participants).selectinload(MatchParticipant.user)


def experience_for_position(position: int) -> int:
    """Experience granted for a finishing position (1st: 100, then -20 per place, floor 10)."""
    return max(100 - (position - 1) * 20, 10)


class MatchService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.outbox = get_outbox(db)

    async def list_matches(
        self,
        params: PaginationParams,
        status: MatchStatus | None = None,
        game: str | None = None,
    ) -> tuple[list[Match], int]:
        stmt = select(Match)
        if status:
            stmt = stmt.where(Match.status == status)
        if game:
            stmt = stmt.where(icontains(Match.game, game))
        stmt = stmt.order_by(Match.scheduled_at.desc(), Match.created_at.desc())
        return await paginate(self.db, stmt, params, options=(_WITH_PARTICIPANTS,))

    async def get_match(self, match_id: str) -> Match:
        result = await self.db.execute(
            select(Match)
            .options(_WITH_PARTICIPANTS)
            .where(Match.id == match_id)
            .execution_options(populate_existing=True)
        )
        match = result.scalar_one_or_none()
        if match is None:
            raise NotFoundError("Match not found")
        return match

    async def list_participants(self, match_id: str) -> list[MatchParticipant]:
        match = await self.get_match(match_id)
        return list(match.participants)

    async def create_match(self, data: MatchCreateRequest) -> Match:
        """Create a match; participants are seeded in the given order."""
        if data.tournament_id and await self.db.get(Tournament, data.tournament_id) is None:
            raise NotFoundError("Tournament not found")

        found = set(
            (await self.db.scalars(select(User.id).where(User.id.in_(data.participant_ids)))).all()
        )
        missing = [uid for uid in data.participant_ids if uid not in found]
        if missing:
            raise NotFoundError("User not found", details={"userIds": missing})

        match = Match(
            title=data.title,
            description=data.description,
            game=data.game,
            tournament_id=data.tournament_id,
            round=data.round,
            scheduled_at=data.scheduled_at,
            status=MatchStatus.SCHEDULED,
        )
        self.db.add(match)
        await self.db.flush()
        for index, user_id in enumerate(data.participant_ids, start=1):
            self.db.add(MatchParticipant(match_id=match.id, user_id=user_id, position=index))
        await self.db.flush()

        logger.info(f"Match created: {match.id} with {len(data.participant_ids)} participants")
        return await self.get_match(match.id)

    async def update_match(self, match_id: str, data: MatchUpdateRequest) -> Match:
        match = await self.get_match(match_id)
        for field, value in data.model_dump(by_alias=False, exclude_unset=True).items():
            setattr(match, field, value)
        await self.db.flush()
        self._publish(match, EventType.MATCH_UPDATED)
        return match

    async def delete_match(self, match_id: str) -> None:
        match = await self.get_match(match_id)
        async with atomic(self.db):
            await self.db.execute(delete(MatchParticipant).where(MatchParticipant.match_id == match.id))
            await self.db.execute(delete(Match).where(Match.id == match.id))

    async def start_match(self, match_id: str) -> Match:
        match = await self.get_match(match_id)
        if match.status != MatchStatus.SCHEDULED:
            raise BusinessRuleError(f"Cannot start a match that is {match.status.value}")

        match.status = MatchStatus.IN_PROGRESS
        match.started_at = utcnow()
        await self.db.flush()
        self._publish(match, EventType.MATCH_STARTED)
        return match

    async def cancel_match(self, match_id: str) -> Match:
        match = await self.get_match(match_id)
        if match.status in TERMINAL_STATUSES:
            raise BusinessRuleError(f"Cannot cancel a match that is {match.status.value}")

        match.status = MatchStatus.CANCELLED
        match.ended_at = utcnow()
        await self.db.flush()

        metadata = NotificationMetadata(match_id=match.id)
        for participant in match.participants:
            await self.outbox.notify(
                participant.user_id,
                "Match Cancelled",
                f"{match.title} has been cancelled.",
                NotificationType.MATCH,
                metadata,
            )
        self._publish(match, EventType.MATCH_CANCELLED)
        return match

    async def submit_result(self, match_id: str, principal: Principal, data: MatchResultRequest) -> Match:
        """Record final scores, complete the match and grant experience.

        Raises:
            PermissionDeniedError: Caller is neither a participant nor allowed to submit for others
            BusinessRuleError: The match already finished
            NotFoundError: A result references a user who is not a participant
        """
        match = await self.get_match(match_id)
        by_user = {p.user_id: p for p in match.participants}

        if principal.id not in by_user and not principal.can(Capability.SUBMIT_ANY_RESULT):
            raise PermissionDeniedError("Only participants or admins can submit results")

        if match.status in TERMINAL_STATUSES:
            raise BusinessRuleError(f"Cannot submit results for a match that is {match.status.value}")

        outsiders = [entry.user_id for entry in data.results if entry.user_id not in by_user]
        if outsiders:
            raise NotFoundError(
                "User is not a participant in this match",
                details={"userIds": outsiders},
            )

        now = utcnow()
        async with atomic(self.db):
            match.status = MatchStatus.COMPLETED
            match.ended_at = now
            match.result = MatchResult(
                results=data.results,
                submitted_by=principal.id,
                submitted_at=now,
                notes=data.notes,
            ).to_column()

            for entry in data.results:
                participant = by_user[entry.user_id]
                participant.score = entry.score
                participant.position = entry.position
                await credit(self.db, entry.user_id, experience=experience_for_position(entry.position))

        metadata = NotificationMetadata(match_id=match.id)
        for entry in data.results:
            await self.outbox.notify(
                entry.user_id,
                "Match Completed",
                f"{match.title} finished. You placed #{entry.position} "
                f"and earned {experience_for_position(entry.position)} XP.",
                NotificationType.MATCH,
                metadata,
            )
        self._publish(match, EventType.MATCH_COMPLETED, {"results": match.result["results"]})
        logger.info(f"Match {match.id} completed by {principal.id}")
        return await self.get_match(match.id)

    async def add_screenshots(
        self,
        match_id: str,
        principal: Principal,
        files: list[tuple[bytes, str | None]],
        storage: ImageStorage,
        limit: int,
    ) -> list[MatchScreenshot]:
        match = await self.get_match(match_id)
        is_participant = any(p.user_id == principal.id for p in match.participants)
        if not is_participant and not principal.can(Capability.SUBMIT_ANY_RESULT):
            raise PermissionDeniedError("Only participants or admins can upload screenshots")

        existing = list(match.screenshots or [])
        if not files:
            raise BusinessRuleError("No files uploaded")
        if len(existing) + len(files) > limit:
            raise BusinessRuleError(f"A match can have at most {limit} screenshots")

        added: list[MatchScreenshot] = []
        for data, content_type in files:
            image = await storage.upload(data, content_type, MATCH_SCREENSHOT)
            added.append(
                MatchScreenshot(
                    public_id=image.public_id,
                    url=image.url,
                    uploaded_by=principal.id,
                    uploaded_at=utcnow(),
                )
            )

        # reassign so the JSON column is marked dirty
        match.screenshots = existing + [shot.to_column() for shot in added]
        await self.db.flush()
        self._publish(match, EventType.MATCH_UPDATED)
        return added

    def _publish(self, match: Match, event: EventType, extra: dict | None = None) -> None:
        payload = {"matchId": match.id, "title": match.title, "status": match.status.value}
        if extra:
            payload.update(extra)
        self.outbox.publish(room_name("match", match.id), event, payload)
        if match.tournament_id:
            self.outbox.publish(room_name("tournament", match.tournament_id), event, payload)
