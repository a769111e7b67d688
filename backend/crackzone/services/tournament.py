"""Tournament service."""

import logging

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from crackzone.models.match import Match, MatchParticipant
from crackzone.models.notification import NotificationType
from crackzone.models.tournament import Tournament, TournamentParticipant, TournamentStatus
from crackzone.schemas.common import PaginationParams
from crackzone.schemas.payloads import NotificationMetadata
from crackzone.schemas.requests import TournamentCreateRequest, TournamentUpdateRequest
from crackzone.services.events import get_outbox
from crackzone.services.image import TOURNAMENT_BANNER, ImageStorage
from crackzone.utils.db import atomic, get_or_404, paginate, unique_insert
from crackzone.utils.errors import BusinessRuleError, ConflictError, ErrorCode, NotFoundError
from crackzone.utils.sql import icontains
from crackzone.ws.events import EventType, room_name

logger = logging.getLogger(__name__)

JOINABLE_STATUSES = frozenset({TournamentStatus.UPCOMING, TournamentStatus.REGISTRATION_OPEN})

# Forward order of the lifecycle; CANCELLED is reachable from any
# non-terminal status.
_LIFECYCLE = (
    TournamentStatus.UPCOMING,
    TournamentStatus.REGISTRATION_OPEN,
    TournamentStatus.REGISTRATION_CLOSED,
    TournamentStatus.IN_PROGRESS,
    TournamentStatus.COMPLETED,
)
TERMINAL_STATUSES = frozenset({TournamentStatus.COMPLETED, TournamentStatus.CANCELLED})


def can_transition(current: TournamentStatus, target: TournamentStatus) -> bool:
    if current in TERMINAL_STATUSES:
        return False
    if target == TournamentStatus.CANCELLED:
        return True
    return _LIFECYCLE.index(target) > _LIFECYCLE.index(current)


_WITH_PARTICIPANT_USERS = selectinload(Tournament.participants).selectinload(TournamentParticipant.user)


def _event_payload(tournament: Tournament) -> dict:
    return {
        "tournamentId": tournament.id,
        "title": tournament.title,
        "status": tournament.status.value,
    }


class TournamentService:
    """Tournament lifecycle and registration."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.outbox = get_outbox(db)

    async def list_tournaments(
        self,
        params: PaginationParams,
        status: TournamentStatus | None = None,
        game: str | None = None,
    ) -> tuple[list[Tournament], int]:
        stmt = select(Tournament)
        if status:
            stmt = stmt.where(Tournament.status == status)
        if game:
            stmt = stmt.where(icontains(Tournament.game, game))
        stmt = stmt.order_by(Tournament.start_date.asc())
        return await paginate(self.db, stmt, params, options=(selectinload(Tournament.participants),))

    async def get_tournament(self, tournament_id: str, detail: bool = False) -> Tournament:
        options = [_WITH_PARTICIPANT_USERS if detail else selectinload(Tournament.participants)]
        if detail:
            options.append(selectinload(Tournament.matches))
        result = await self.db.execute(
            select(Tournament)
            .options(*options)
            .where(Tournament.id == tournament_id)
            .execution_options(populate_existing=True)
        )
        tournament = result.scalar_one_or_none()
        if tournament is None:
            raise NotFoundError("Tournament not found")
        return tournament

    async def create_tournament(self, data: TournamentCreateRequest) -> Tournament:
        tournament = Tournament(**data.model_dump(by_alias=False), status=TournamentStatus.UPCOMING)
        self.db.add(tournament)
        await self.db.flush()
        logger.info(f"Tournament created: {tournament.id} ({tournament.title})")
        return await self.get_tournament(tournament.id)

    async def update_tournament(self, tournament_id: str, data: TournamentUpdateRequest) -> Tournament:
        tournament = await self.get_tournament(tournament_id)
        changes = data.model_dump(by_alias=False, exclude_unset=True)

        target = changes.pop("status", None)
        if target is not None and target != tournament.status:
            self._check_transition(tournament, target)
            tournament.status = target

        for field, value in changes.items():
            setattr(tournament, field, value)

        if tournament.end_date and tournament.end_date < tournament.start_date:
            raise BusinessRuleError("endDate must be after startDate")

        await self.db.flush()
        self.outbox.publish(
            room_name("tournament", tournament.id),
            EventType.TOURNAMENT_UPDATED,
            _event_payload(tournament),
        )
        return tournament

    def _check_transition(self, tournament: Tournament, target: TournamentStatus) -> None:
        if not can_transition(tournament.status, target):
            raise BusinessRuleError(
                f"Cannot change tournament status from {tournament.status.value} to {target.value}",
                details={"from": tournament.status.value, "to": target.value},
            )

    async def delete_tournament(self, tournament_id: str) -> None:
        """Remove a tournament with its registrations and matches."""
        await get_or_404(self.db, Tournament, tournament_id, "Tournament not found")
        match_ids = select(Match.id).where(Match.tournament_id == tournament_id)
        async with atomic(self.db):
            await self.db.execute(
                delete(MatchParticipant)
                .where(MatchParticipant.match_id.in_(match_ids))
                .execution_options(synchronize_session=False)
            )
            await self.db.execute(delete(Match).where(Match.tournament_id == tournament_id))
            await self.db.execute(
                delete(TournamentParticipant).where(TournamentParticipant.tournament_id == tournament_id)
            )
            await self.db.execute(delete(Tournament).where(Tournament.id == tournament_id))

    async def _transition(
        self,
        tournament_id: str,
        target: TournamentStatus,
        event: EventType,
        notice: str,
    ) -> Tournament:
        tournament = await self.get_tournament(tournament_id)
        self._check_transition(tournament, target)
        tournament.status = target
        await self.db.flush()

        metadata = NotificationMetadata(tournament_id=tournament.id)
        for participant in tournament.participants:
            await self.outbox.notify(
                participant.user_id,
                tournament.title,
                notice,
                NotificationType.TOURNAMENT,
                metadata,
            )
        self.outbox.publish(room_name("tournament", tournament.id), event, _event_payload(tournament))
        logger.info(f"Tournament {tournament.id} -> {target.value}")
        return tournament

    async def start_tournament(self, tournament_id: str) -> Tournament:
        return await self._transition(
            tournament_id,
            TournamentStatus.IN_PROGRESS,
            EventType.TOURNAMENT_STARTED,
            "The tournament has started. Good luck!",
        )

    async def complete_tournament(self, tournament_id: str) -> Tournament:
        return await self._transition(
            tournament_id,
            TournamentStatus.COMPLETED,
            EventType.TOURNAMENT_COMPLETED,
            "The tournament has finished.",
        )

    async def cancel_tournament(self, tournament_id: str) -> Tournament:
        return await self._transition(
            tournament_id,
            TournamentStatus.CANCELLED,
            EventType.TOURNAMENT_CANCELLED,
            "The tournament has been cancelled.",
        )

    # =========================================================================
    # Registration
    # =========================================================================

    async def join(self, tournament_id: str, user_id: str) -> TournamentParticipant:
        """Register a user.

        The capacity check and the insert are not serialized against
        concurrent joins; see DESIGN.md.
        """
        tournament = await get_or_404(self.db, Tournament, tournament_id, "Tournament not found")

        if tournament.status not in JOINABLE_STATUSES:
            raise BusinessRuleError("Tournament registration is closed")

        count = await self.db.scalar(
            select(func.count())
            .select_from(TournamentParticipant)
            .where(TournamentParticipant.tournament_id == tournament_id)
        ) or 0
        if count >= tournament.max_participants:
            raise BusinessRuleError("Tournament is full", code=ErrorCode.CAPACITY_REACHED)

        existing = await self._get_participant(tournament_id, user_id)
        if existing is not None:
            raise ConflictError("Already joined this tournament")

        participant = TournamentParticipant(tournament_id=tournament_id, user_id=user_id)
        async with unique_insert(self.db, "Already joined this tournament"):
            self.db.add(participant)

        self.outbox.publish(
            room_name("tournament", tournament_id),
            EventType.PARTICIPANT_JOINED,
            {"tournamentId": tournament_id, "userId": user_id, "participantCount": count + 1},
        )
        return participant

    async def leave(self, tournament_id: str, user_id: str) -> None:
        participant = await self._get_participant(tournament_id, user_id)
        if participant is None:
            raise NotFoundError("Not a participant in this tournament")

        await self.db.delete(participant)
        await self.db.flush()
        self.outbox.publish(
            room_name("tournament", tournament_id),
            EventType.PARTICIPANT_LEFT,
            {"tournamentId": tournament_id, "userId": user_id},
        )

    async def _get_participant(self, tournament_id: str, user_id: str) -> TournamentParticipant | None:
        return await self.db.scalar(
            select(TournamentParticipant).where(
                TournamentParticipant.tournament_id == tournament_id,
                TournamentParticipant.user_id == user_id,
            )
        )

    async def list_participants(self, tournament_id: str) -> list[TournamentParticipant]:
        await get_or_404(self.db, Tournament, tournament_id, "Tournament not found")
        result = await self.db.scalars(
            select(TournamentParticipant)
            .options(selectinload(TournamentParticipant.user))
            .where(TournamentParticipant.tournament_id == tournament_id)
            .order_by(TournamentParticipant.registered_at.asc())
        )
        return list(result.all())

    async def list_matches(self, tournament_id: str) -> list[Match]:
        await get_or_404(self.db, Tournament, tournament_id, "Tournament not found")
        result = await self.db.scalars(
            select(Match)
            .options(selectinload(Match.participants).selectinload(MatchParticipant.user))
            .where(Match.tournament_id == tournament_id)
            .order_by(Match.round.asc(), Match.scheduled_at.asc())
        )
        return list(result.all())

    async def set_banner(
        self,
        tournament_id: str,
        data: bytes,
        content_type: str | None,
        storage: ImageStorage,
    ) -> Tournament:
        tournament = await self.get_tournament(tournament_id)
        image = await storage.upload(data, content_type, TOURNAMENT_BANNER)
        old_public_id = tournament.banner_public_id

        tournament.banner_url = image.url
        tournament.banner_public_id = image.public_id
        await self.db.flush()

        await storage.delete_quietly(old_public_id)
        self.outbox.publish(
            room_name("tournament", tournament.id),
            EventType.TOURNAMENT_UPDATED,
            {**_event_payload(tournament), "bannerUrl": tournament.banner_url},
        )
        return tournament
