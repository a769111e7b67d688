"""Tournament API endpoints."""

from fastapi import APIRouter, status

from crackzone.api.deps import CurrentUser, DbSession, Pagination, TournamentManager
from crackzone.models.tournament import TournamentStatus
from crackzone.schemas.common import ERROR_RESPONSES, MessageResponse, PaginationMeta
from crackzone.schemas.requests import TournamentCreateRequest, TournamentUpdateRequest
from crackzone.schemas.responses import (
    MatchResponse,
    TournamentDetailResponse,
    TournamentListResponse,
    TournamentParticipantResponse,
    TournamentResponse,
)
from crackzone.services.tournament import TournamentService

router = APIRouter(prefix="/tournaments", tags=["Tournaments"])


@router.get("", response_model=TournamentListResponse, responses=ERROR_RESPONSES)
async def list_tournaments(
    db: DbSession,
    pagination: Pagination,
    status: TournamentStatus | None = None,
    game: str | None = None,
):
    tournaments, total = await TournamentService(db).list_tournaments(pagination, status, game)
    return TournamentListResponse(
        tournaments=[TournamentResponse.from_model(t) for t in tournaments],
        pagination=PaginationMeta.build(pagination, total),
    )


@router.post(
    "",
    response_model=TournamentResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
)
async def create_tournament(request_body: TournamentCreateRequest, current_user: CurrentUser, db: DbSession):
    tournament = await TournamentService(db).create_tournament(request_body)
    return TournamentResponse.from_model(tournament)


@router.get("/{tournament_id}", response_model=TournamentDetailResponse, responses=ERROR_RESPONSES)
async def get_tournament(tournament_id: str, db: DbSession):
    tournament = await TournamentService(db).get_tournament(tournament_id, detail=True)
    return TournamentDetailResponse.from_model(tournament)


@router.put("/{tournament_id}", response_model=TournamentResponse, responses=ERROR_RESPONSES)
async def update_tournament(
    tournament_id: str,
    request_body: TournamentUpdateRequest,
    manager: TournamentManager,
    db: DbSession,
):
    """Edit a tournament. A ``status`` change must follow the lifecycle order."""
    tournament = await TournamentService(db).update_tournament(tournament_id, request_body)
    return TournamentResponse.from_model(tournament)


@router.delete("/{tournament_id}", response_model=MessageResponse, responses=ERROR_RESPONSES)
async def delete_tournament(tournament_id: str, manager: TournamentManager, db: DbSession):
    await TournamentService(db).delete_tournament(tournament_id)
    return MessageResponse(message="Tournament deleted successfully")


@router.post("/{tournament_id}/join", response_model=TournamentParticipantResponse, responses=ERROR_RESPONSES)
async def join_tournament(tournament_id: str, current_user: CurrentUser, db: DbSession):
    participant = await TournamentService(db).join(tournament_id, current_user.id)
    return TournamentParticipantResponse(
        id=participant.id,
        user_id=participant.user_id,
        registered_at=participant.registered_at,
    )


@router.post("/{tournament_id}/leave", response_model=MessageResponse, responses=ERROR_RESPONSES)
async def leave_tournament(tournament_id: str, current_user: CurrentUser, db: DbSession):
    await TournamentService(db).leave(tournament_id, current_user.id)
    return MessageResponse(message="Left tournament successfully")


@router.get(
    "/{tournament_id}/participants",
    response_model=list[TournamentParticipantResponse],
    responses=ERROR_RESPONSES,
)
async def list_participants(tournament_id: str, db: DbSession):
    return await TournamentService(db).list_participants(tournament_id)


@router.get("/{tournament_id}/matches", response_model=list[MatchResponse], responses=ERROR_RESPONSES)
async def list_matches(tournament_id: str, db: DbSession):
    matches = await TournamentService(db).list_matches(tournament_id)
    return [MatchResponse.from_model(m) for m in matches]


@router.post("/{tournament_id}/start", response_model=TournamentResponse, responses=ERROR_RESPONSES)
async def start_tournament(tournament_id: str, manager: TournamentManager, db: DbSession):
    tournament = await TournamentService(db).start_tournament(tournament_id)
    return TournamentResponse.from_model(tournament)


@router.post("/{tournament_id}/complete", response_model=TournamentResponse, responses=ERROR_RESPONSES)
async def complete_tournament(tournament_id: str, manager: TournamentManager, db: DbSession):
    tournament = await TournamentService(db).complete_tournament(tournament_id)
    return TournamentResponse.from_model(tournament)


@router.post("/{tournament_id}/cancel", response_model=TournamentResponse, responses=ERROR_RESPONSES)
async def cancel_tournament(tournament_id: str, manager: TournamentManager, db: DbSession):
    tournament = await TournamentService(db).cancel_tournament(tournament_id)
    return TournamentResponse.from_model(tournament)

