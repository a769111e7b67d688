"""Match API endpoints."""

from fastapi import APIRouter, status

from crackzone.api.deps import CurrentUser, DbSession, MatchManager, Pagination
from crackzone.models.match import MatchStatus
from crackzone.schemas.common import ERROR_RESPONSES, MessageResponse, PaginationMeta
from crackzone.schemas.requests import MatchCreateRequest, MatchResultRequest, MatchUpdateRequest
from crackzone.schemas.responses import MatchListResponse, MatchParticipantResponse, MatchResponse
from crackzone.services.match import MatchService

router = APIRouter(prefix="/matches", tags=["Matches"])


@router.get("", response_model=MatchListResponse, responses=ERROR_RESPONSES)
async def list_matches(
    db: DbSession,
    pagination: Pagination,
    status: MatchStatus | None = None,
    game: str | None = None,
):
    matches, total = await MatchService(db).list_matches(pagination, status, game)
    return MatchListResponse(
        matches=[MatchResponse.from_model(m) for m in matches],
        pagination=PaginationMeta.build(pagination, total),
    )


@router.post(
    "",
    response_model=MatchResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
)
async def create_match(request_body: MatchCreateRequest, manager: MatchManager, db: DbSession):
    match = await MatchService(db).create_match(request_body)
    return MatchResponse.from_model(match)


@router.get("/{match_id}", response_model=MatchResponse, responses=ERROR_RESPONSES)
async def get_match(match_id: str, db: DbSession):
    match = await MatchService(db).get_match(match_id)
    return MatchResponse.from_model(match)


@router.put("/{match_id}", response_model=MatchResponse, responses=ERROR_RESPONSES)
async def update_match(match_id: str, request_body: MatchUpdateRequest, manager: MatchManager, db: DbSession):
    match = await MatchService(db).update_match(match_id, request_body)
    return MatchResponse.from_model(match)


@router.delete("/{match_id}", response_model=MessageResponse, responses=ERROR_RESPONSES)
async def delete_match(match_id: str, manager: MatchManager, db: DbSession):
    await MatchService(db).delete_match(match_id)
    return MessageResponse(message="Match deleted successfully")


@router.get(
    "/{match_id}/participants",
    response_model=list[MatchParticipantResponse],
    responses=ERROR_RESPONSES,
)
async def list_participants(match_id: str, db: DbSession):
    return await MatchService(db).list_participants(match_id)


@router.post("/{match_id}/start", response_model=MatchResponse, responses=ERROR_RESPONSES)
async def start_match(match_id: str, manager: MatchManager, db: DbSession):
    match = await MatchService(db).start_match(match_id)
    return MatchResponse.from_model(match)


@router.post("/{match_id}/cancel", response_model=MatchResponse, responses=ERROR_RESPONSES)
async def cancel_match(match_id: str, manager: MatchManager, db: DbSession):
    match = await MatchService(db).cancel_match(match_id)
    return MatchResponse.from_model(match)


@router.post("/{match_id}/result", response_model=MatchResponse, responses=ERROR_RESPONSES)
async def submit_result(match_id: str, request_body: MatchResultRequest, current_user: CurrentUser, db: DbSession):
    """Record final standings.

    Participants may submit for their own match; moderators and admins for
    any match. Each placed participant gains experience by position.
    """
    match = await MatchService(db).submit_result(match_id, current_user, request_body)
    return MatchResponse.from_model(match)

