"""Team API endpoints."""

from fastapi import APIRouter, status

from crackzone.api.deps import CurrentUser, DbSession, Pagination
from crackzone.schemas.common import ERROR_RESPONSES, MessageResponse, PaginationMeta
from crackzone.schemas.requests import TeamCreateRequest, TeamInviteRequest, TeamUpdateRequest
from crackzone.schemas.responses import TeamDetailResponse, TeamListResponse, TeamMemberResponse, TeamResponse
from crackzone.services.team import TeamService

router = APIRouter(prefix="/teams", tags=["Teams"])


@router.get("", response_model=TeamListResponse, responses=ERROR_RESPONSES)
async def list_teams(db: DbSession, pagination: Pagination, search: str | None = None):
    teams, total = await TeamService(db).list_teams(pagination, search)
    return TeamListResponse(
        teams=[TeamResponse.from_model(t) for t in teams],
        pagination=PaginationMeta.build(pagination, total),
    )


@router.post(
    "",
    response_model=TeamDetailResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
)
async def create_team(request_body: TeamCreateRequest, current_user: CurrentUser, db: DbSession):
    team = await TeamService(db).create_team(current_user.id, request_body)
    return TeamDetailResponse.from_model(team)


@router.get("/{team_id}", response_model=TeamDetailResponse, responses=ERROR_RESPONSES)
async def get_team(team_id: str, db: DbSession):
    team = await TeamService(db).get_team(team_id)
    return TeamDetailResponse.from_model(team)


@router.put("/{team_id}", response_model=TeamDetailResponse, responses=ERROR_RESPONSES)
async def update_team(team_id: str, request_body: TeamUpdateRequest, current_user: CurrentUser, db: DbSession):
    team = await TeamService(db).update_team(team_id, current_user.id, request_body)
    return TeamDetailResponse.from_model(team)


@router.delete("/{team_id}", response_model=MessageResponse, responses=ERROR_RESPONSES)
async def delete_team(team_id: str, current_user: CurrentUser, db: DbSession):
    await TeamService(db).delete_team(team_id, current_user.id)
    return MessageResponse(message="Team deleted successfully")


@router.post("/{team_id}/join", response_model=MessageResponse, responses=ERROR_RESPONSES)
async def join_team(team_id: str, current_user: CurrentUser, db: DbSession):
    await TeamService(db).join_team(team_id, current_user.id)
    return MessageResponse(message="Joined team successfully")


@router.post("/{team_id}/leave", response_model=MessageResponse, responses=ERROR_RESPONSES)
async def leave_team(team_id: str, current_user: CurrentUser, db: DbSession):
    await TeamService(db).leave_team(team_id, current_user.id)
    return MessageResponse(message="Left team successfully")


@router.get("/{team_id}/members", response_model=list[TeamMemberResponse], responses=ERROR_RESPONSES)
async def list_members(team_id: str, db: DbSession):
    return await TeamService(db).list_members(team_id)


@router.post("/{team_id}/invite", response_model=MessageResponse, responses=ERROR_RESPONSES)
async def invite_member(team_id: str, request_body: TeamInviteRequest, current_user: CurrentUser, db: DbSession):
    await TeamService(db).invite(team_id, current_user.id, request_body.username)
    return MessageResponse(message="Invitation sent successfully")


@router.post("/{team_id}/kick/{user_id}", response_model=MessageResponse, responses=ERROR_RESPONSES)
async def kick_member(team_id: str, user_id: str, current_user: CurrentUser, db: DbSession):
    await TeamService(db).kick(team_id, current_user.id, user_id)
    return MessageResponse(message="Member removed successfully")


@router.post("/{team_id}/promote/{user_id}", response_model=MessageResponse, responses=ERROR_RESPONSES)
async def promote_member(team_id: str, user_id: str, current_user: CurrentUser, db: DbSession):
    """Make another member the leader; the caller becomes a regular member."""
    await TeamService(db).promote(team_id, current_user.id, user_id)
    return MessageResponse(message="Leadership transferred successfully")

