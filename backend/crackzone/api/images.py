"""Image upload and delivery endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, File, Query, UploadFile

from crackzone.api.deps import CurrentUser, DbSession, MediaManager, SettingsDep, TournamentManager
from crackzone.schemas.common import ERROR_RESPONSES, MessageResponse
from crackzone.schemas.payloads import MatchScreenshot
from crackzone.schemas.responses import ImageUrlResponse, TeamDetailResponse, TournamentResponse
from crackzone.services.image import ImageStorage, get_image_storage
from crackzone.services.match import MatchService
from crackzone.services.team import TeamService
from crackzone.services.tournament import TournamentService
from crackzone.utils.errors import NotFoundError

router = APIRouter(prefix="/images", tags=["Images"])

StorageDep = Annotated[ImageStorage, Depends(get_image_storage)]


@router.get("/transform/{public_id:path}", response_model=ImageUrlResponse, responses=ERROR_RESPONSES)
async def transform_image(
    public_id: str,
    storage: StorageDep,
    width: Annotated[int | None, Query(ge=1, le=4000)] = None,
    height: Annotated[int | None, Query(ge=1, le=4000)] = None,
):
    """Delivery URL for an uploaded image, resized when both dimensions are given."""
    return ImageUrlResponse(url=storage.url_for(public_id, width, height))


@router.post("/team/{team_id}/logo", response_model=TeamDetailResponse, responses=ERROR_RESPONSES)
async def upload_team_logo(
    team_id: str,
    current_user: CurrentUser,
    db: DbSession,
    storage: StorageDep,
    logo: Annotated[UploadFile, File()],
):
    data = await logo.read()
    team = await TeamService(db).set_logo(team_id, current_user.id, data, logo.content_type, storage)
    return TeamDetailResponse.from_model(team)


@router.post("/tournament/{tournament_id}/banner", response_model=TournamentResponse, responses=ERROR_RESPONSES)
async def upload_tournament_banner(
    tournament_id: str,
    manager: TournamentManager,
    db: DbSession,
    storage: StorageDep,
    banner: Annotated[UploadFile, File()],
):
    data = await banner.read()
    tournament = await TournamentService(db).set_banner(tournament_id, data, banner.content_type, storage)
    return TournamentResponse.from_model(tournament)


@router.post("/match/{match_id}/screenshots", response_model=list[MatchScreenshot], responses=ERROR_RESPONSES)
async def upload_match_screenshots(
    match_id: str,
    current_user: CurrentUser,
    db: DbSession,
    settings: SettingsDep,
    storage: StorageDep,
    screenshots: Annotated[list[UploadFile], File()],
):
    files = [(await shot.read(), shot.content_type) for shot in screenshots]
    return await MatchService(db).add_screenshots(
        match_id,
        current_user,
        files,
        storage,
        settings.max_match_screenshots,
    )


@router.delete("/{public_id:path}", response_model=MessageResponse, responses=ERROR_RESPONSES)
async def delete_image(public_id: str, manager: MediaManager, storage: StorageDep):
    if not await storage.delete(public_id):
        raise NotFoundError("Image not found")
    return MessageResponse(message="Image deleted successfully")
