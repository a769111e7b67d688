"""Banner API endpoints.

Create and update take multipart forms so the image travels with the fields.
"""

from typing import Annotated, Any, TypeVar

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from crackzone.api.deps import BannerManager, DbSession
from crackzone.schemas.common import ERROR_RESPONSES, BaseSchema, MessageResponse
from crackzone.schemas.requests import BannerCreateRequest, BannerUpdateRequest
from crackzone.schemas.responses import BannerResponse, BannerToggleResponse
from crackzone.services.banner import BannerService
from crackzone.services.image import ImageStorage, get_image_storage

router = APIRouter(prefix="/banners", tags=["Banners"])

StorageDep = Annotated[ImageStorage, Depends(get_image_storage)]
SchemaT = TypeVar("SchemaT", bound=BaseSchema)


def _parse_form(schema: type[SchemaT], fields: dict[str, Any]) -> SchemaT:
    # Absent form fields arrive as None and are left out
    try:
        return schema.model_validate({k: v for k, v in fields.items() if v is not None})
    except ValidationError as e:
        raise RequestValidationError(e.errors()) from e


@router.get("", response_model=list[BannerResponse], responses=ERROR_RESPONSES)
async def list_live_banners(db: DbSession):
    """Banners currently on display, highest priority first."""
    return await BannerService(db).list_live()


@router.get("/admin", response_model=list[BannerResponse], responses=ERROR_RESPONSES)
async def list_all_banners(manager: BannerManager, db: DbSession):
    return await BannerService(db).list_all()


@router.get("/{banner_id}", response_model=BannerResponse, responses=ERROR_RESPONSES)
async def get_banner(banner_id: str, manager: BannerManager, db: DbSession):
    return await BannerService(db).get_banner(banner_id)


@router.post(
    "",
    response_model=BannerResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
)
async def create_banner(
    manager: BannerManager,
    db: DbSession,
    storage: StorageDep,
    image: Annotated[UploadFile, File()],
    title: Annotated[str, Form()],
    subtitle: Annotated[str | None, Form()] = None,
    description: Annotated[str | None, Form()] = None,
    action_text: Annotated[str | None, Form(alias="actionText")] = None,
    action_url: Annotated[str | None, Form(alias="actionUrl")] = None,
    priority: Annotated[str | None, Form()] = None,
    start_date: Annotated[str | None, Form(alias="startDate")] = None,
    end_date: Annotated[str | None, Form(alias="endDate")] = None,
):
    data = _parse_form(
        BannerCreateRequest,
        {
            "title": title,
            "subtitle": subtitle,
            "description": description,
            "actionText": action_text,
            "actionUrl": action_url,
            "priority": priority,
            "startDate": start_date,
            "endDate": end_date,
        },
    )
    return await BannerService(db).create_banner(data, await image.read(), image.content_type, storage)


@router.put("/{banner_id}", response_model=BannerResponse, responses=ERROR_RESPONSES)
async def update_banner(
    banner_id: str,
    manager: BannerManager,
    db: DbSession,
    storage: StorageDep,
    image: Annotated[UploadFile | None, File()] = None,
    title: Annotated[str | None, Form()] = None,
    subtitle: Annotated[str | None, Form()] = None,
    description: Annotated[str | None, Form()] = None,
    action_text: Annotated[str | None, Form(alias="actionText")] = None,
    action_url: Annotated[str | None, Form(alias="actionUrl")] = None,
    priority: Annotated[str | None, Form()] = None,
    start_date: Annotated[str | None, Form(alias="startDate")] = None,
    end_date: Annotated[str | None, Form(alias="endDate")] = None,
    is_active: Annotated[str | None, Form(alias="isActive")] = None,
):
    """Change the sent fields; an attached image replaces the current one."""
    data = _parse_form(
        BannerUpdateRequest,
        {
            "title": title,
            "subtitle": subtitle,
            "description": description,
            "actionText": action_text,
            "actionUrl": action_url,
            "priority": priority,
            "startDate": start_date,
            "endDate": end_date,
            "isActive": is_active,
        },
    )
    service = BannerService(db)
    if image is None:
        return await service.update_banner(banner_id, data, storage)
    return await service.update_banner(banner_id, data, storage, await image.read(), image.content_type)


@router.delete("/{banner_id}", response_model=MessageResponse, responses=ERROR_RESPONSES)
async def delete_banner(banner_id: str, manager: BannerManager, db: DbSession, storage: StorageDep):
    await BannerService(db).delete_banner(banner_id, storage)
    return MessageResponse(message="Banner deleted successfully")


@router.patch("/{banner_id}/toggle", response_model=BannerToggleResponse, responses=ERROR_RESPONSES)
async def toggle_banner(banner_id: str, manager: BannerManager, db: DbSession):
    banner = await BannerService(db).toggle(banner_id)
    state = "activated" if banner.is_active else "deactivated"
    return BannerToggleResponse(
        message=f"Banner {state} successfully",
        banner=BannerResponse.model_validate(banner),
    )
