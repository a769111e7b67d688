"""Landing page banners."""

import logging
from datetime import datetime

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from crackzone.models.banner import Banner
from crackzone.models.base import utcnow
from crackzone.schemas.requests import BannerCreateRequest, BannerUpdateRequest
from crackzone.services.image import PROMO_BANNER, ImageStorage
from crackzone.utils.db import get_or_404
from crackzone.utils.errors import BusinessRuleError

logger = logging.getLogger(__name__)

_DISPLAY_ORDER = (Banner.priority.desc(), Banner.created_at.desc())


class BannerService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_live(self, now: datetime | None = None) -> list[Banner]:
        """Active banners whose display window contains ``now``; open ends are unbounded."""
        now = now or utcnow()
        result = await self.db.scalars(
            select(Banner)
            .where(
                Banner.is_active.is_(True),
                or_(Banner.start_date.is_(None), Banner.start_date <= now),
                or_(Banner.end_date.is_(None), Banner.end_date >= now),
            )
            .order_by(*_DISPLAY_ORDER)
        )
        return list(result.all())

    async def list_all(self) -> list[Banner]:
        result = await self.db.scalars(select(Banner).order_by(*_DISPLAY_ORDER))
        return list(result.all())

    async def get_banner(self, banner_id: str) -> Banner:
        return await get_or_404(self.db, Banner, banner_id, "Banner not found")

    async def create_banner(
        self,
        data: BannerCreateRequest,
        image: bytes,
        content_type: str | None,
        storage: ImageStorage,
    ) -> Banner:
        stored = await storage.upload(image, content_type, PROMO_BANNER)
        banner = Banner(
            **data.model_dump(by_alias=False),
            image_url=stored.url,
            image_public_id=stored.public_id,
        )
        self.db.add(banner)
        await self.db.flush()
        logger.info(f"Banner {banner.id} created")
        return banner

    async def update_banner(
        self,
        banner_id: str,
        data: BannerUpdateRequest,
        storage: ImageStorage,
        image: bytes | None = None,
        content_type: str | None = None,
    ) -> Banner:
        """Apply the provided fields and, when a new image is given, replace the old one."""
        banner = await self.get_banner(banner_id)
        for field, value in data.model_dump(by_alias=False, exclude_unset=True, exclude_none=True).items():
            setattr(banner, field, value)
        if banner.start_date and banner.end_date and banner.end_date < banner.start_date:
            raise BusinessRuleError("endDate must be after startDate")

        old_public_id = None
        if image is not None:
            stored = await storage.upload(image, content_type, PROMO_BANNER)
            old_public_id = banner.image_public_id
            banner.image_url = stored.url
            banner.image_public_id = stored.public_id
        await self.db.flush()

        await storage.delete_quietly(old_public_id)
        return banner

    async def delete_banner(self, banner_id: str, storage: ImageStorage) -> None:
        banner = await self.get_banner(banner_id)
        public_id = banner.image_public_id
        await self.db.delete(banner)
        await self.db.flush()
        await storage.delete_quietly(public_id)
        logger.info(f"Banner {banner_id} deleted")

    async def toggle(self, banner_id: str) -> Banner:
        banner = await self.get_banner(banner_id)
        banner.is_active = not banner.is_active
        await self.db.flush()
        return banner
