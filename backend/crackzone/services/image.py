"""Image storage backends.

``LocalImageStorage`` writes files under ``media_root`` and serves them from
``media_base_url``; ``CloudinaryImageStorage`` talks to the Cloudinary REST
API with signed requests. Both identify an image by its public id.
"""

import asyncio
import hashlib
import logging
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

import httpx

from crackzone.config import Settings, get_settings
from crackzone.utils.errors import ErrorCode, IntegrationError, InvalidRequestError
from crackzone.utils.http_client import AsyncHttpClient

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
}


@dataclass(frozen=True)
class UploadPreset:
    folder: str
    width: int | None = None
    height: int | None = None
    crop: str = "fill"
    gravity: str | None = None

    @property
    def transformation(self) -> str | None:
        if not (self.width and self.height):
            return None
        parts = [f"w_{self.width}", f"h_{self.height}", f"c_{self.crop}"]
        if self.gravity:
            parts.append(f"g_{self.gravity}")
        parts.append("q_auto")
        return ",".join(parts)


AVATAR = UploadPreset("crackzone/avatars", 400, 400, gravity="face")
TEAM_LOGO = UploadPreset("crackzone/teams", 300, 300)
TOURNAMENT_BANNER = UploadPreset("crackzone/tournaments", 800, 400)
MATCH_SCREENSHOT = UploadPreset("crackzone/screenshots", 1200, 675)
PROMO_BANNER = UploadPreset("crackzone/banners", 1200, 400)
GENERAL = UploadPreset("crackzone/general")


@dataclass(frozen=True)
class StoredImage:
    public_id: str
    url: str
    width: int | None = None
    height: int | None = None
    format: str | None = None
    bytes: int | None = None


def validate_image(data: bytes, content_type: str | None, max_bytes: int) -> str:
    """Check type and size; return the file extension."""
    if content_type not in ALLOWED_CONTENT_TYPES:
        raise InvalidRequestError(
            "Invalid file type. Only JPEG, PNG, WebP, and GIF are allowed.",
            code=ErrorCode.IMAGE_INVALID,
        )
    if not data:
        raise InvalidRequestError("Empty file", code=ErrorCode.IMAGE_INVALID)
    if len(data) > max_bytes:
        raise InvalidRequestError(
            f"File too large. Maximum size is {max_bytes // (1024 * 1024)}MB.",
            code=ErrorCode.IMAGE_INVALID,
        )
    return ALLOWED_CONTENT_TYPES[content_type]


class ImageStorage(ABC):
    def __init__(self, settings: Settings):
        self.settings = settings

    async def upload(self, data: bytes, content_type: str | None, preset: UploadPreset = GENERAL) -> StoredImage:
        ext = validate_image(data, content_type, self.settings.max_image_bytes)
        return await self._store(data, ext, preset)

    @abstractmethod
    async def _store(self, data: bytes, ext: str, preset: UploadPreset) -> StoredImage:
        ...

    @abstractmethod
    async def delete(self, public_id: str) -> bool:
        """Remove an image; returns False when nothing was deleted."""

    @abstractmethod
    def url_for(self, public_id: str, width: int | None = None, height: int | None = None) -> str:
        """Delivery URL, resized when both dimensions are given."""

    async def delete_quietly(self, public_id: str | None) -> None:
        if not public_id:
            return
        try:
            await self.delete(public_id)
        except IntegrationError as e:
            logger.warning(f"Could not delete image {public_id}: {e.message}")


class LocalImageStorage(ImageStorage):
    """Files on local disk; public id is the path relative to ``media_root``."""

    def __init__(self, settings: Settings):
        super().__init__(settings)
        self.root = Path(settings.media_root).resolve()

    def _path(self, public_id: str) -> Path:
        path = (self.root / public_id).resolve()
        if not path.is_relative_to(self.root):
            raise InvalidRequestError("Invalid public id", code=ErrorCode.IMAGE_INVALID)
        return path

    async def _store(self, data: bytes, ext: str, preset: UploadPreset) -> StoredImage:
        public_id = f"{preset.folder}/{uuid.uuid4().hex}.{ext}"
        path = self._path(public_id)

        def write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)

        await asyncio.to_thread(write)
        return StoredImage(
            public_id=public_id,
            url=self.url_for(public_id),
            format=ext,
            bytes=len(data),
        )

    async def delete(self, public_id: str) -> bool:
        path = self._path(public_id)

        def remove() -> bool:
            if not path.is_file():
                return False
            path.unlink()
            return True

        return await asyncio.to_thread(remove)

    def url_for(self, public_id: str, width: int | None = None, height: int | None = None) -> str:
        url = f"{self.settings.media_base_url.rstrip('/')}/{public_id}"
        if width and height:
            url = f"{url}?w={width}&h={height}"
        return url


class CloudinaryImageStorage(ImageStorage):
    API_BASE = "https://api.cloudinary.com/v1_1"
    DELIVERY_BASE = "https://res.cloudinary.com"

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        super().__init__(settings)
        self.cloud_name = settings.cloudinary_cloud_name
        self.api_key = settings.cloudinary_api_key
        self.api_secret = settings.cloudinary_api_secret
        self._transport = transport

    def _sign(self, params: dict[str, str]) -> str:
        to_sign = "&".join(f"{k}={params[k]}" for k in sorted(params))
        return hashlib.sha1(f"{to_sign}{self.api_secret}".encode()).hexdigest()

    def _signed(self, params: dict[str, str]) -> dict[str, str]:
        params = {**params, "timestamp": str(int(time.time()))}
        return {**params, "api_key": self.api_key, "signature": self._sign(params)}

    async def _post(self, action: str, data: dict[str, str], files: dict | None = None) -> dict:
        url = f"{self.API_BASE}/{self.cloud_name}/image/{action}"
        try:
            async with AsyncHttpClient(transport=self._transport) as client:
                return await client.post_form(url, data=data, files=files)
        except httpx.HTTPError as e:
            logger.error(f"Cloudinary {action} failed: {e}")
            raise IntegrationError(
                "Image service request failed",
                code=ErrorCode.IMAGE_UPLOAD_FAILED,
            ) from e

    async def _store(self, data: bytes, ext: str, preset: UploadPreset) -> StoredImage:
        params = {"folder": preset.folder}
        if preset.transformation:
            params["transformation"] = preset.transformation
        body = await self._post(
            "upload",
            self._signed(params),
            files={"file": (f"upload.{ext}", data)},
        )
        return StoredImage(
            public_id=body["public_id"],
            url=body["secure_url"],
            width=body.get("width"),
            height=body.get("height"),
            format=body.get("format"),
            bytes=body.get("bytes"),
        )

    async def delete(self, public_id: str) -> bool:
        body = await self._post("destroy", self._signed({"public_id": public_id}))
        return body.get("result") == "ok"

    def url_for(self, public_id: str, width: int | None = None, height: int | None = None) -> str:
        parts = ["q_auto", "f_auto"]
        if width:
            parts.append(f"w_{width}")
        if height:
            parts.append(f"h_{height}")
        if width and height:
            parts.append("c_fill")
        return f"{self.DELIVERY_BASE}/{self.cloud_name}/image/upload/{','.join(parts)}/{public_id}"


_storage: ImageStorage | None = None


def build_image_storage(settings: Settings) -> ImageStorage:
    if settings.image_backend == "cloudinary":
        return CloudinaryImageStorage(settings)
    return LocalImageStorage(settings)


def get_image_storage() -> ImageStorage:
    """FastAPI dependency returning the configured storage backend."""
    global _storage
    if _storage is None:
        _storage = build_image_storage(get_settings())
    return _storage
