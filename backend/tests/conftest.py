"""Shared test fixtures.

Every test runs against a fresh in-memory SQLite database. Settings are
read at import time, so the environment is prepared before anything from
``crackzone`` is imported.
"""

import os
import tempfile
from collections.abc import AsyncGenerator
from typing import Any

os.environ["APP_ENV"] = "test"
os.environ["APP_DEBUG"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["JWT_SECRET_KEY"] = "crackzone-test-signing-key-0f9e8d7c6b5a4938"
os.environ["CACHE_BACKEND"] = "memory"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["IMAGE_BACKEND"] = "local"
os.environ.setdefault("MEDIA_ROOT", tempfile.mkdtemp(prefix="crackzone-media-"))
os.environ.pop("REDIS_URL", None)
os.environ.pop("SMTP_HOST", None)

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: E402

from crackzone.config import get_settings  # noqa: E402
from crackzone.main import app as fastapi_app  # noqa: E402
from crackzone.models import Base, UserRole  # noqa: E402
from crackzone.services.email import EmailService, get_email_service, render  # noqa: E402
from crackzone.services.image import LocalImageStorage, get_image_storage  # noqa: E402
from crackzone.utils.cache import InMemoryCache, get_cache  # noqa: E402
from crackzone.utils.db import async_session_factory, engine  # noqa: E402
from crackzone.ws.manager import ConnectionManager  # noqa: E402
from crackzone.ws.notifier import RealtimeNotifier, set_notifier  # noqa: E402

from factories import auth_headers, create_user  # noqa: E402


# =============================================================================
# Fakes
# =============================================================================


class RecordingEmailService(EmailService):
    """Renders templates but keeps messages in memory instead of using SMTP."""

    def __init__(self):
        super().__init__(get_settings())
        self.sent: list[dict[str, Any]] = []

    @property
    def configured(self) -> bool:
        return True

    async def send(self, to: str, template: str, data: dict[str, Any]) -> None:
        rendered = render(template, data)
        self.sent.append({"to": to, "template": template, "data": data, "subject": rendered.subject})

    async def verify_config(self) -> bool:
        return True

    def last(self, template: str) -> dict[str, Any]:
        for message in reversed(self.sent):
            if message["template"] == template:
                return message
        raise AssertionError(f"no '{template}' email was sent")


# =============================================================================
# Database
# =============================================================================


@pytest_asyncio.fixture(autouse=True)
async def database() -> AsyncGenerator[None, None]:
    """Create the schema for one test and drop the in-memory database after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        yield session
        await session.rollback()


# =============================================================================
# Application
# =============================================================================


@pytest_asyncio.fixture
async def cache() -> AsyncGenerator[InMemoryCache, None]:
    cache = InMemoryCache()
    yield cache
    await cache.flush()


@pytest.fixture
def email_service() -> RecordingEmailService:
    return RecordingEmailService()


@pytest.fixture
def image_storage(tmp_path) -> LocalImageStorage:
    settings = get_settings().model_copy(update={"media_root": str(tmp_path)})
    return LocalImageStorage(settings)


@pytest_asyncio.fixture
async def ws_manager() -> AsyncGenerator[ConnectionManager, None]:
    """Local connection manager that services publish to."""
    manager = ConnectionManager()
    await manager.start()
    set_notifier(RealtimeNotifier(manager))
    yield manager
    await manager.stop()
    set_notifier(RealtimeNotifier())


@pytest_asyncio.fixture
async def app(cache, email_service, image_storage, ws_manager):
    fastapi_app.dependency_overrides[get_cache] = lambda: cache
    fastapi_app.dependency_overrides[get_email_service] = lambda: email_service
    fastapi_app.dependency_overrides[get_image_storage] = lambda: image_storage
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# =============================================================================
# Users
# =============================================================================


@pytest_asyncio.fixture
async def user():
    return await create_user(username="player_one", email="player1@example.com")


@pytest_asyncio.fixture
async def other_user():
    return await create_user(username="player_two", email="player2@example.com")


@pytest_asyncio.fixture
async def moderator():
    return await create_user(username="mod_user", email="mod@example.com", role=UserRole.MODERATOR)


@pytest_asyncio.fixture
async def admin():
    return await create_user(username="admin_user", email="boss@example.com", role=UserRole.ADMIN)


@pytest.fixture
def user_headers(user) -> dict[str, str]:
    return auth_headers(user)


@pytest.fixture
def other_headers(other_user) -> dict[str, str]:
    return auth_headers(other_user)


@pytest.fixture
def moderator_headers(moderator) -> dict[str, str]:
    return auth_headers(moderator)


@pytest.fixture
def admin_headers(admin) -> dict[str, str]:
    return auth_headers(admin)
