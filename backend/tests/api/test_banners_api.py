"""Banner endpoint tests."""

from datetime import datetime, timedelta, timezone

import pytest

from crackzone.models import Banner
from crackzone.utils.db import async_session_factory

from factories import create_banner

JPEG = b"\xff\xd8\xff" + b"\x00" * 32
PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


def _now() -> datetime:
    return datetime.now(timezone.utc)


class TestPublicList:
    @pytest.mark.asyncio
    async def test_live_banners_by_priority(self, client):
        await create_banner(title="Low", priority=1)
        await create_banner(title="High", priority=10)
        await create_banner(title="Hidden", priority=50, is_active=False)

        response = await client.get("/api/banners")

        assert response.status_code == 200
        assert [b["title"] for b in response.json()] == ["High", "Low"]

    @pytest.mark.asyncio
    async def test_display_window(self, client):
        await create_banner(title="Running", start_date=_now() - timedelta(days=1), end_date=_now() + timedelta(days=1))
        await create_banner(title="Open ended", start_date=_now() - timedelta(hours=1))
        await create_banner(title="Scheduled", start_date=_now() + timedelta(days=2))
        await create_banner(title="Expired", end_date=_now() - timedelta(minutes=5))

        response = await client.get("/api/banners")

        assert {b["title"] for b in response.json()} == {"Running", "Open ended"}


class TestAdminAccess:
    @pytest.mark.asyncio
    async def test_admin_list_includes_inactive(self, client, admin_headers):
        await create_banner(title="Live", priority=2)
        await create_banner(title="Parked", priority=1, is_active=False)

        response = await client.get("/api/banners/admin", headers=admin_headers)

        assert response.status_code == 200
        assert [b["title"] for b in response.json()] == ["Live", "Parked"]

    @pytest.mark.asyncio
    async def test_moderators_are_refused(self, client, moderator_headers):
        banner = await create_banner()

        assert (await client.get("/api/banners/admin", headers=moderator_headers)).status_code == 403
        assert (await client.get(f"/api/banners/{banner.id}", headers=moderator_headers)).status_code == 403
        assert (await client.delete(f"/api/banners/{banner.id}", headers=moderator_headers)).status_code == 403

    @pytest.mark.asyncio
    async def test_players_cannot_upload(self, client, user_headers):
        response = await client.post(
            "/api/banners",
            headers=user_headers,
            data={"title": "Self promotion"},
            files={"image": ("me.jpg", JPEG, "image/jpeg")},
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_get_unknown(self, client, admin_headers):
        response = await client.get("/api/banners/missing", headers=admin_headers)

        assert response.status_code == 404
        assert response.json()["message"] == "Banner not found"


class TestCreateBanner:
    @pytest.mark.asyncio
    async def test_create_with_image(self, client, admin_headers, image_storage):
        response = await client.post(
            "/api/banners",
            headers=admin_headers,
            data={
                "title": "Winter Cup",
                "subtitle": "Sign-ups open",
                "actionText": "Join now",
                "actionUrl": "/tournaments/winter",
                "priority": "5",
                "startDate": "2099-01-01T00:00:00",
            },
            files={"image": ("winter.jpg", JPEG, "image/jpeg")},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["title"] == "Winter Cup"
        assert body["actionUrl"] == "/tournaments/winter"
        assert body["priority"] == 5
        assert body["isActive"] is True
        assert body["startDate"].startswith("2099-01-01T00:00:00")
        assert body["imagePublicId"].startswith("crackzone/banners/")
        assert (image_storage.root / body["imagePublicId"]).exists()

    @pytest.mark.asyncio
    async def test_image_is_required(self, client, admin_headers):
        response = await client.post("/api/banners", headers=admin_headers, data={"title": "No picture"})

        assert response.status_code == 400
        fields = {e["field"] for e in response.json()["error"]["details"]["errors"]}
        assert "image" in fields

    @pytest.mark.asyncio
    async def test_invalid_fields(self, client, admin_headers):
        response = await client.post(
            "/api/banners",
            headers=admin_headers,
            data={"title": "Bad priority", "priority": "-3"},
            files={"image": ("a.jpg", JPEG, "image/jpeg")},
        )

        assert response.status_code == 400
        errors = response.json()["error"]["details"]["errors"]
        assert errors[0]["field"] == "priority"

    @pytest.mark.asyncio
    async def test_end_before_start(self, client, admin_headers):
        response = await client.post(
            "/api/banners",
            headers=admin_headers,
            data={"title": "Backwards", "startDate": "2099-02-01T00:00:00Z", "endDate": "2099-01-01T00:00:00Z"},
            files={"image": ("a.jpg", JPEG, "image/jpeg")},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_rejects_non_image(self, client, admin_headers):
        response = await client.post(
            "/api/banners",
            headers=admin_headers,
            data={"title": "Text file"},
            files={"image": ("notes.txt", b"hello", "text/plain")},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "IMAGE_INVALID"


class TestUpdateBanner:
    @pytest.mark.asyncio
    async def test_partial_update_keeps_other_fields(self, client, admin_headers):
        banner = await create_banner(title="Original", priority=3)

        response = await client.put(
            f"/api/banners/{banner.id}",
            headers=admin_headers,
            data={"subtitle": "Now with prizes", "isActive": "false"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["title"] == "Original"
        assert body["priority"] == 3
        assert body["subtitle"] == "Now with prizes"
        assert body["isActive"] is False

    @pytest.mark.asyncio
    async def test_new_image_replaces_old_file(self, client, admin_headers, image_storage):
        created = await client.post(
            "/api/banners",
            headers=admin_headers,
            data={"title": "Spring Cup"},
            files={"image": ("spring.jpg", JPEG, "image/jpeg")},
        )
        old_public_id = created.json()["imagePublicId"]

        response = await client.put(
            f"/api/banners/{created.json()['id']}",
            headers=admin_headers,
            files={"image": ("spring.png", PNG, "image/png")},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["imageUrl"].endswith(".png")
        assert body["imagePublicId"] != old_public_id
        assert not (image_storage.root / old_public_id).exists()
        assert (image_storage.root / body["imagePublicId"]).exists()

    @pytest.mark.asyncio
    async def test_end_before_existing_start(self, client, admin_headers):
        banner = await create_banner(start_date=datetime(2099, 6, 1, tzinfo=timezone.utc))

        response = await client.put(
            f"/api/banners/{banner.id}",
            headers=admin_headers,
            data={"endDate": "2099-05-01T00:00:00Z"},
        )

        assert response.status_code == 400
        assert response.json()["message"] == "endDate must be after startDate"


class TestToggleAndDelete:
    @pytest.mark.asyncio
    async def test_toggle_flips_state(self, client, admin_headers):
        banner = await create_banner()

        first = await client.patch(f"/api/banners/{banner.id}/toggle", headers=admin_headers)
        second = await client.patch(f"/api/banners/{banner.id}/toggle", headers=admin_headers)

        assert first.json()["message"] == "Banner deactivated successfully"
        assert first.json()["banner"]["isActive"] is False
        assert second.json()["message"] == "Banner activated successfully"
        assert second.json()["banner"]["isActive"] is True

    @pytest.mark.asyncio
    async def test_toggle_unknown(self, client, admin_headers):
        response = await client.patch("/api/banners/missing/toggle", headers=admin_headers)

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_delete_removes_row_and_image(self, client, admin_headers, image_storage):
        created = await client.post(
            "/api/banners",
            headers=admin_headers,
            data={"title": "Gone Soon"},
            files={"image": ("gone.jpg", JPEG, "image/jpeg")},
        )
        body = created.json()

        response = await client.delete(f"/api/banners/{body['id']}", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["message"] == "Banner deleted successfully"
        assert not (image_storage.root / body["imagePublicId"]).exists()
        async with async_session_factory() as session:
            assert await session.get(Banner, body["id"]) is None
