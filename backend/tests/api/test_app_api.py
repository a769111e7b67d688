"""Application-level behaviour: health, error envelope, email administration."""

import pytest
from fastapi import Request
from sqlalchemy.exc import IntegrityError

from crackzone.main import integrity_error_handler
from crackzone.utils.json_utils import json_loads
from crackzone.ws.gateway import shutdown_manager


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "OK"
        assert body["services"] == {"database": "connected", "cache": "memory"}

    @pytest.mark.asyncio
    async def test_probes(self, client):
        assert (await client.get("/health/live")).json() == {"status": "alive"}
        assert (await client.get("/health/ready")).json() == {"status": "ready"}

    @pytest.mark.asyncio
    async def test_root(self, client):
        response = await client.get("/")

        assert response.json()["name"] == "CrackZone API"

    @pytest.mark.asyncio
    async def test_websocket_stats(self, client):
        try:
            response = await client.get("/ws/stats")
        finally:
            await shutdown_manager()

        assert response.json() == {"connections": 0, "status": "running"}


class TestErrorEnvelope:
    @pytest.mark.asyncio
    async def test_unknown_route(self, client):
        response = await client.get("/api/nowhere")

        assert response.status_code == 404
        body = response.json()
        assert body["error"] == {
            "code": "ROUTE_NOT_FOUND",
            "message": "Route GET /api/nowhere not found",
            "details": {},
        }
        assert body["statusCode"] == 404
        assert body["path"] == "/api/nowhere"
        assert body["method"] == "GET"
        assert body["timestamp"]

    @pytest.mark.asyncio
    async def test_request_id_round_trip(self, client):
        response = await client.get("/api/nowhere", headers={"X-Request-ID": "req-42"})

        assert response.headers["X-Request-ID"] == "req-42"
        assert response.json()["traceId"] == "req-42"

    @pytest.mark.asyncio
    async def test_request_id_generated(self, client):
        response = await client.get("/health/live")

        assert response.headers["X-Request-ID"]

    @pytest.mark.asyncio
    async def test_validation_error_lists_fields(self, client):
        response = await client.post("/api/auth/login", json={"email": "not-an-email"})

        assert response.status_code == 400
        body = response.json()
        assert body["error"]["code"] == "VALIDATION_ERROR"
        fields = {e["field"] for e in body["error"]["details"]["errors"]}
        assert fields == {"email", "password"}
        assert "stack" not in body

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("driver_message", "status_code", "code"),
        [
            ("UNIQUE constraint failed: teams.name", 409, "UNIQUE_VIOLATION"),
            ("FOREIGN KEY constraint failed", 400, "FOREIGN_KEY_VIOLATION"),
        ],
    )
    async def test_unhandled_integrity_error_is_classified(self, driver_message, status_code, code):
        request = Request({"type": "http", "method": "POST", "path": "/api/teams", "headers": [], "query_string": b""})
        exc = IntegrityError("INSERT INTO teams ...", {}, Exception(driver_message))

        response = await integrity_error_handler(request, exc)

        assert response.status_code == status_code
        body = json_loads(response.body)
        assert body["error"]["code"] == code
        assert body["path"] == "/api/teams"


class TestEmailAdministration:
    @pytest.mark.asyncio
    async def test_config_check_requires_admin(self, client, moderator_headers):
        response = await client.post("/api/email/test-config", headers=moderator_headers)

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_config_check(self, client, admin_headers):
        response = await client.post("/api/email/test-config", headers=admin_headers)

        assert response.json() == {"configured": True, "message": "Email configuration is valid"}

    @pytest.mark.asyncio
    async def test_send_sample(self, client, admin_headers, email_service):
        response = await client.post(
            "/api/email/test-send",
            headers=admin_headers,
            json={"to": "ops@example.com", "template": "verification"},
        )

        assert response.status_code == 200
        sent = email_service.last("verification")
        assert sent["to"] == "ops@example.com"
        assert sent["data"]["code"] == "123456"

    @pytest.mark.asyncio
    async def test_unknown_template(self, client, admin_headers):
        response = await client.post(
            "/api/email/test-send",
            headers=admin_headers,
            json={"to": "ops@example.com", "template": "newsletter"},
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_tournament_invitation(self, client, moderator_headers, email_service):
        response = await client.post(
            "/api/email/tournament-invitation",
            headers=moderator_headers,
            json={
                "email": "friend@example.com",
                "username": "friend",
                "tournamentName": "Weekend Cup",
                "tournamentId": "t-77",
            },
        )

        assert response.status_code == 200
        sent = email_service.last("tournament-invitation")
        assert sent["data"]["tournament_name"] == "Weekend Cup"
        assert sent["data"]["join_url"].endswith("/tournaments/t-77")

    @pytest.mark.asyncio
    async def test_players_cannot_send_invitations(self, client, user_headers):
        response = await client.post(
            "/api/email/tournament-invitation",
            headers=user_headers,
            json={"email": "friend@example.com", "username": "friend", "tournamentName": "Cup"},
        )

        assert response.status_code == 403
