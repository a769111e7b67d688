"""Match endpoint tests."""

import pytest

from crackzone.models import MatchStatus, User
from crackzone.utils.db import async_session_factory

from factories import auth_headers, connect_socket, create_match, create_tournament, create_user


async def _experience(user_id: str) -> int:
    async with async_session_factory() as session:
        return (await session.get(User, user_id)).experience


class TestCreateMatch:
    @pytest.mark.asyncio
    async def test_participants_seeded_in_order(self, client, user, other_user, moderator_headers):
        tournament = await create_tournament()

        response = await client.post(
            "/api/matches",
            headers=moderator_headers,
            json={
                "title": "Semi Final",
                "game": "valorant",
                "tournamentId": tournament.id,
                "round": 2,
                "participantIds": [other_user.id, user.id],
            },
        )

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "SCHEDULED"
        assert body["tournamentId"] == tournament.id
        assert [(p["userId"], p["position"]) for p in body["participants"]] == [
            (other_user.id, 1),
            (user.id, 2),
        ]

    @pytest.mark.asyncio
    async def test_needs_two_unique_participants(self, client, user, moderator_headers):
        response = await client.post(
            "/api/matches",
            headers=moderator_headers,
            json={"title": "Solo", "game": "valorant", "participantIds": [user.id, user.id]},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_unknown_participant(self, client, user, moderator_headers):
        response = await client.post(
            "/api/matches",
            headers=moderator_headers,
            json={"title": "Ghost", "game": "valorant", "participantIds": [user.id, "nobody"]},
        )

        assert response.status_code == 404
        assert response.json()["error"]["details"] == {"userIds": ["nobody"]}

    @pytest.mark.asyncio
    async def test_players_cannot_create(self, client, user, other_user, user_headers):
        response = await client.post(
            "/api/matches",
            headers=user_headers,
            json={"title": "Scrim", "game": "valorant", "participantIds": [user.id, other_user.id]},
        )

        assert response.status_code == 403


class TestUpdateMatch:
    @pytest.mark.asyncio
    async def test_offset_free_schedule_is_utc(self, client, user, other_user, moderator_headers):
        match = await create_match([user, other_user])

        response = await client.put(
            f"/api/matches/{match.id}",
            headers=moderator_headers,
            json={"scheduledAt": "2099-03-01T20:30:00", "round": 3},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["scheduledAt"].startswith("2099-03-01T20:30:00")
        assert body["round"] == 3

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field", ["title", "game"])
    async def test_null_for_required_field(self, client, user, other_user, moderator_headers, field):
        match = await create_match([user, other_user])

        response = await client.put(f"/api/matches/{match.id}", headers=moderator_headers, json={field: None})

        assert response.status_code == 400
        errors = response.json()["error"]["details"]["errors"]
        assert errors[0]["field"] == field

    @pytest.mark.asyncio
    async def test_null_clears_optional_fields(self, client, user, other_user, moderator_headers):
        match = await create_match([user, other_user], description="Best of three", round=1)

        response = await client.put(
            f"/api/matches/{match.id}",
            headers=moderator_headers,
            json={"description": None, "round": None},
        )

        assert response.status_code == 200
        assert response.json()["description"] is None
        assert response.json()["round"] is None


class TestMatchLifecycle:
    @pytest.mark.asyncio
    async def test_start_scheduled_match(self, client, user, other_user, moderator_headers):
        match = await create_match([user, other_user])

        response = await client.post(f"/api/matches/{match.id}/start", headers=moderator_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "IN_PROGRESS"
        assert body["startedAt"] is not None

    @pytest.mark.asyncio
    async def test_start_twice(self, client, user, other_user, moderator_headers):
        match = await create_match([user, other_user], status=MatchStatus.IN_PROGRESS)

        response = await client.post(f"/api/matches/{match.id}/start", headers=moderator_headers)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_STATE"

    @pytest.mark.asyncio
    async def test_cancel_completed_match(self, client, user, other_user, moderator_headers):
        match = await create_match([user, other_user], status=MatchStatus.COMPLETED)

        response = await client.post(f"/api/matches/{match.id}/cancel", headers=moderator_headers)

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_filter_by_status(self, client, user, other_user):
        await create_match([user, other_user], title="Live", status=MatchStatus.IN_PROGRESS)
        await create_match([user, other_user], title="Later")

        response = await client.get("/api/matches", params={"status": "IN_PROGRESS"})

        assert [m["title"] for m in response.json()["matches"]] == ["Live"]


class TestSubmitResult:
    @pytest.mark.asyncio
    async def test_participant_submits_and_experience_is_granted(
        self, client, user, other_user, user_headers, ws_manager
    ):
        third = await create_user()
        match = await create_match([user, other_user, third], status=MatchStatus.IN_PROGRESS)
        socket = await connect_socket(ws_manager, other_user)

        response = await client.post(
            f"/api/matches/{match.id}/result",
            headers=user_headers,
            json={
                "results": [
                    {"userId": other_user.id, "score": 13, "position": 1},
                    {"userId": user.id, "score": 9, "position": 2},
                    {"userId": third.id, "score": 2, "position": 9},
                ],
                "notes": "GG",
            },
        )

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "COMPLETED"
        assert body["endedAt"] is not None
        assert body["result"]["submittedBy"] == user.id
        assert body["result"]["notes"] == "GG"
        assert [p["userId"] for p in body["participants"]] == [other_user.id, user.id, third.id]

        assert await _experience(other_user.id) == 100
        assert await _experience(user.id) == 80
        assert await _experience(third.id) == 10

        notice = socket.of_type("notification")[0]["payload"]
        assert notice["title"] == "Match Completed"
        assert "earned 100 XP" in notice["message"]

    @pytest.mark.asyncio
    async def test_outsider_cannot_submit(self, client, user, other_user):
        outsider = await create_user()
        match = await create_match([user, other_user])

        response = await client.post(
            f"/api/matches/{match.id}/result",
            headers=auth_headers(outsider),
            json={"results": [{"userId": user.id, "position": 1}]},
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_moderator_may_submit_for_any_match(self, client, user, other_user, moderator_headers):
        match = await create_match([user, other_user])

        response = await client.post(
            f"/api/matches/{match.id}/result",
            headers=moderator_headers,
            json={"results": [{"userId": user.id, "position": 1}, {"userId": other_user.id, "position": 2}]},
        )

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_result_for_non_participant(self, client, user, other_user, user_headers):
        outsider = await create_user()
        match = await create_match([user, other_user])

        response = await client.post(
            f"/api/matches/{match.id}/result",
            headers=user_headers,
            json={"results": [{"userId": outsider.id, "position": 1}]},
        )

        assert response.status_code == 404
        assert await _experience(outsider.id) == 0

    @pytest.mark.asyncio
    async def test_completed_match_rejects_new_result(self, client, user, other_user, user_headers):
        match = await create_match([user, other_user], status=MatchStatus.COMPLETED)

        response = await client.post(
            f"/api/matches/{match.id}/result",
            headers=user_headers,
            json={"results": [{"userId": user.id, "position": 1}]},
        )

        assert response.status_code == 400
        assert await _experience(user.id) == 0

    @pytest.mark.asyncio
    async def test_duplicate_user_in_results(self, client, user, other_user, user_headers):
        match = await create_match([user, other_user])

        response = await client.post(
            f"/api/matches/{match.id}/result",
            headers=user_headers,
            json={"results": [{"userId": user.id, "position": 1}, {"userId": user.id, "position": 2}]},
        )

        assert response.status_code == 400


class TestScreenshots:
    @pytest.mark.asyncio
    async def test_participant_uploads(self, client, user, other_user, user_headers):
        match = await create_match([user, other_user])
        png = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16

        response = await client.post(
            f"/api/images/match/{match.id}/screenshots",
            headers=user_headers,
            files=[
                ("screenshots", ("a.png", png, "image/png")),
                ("screenshots", ("b.png", png, "image/png")),
            ],
        )

        assert response.status_code == 200
        shots = response.json()
        assert len(shots) == 2
        assert all(s["uploadedBy"] == user.id for s in shots)
        detail = (await client.get(f"/api/matches/{match.id}")).json()
        assert len(detail["screenshots"]) == 2
