"""Tournament endpoint tests."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select

from crackzone.models import Match, Notification, TournamentStatus
from crackzone.services.tournament import TournamentService
from crackzone.utils.db import async_session_factory

from factories import create_match, create_tournament, create_user, make_tournament_data


class TestCreateTournament:
    @pytest.mark.asyncio
    async def test_any_signed_in_user_can_create(self, client, user_headers):
        response = await client.post("/api/tournaments", headers=user_headers, json=make_tournament_data())

        assert response.status_code == 201
        assert response.json()["status"] == "UPCOMING"

    @pytest.mark.asyncio
    async def test_anonymous_cannot_create(self, client):
        response = await client.post("/api/tournaments", json=make_tournament_data())

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_offset_free_dates_are_read_as_utc(self, client, user_headers):
        data = make_tournament_data(startDate="2099-01-01T18:00:00", endDate="2099-01-01T22:00:00")

        response = await client.post("/api/tournaments", headers=user_headers, json=data)

        assert response.status_code == 201
        body = response.json()
        assert body["startDate"].startswith("2099-01-01T18:00:00")
        assert body["endDate"].startswith("2099-01-01T22:00:00")

    @pytest.mark.asyncio
    async def test_moderator_creates_upcoming(self, client, moderator_headers):
        response = await client.post("/api/tournaments", headers=moderator_headers, json=make_tournament_data())

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "UPCOMING"
        assert body["participantCount"] == 0
        assert body["maxParticipants"] == 8
        assert body["prizePool"] == 500

    @pytest.mark.asyncio
    async def test_end_before_start_rejected(self, client, moderator_headers):
        data = make_tournament_data()
        data["endDate"], data["startDate"] = data["startDate"], data["endDate"]

        response = await client.post("/api/tournaments", headers=moderator_headers, json=data)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"


class TestListAndDetail:
    @pytest.mark.asyncio
    async def test_list_filters_by_status(self, client):
        await create_tournament(status=TournamentStatus.REGISTRATION_OPEN, title="Open Cup")
        await create_tournament(status=TournamentStatus.COMPLETED, title="Old Cup")

        response = await client.get("/api/tournaments", params={"status": "REGISTRATION_OPEN"})

        assert response.status_code == 200
        body = response.json()
        assert [t["title"] for t in body["tournaments"]] == ["Open Cup"]
        assert body["pagination"]["total"] == 1

    @pytest.mark.asyncio
    async def test_detail_includes_participants_and_matches(self, client, user, other_user):
        tournament = await create_tournament(participants=[user, other_user])
        await create_match([user, other_user], tournament=tournament, round=1)

        response = await client.get(f"/api/tournaments/{tournament.id}")

        assert response.status_code == 200
        body = response.json()
        assert body["participantCount"] == 2
        assert {p["userId"] for p in body["participants"]} == {user.id, other_user.id}
        assert body["participants"][0]["user"]["username"] in {user.username, other_user.username}
        assert [m["round"] for m in body["matches"]] == [1]

    @pytest.mark.asyncio
    async def test_detail_not_found(self, client):
        response = await client.get("/api/tournaments/missing")

        assert response.status_code == 404


class TestRegistration:
    @pytest.mark.asyncio
    async def test_join(self, client, user, user_headers):
        tournament = await create_tournament()

        response = await client.post(f"/api/tournaments/{tournament.id}/join", headers=user_headers)

        assert response.status_code == 200
        assert response.json()["userId"] == user.id

    @pytest.mark.asyncio
    async def test_join_twice(self, client, user, user_headers):
        tournament = await create_tournament(participants=[user])

        response = await client.post(f"/api/tournaments/{tournament.id}/join", headers=user_headers)

        assert response.status_code == 409
        assert response.json()["message"] == "Already joined this tournament"

    @pytest.mark.asyncio
    async def test_join_losing_a_concurrent_insert(self, client, user, user_headers):
        # Another request registered the same user after the existence check
        tournament = await create_tournament(participants=[user])

        with patch.object(TournamentService, "_get_participant", AsyncMock(return_value=None)):
            response = await client.post(f"/api/tournaments/{tournament.id}/join", headers=user_headers)

        assert response.status_code == 409
        assert response.json()["message"] == "Already joined this tournament"
        participants = await client.get(f"/api/tournaments/{tournament.id}/participants")
        assert [p["userId"] for p in participants.json()] == [user.id]

    @pytest.mark.asyncio
    async def test_join_full(self, client, user_headers):
        players = [await create_user(), await create_user()]
        tournament = await create_tournament(max_participants=2, participants=players)

        response = await client.post(f"/api/tournaments/{tournament.id}/join", headers=user_headers)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "CAPACITY_REACHED"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status",
        [TournamentStatus.REGISTRATION_CLOSED, TournamentStatus.IN_PROGRESS, TournamentStatus.CANCELLED],
    )
    async def test_join_closed(self, client, user_headers, status):
        tournament = await create_tournament(status=status)

        response = await client.post(f"/api/tournaments/{tournament.id}/join", headers=user_headers)

        assert response.status_code == 400
        assert response.json()["message"] == "Tournament registration is closed"

    @pytest.mark.asyncio
    async def test_leave(self, client, user, user_headers):
        tournament = await create_tournament(participants=[user])

        response = await client.post(f"/api/tournaments/{tournament.id}/leave", headers=user_headers)

        assert response.status_code == 200
        participants = await client.get(f"/api/tournaments/{tournament.id}/participants")
        assert participants.json() == []

    @pytest.mark.asyncio
    async def test_leave_when_not_registered(self, client, user_headers):
        tournament = await create_tournament()

        response = await client.post(f"/api/tournaments/{tournament.id}/leave", headers=user_headers)

        assert response.status_code == 404
        assert response.json()["message"] == "Not a participant in this tournament"


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_notifies_participants(self, client, user, moderator_headers):
        tournament = await create_tournament(status=TournamentStatus.REGISTRATION_CLOSED, participants=[user])

        response = await client.post(f"/api/tournaments/{tournament.id}/start", headers=moderator_headers)

        assert response.status_code == 200
        assert response.json()["status"] == "IN_PROGRESS"
        async with async_session_factory() as session:
            notices = (
                await session.scalars(select(Notification).where(Notification.user_id == user.id))
            ).all()
        assert len(notices) == 1
        assert notices[0].type.value == "TOURNAMENT"
        assert notices[0].meta == {"tournamentId": tournament.id}

    @pytest.mark.asyncio
    async def test_complete_after_start(self, client, moderator_headers):
        tournament = await create_tournament(status=TournamentStatus.IN_PROGRESS)

        response = await client.post(f"/api/tournaments/{tournament.id}/complete", headers=moderator_headers)

        assert response.status_code == 200
        assert response.json()["status"] == "COMPLETED"

    @pytest.mark.asyncio
    async def test_cannot_restart_completed(self, client, moderator_headers):
        tournament = await create_tournament(status=TournamentStatus.COMPLETED)

        response = await client.post(f"/api/tournaments/{tournament.id}/start", headers=moderator_headers)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_STATE"

    @pytest.mark.asyncio
    async def test_cancel_from_open(self, client, moderator_headers):
        tournament = await create_tournament(status=TournamentStatus.REGISTRATION_OPEN)

        response = await client.post(f"/api/tournaments/{tournament.id}/cancel", headers=moderator_headers)

        assert response.status_code == 200
        assert response.json()["status"] == "CANCELLED"

    @pytest.mark.asyncio
    async def test_update_cannot_move_backwards(self, client, moderator_headers):
        tournament = await create_tournament(status=TournamentStatus.IN_PROGRESS)

        response = await client.put(
            f"/api/tournaments/{tournament.id}",
            headers=moderator_headers,
            json={"status": "REGISTRATION_OPEN"},
        )

        assert response.status_code == 400
        assert response.json()["error"]["details"] == {"from": "IN_PROGRESS", "to": "REGISTRATION_OPEN"}

    @pytest.mark.asyncio
    async def test_update_fields(self, client, moderator_headers):
        tournament = await create_tournament(status=TournamentStatus.UPCOMING)

        response = await client.put(
            f"/api/tournaments/{tournament.id}",
            headers=moderator_headers,
            json={"title": "Renamed Cup", "status": "REGISTRATION_OPEN", "prizePool": 900},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["title"] == "Renamed Cup"
        assert body["status"] == "REGISTRATION_OPEN"
        assert body["prizePool"] == 900

    @pytest.mark.asyncio
    async def test_update_offset_free_end_date(self, client, moderator_headers):
        tournament = await create_tournament(start_date=datetime(2099, 1, 1, tzinfo=timezone.utc))

        response = await client.put(
            f"/api/tournaments/{tournament.id}",
            headers=moderator_headers,
            json={"endDate": "2099-01-02T00:00:00"},
        )

        assert response.status_code == 200
        assert response.json()["endDate"].startswith("2099-01-02T00:00:00")

    @pytest.mark.asyncio
    async def test_update_offset_free_end_date_before_start(self, client, moderator_headers):
        tournament = await create_tournament(start_date=datetime(2099, 1, 1, tzinfo=timezone.utc))

        response = await client.put(
            f"/api/tournaments/{tournament.id}",
            headers=moderator_headers,
            json={"endDate": "2098-12-31T23:00:00"},
        )

        assert response.status_code == 400
        assert response.json()["message"] == "endDate must be after startDate"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "field",
        ["title", "game", "format", "status", "maxParticipants", "entryFee", "prizePool", "startDate"],
    )
    async def test_update_rejects_null_for_required_fields(self, client, moderator_headers, field):
        tournament = await create_tournament()

        response = await client.put(
            f"/api/tournaments/{tournament.id}",
            headers=moderator_headers,
            json={field: None},
        )

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert error["details"]["errors"][0]["field"] == field
        assert f"{field} cannot be null" in error["details"]["errors"][0]["message"]

    @pytest.mark.asyncio
    async def test_update_clears_optional_fields(self, client, moderator_headers):
        tournament = await create_tournament(rules="No smurfs", end_date=datetime(2099, 1, 2, tzinfo=timezone.utc))

        response = await client.put(
            f"/api/tournaments/{tournament.id}",
            headers=moderator_headers,
            json={"endDate": None, "rules": None},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["endDate"] is None
        assert body["rules"] is None

    @pytest.mark.asyncio
    async def test_delete_removes_matches(self, client, user, other_user, moderator_headers):
        tournament = await create_tournament(participants=[user, other_user])
        await create_match([user, other_user], tournament=tournament)

        response = await client.delete(f"/api/tournaments/{tournament.id}", headers=moderator_headers)

        assert response.status_code == 200
        assert (await client.get(f"/api/tournaments/{tournament.id}")).status_code == 404
        async with async_session_factory() as session:
            remaining = await session.scalar(select(func.count()).select_from(Match))
        assert remaining == 0


class TestBanner:
    @pytest.mark.asyncio
    async def test_upload_banner(self, client, moderator_headers):
        tournament = await create_tournament()

        response = await client.post(
            f"/api/images/tournament/{tournament.id}/banner",
            headers=moderator_headers,
            files={"banner": ("banner.jpg", b"\xff\xd8\xff" + b"\x00" * 32, "image/jpeg")},
        )

        assert response.status_code == 200
        assert response.json()["bannerUrl"].endswith(".jpg")
