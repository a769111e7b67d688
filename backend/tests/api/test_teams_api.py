"""Team endpoint tests."""

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select

from crackzone.models import Notification, Team
from crackzone.services.team import TeamService
from crackzone.utils.db import async_session_factory

from factories import connect_socket, create_team, create_user


class TestCreateTeam:
    @pytest.mark.asyncio
    async def test_creator_becomes_leader(self, client, user, user_headers):
        response = await client.post(
            "/api/teams",
            headers=user_headers,
            json={"name": "Night Owls", "description": "Late night scrims", "maxMembers": 4},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["name"] == "Night Owls"
        assert body["memberCount"] == 1
        assert body["members"][0]["userId"] == user.id
        assert body["members"][0]["role"] == "LEADER"

    @pytest.mark.asyncio
    async def test_one_team_per_user(self, client, user, user_headers):
        await create_team(user)

        response = await client.post("/api/teams", headers=user_headers, json={"name": "Second Team"})

        assert response.status_code == 409
        assert response.json()["message"] == "You are already a member of a team"

    @pytest.mark.asyncio
    async def test_invalid_name(self, client, user_headers):
        response = await client.post("/api/teams", headers=user_headers, json={"name": "<script>"})

        assert response.status_code == 400


class TestMembership:
    @pytest.mark.asyncio
    async def test_join(self, client, user, other_user, other_headers):
        team = await create_team(user)

        response = await client.post(f"/api/teams/{team.id}/join", headers=other_headers)

        assert response.status_code == 200
        members = (await client.get(f"/api/teams/{team.id}/members")).json()
        assert [m["userId"] for m in members] == [user.id, other_user.id]

    @pytest.mark.asyncio
    async def test_join_losing_a_concurrent_insert(self, client, user, other_user, other_headers):
        # The membership check ran before a parallel request inserted the same row
        team = await create_team(user, members=[other_user])

        with patch.object(TeamService, "_membership_of", AsyncMock(return_value=None)):
            response = await client.post(f"/api/teams/{team.id}/join", headers=other_headers)

        assert response.status_code == 409
        assert response.json()["message"] == "You are already a member of this team"

    @pytest.mark.asyncio
    async def test_join_full_team(self, client, user, other_headers):
        team = await create_team(user, members=[await create_user()], max_members=2)

        response = await client.post(f"/api/teams/{team.id}/join", headers=other_headers)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "CAPACITY_REACHED"

    @pytest.mark.asyncio
    async def test_leader_must_transfer_before_leaving(self, client, user, other_user, user_headers):
        team = await create_team(user, members=[other_user])

        response = await client.post(f"/api/teams/{team.id}/leave", headers=user_headers)

        assert response.status_code == 400
        assert response.json()["message"] == "Transfer leadership before leaving the team"

    @pytest.mark.asyncio
    async def test_last_member_leaving_deactivates(self, client, user, user_headers):
        team = await create_team(user)

        response = await client.post(f"/api/teams/{team.id}/leave", headers=user_headers)

        assert response.status_code == 200
        assert (await client.get(f"/api/teams/{team.id}")).status_code == 404
        async with async_session_factory() as session:
            stored = await session.get(Team, team.id)
        assert stored.is_active is False

    @pytest.mark.asyncio
    async def test_member_leaves(self, client, user, other_user, other_headers):
        team = await create_team(user, members=[other_user])

        response = await client.post(f"/api/teams/{team.id}/leave", headers=other_headers)

        assert response.status_code == 200
        assert (await client.get(f"/api/teams/{team.id}")).json()["memberCount"] == 1


class TestLeaderActions:
    @pytest.mark.asyncio
    async def test_only_leader_can_update(self, client, user, other_user, other_headers):
        team = await create_team(user, members=[other_user])

        response = await client.put(f"/api/teams/{team.id}", headers=other_headers, json={"name": "Hijacked"})

        assert response.status_code == 403
        assert response.json()["message"] == "Only team leaders can update team details"

    @pytest.mark.asyncio
    async def test_update_cannot_shrink_below_members(self, client, user, other_user, user_headers):
        team = await create_team(user, members=[other_user, await create_user()])

        response = await client.put(f"/api/teams/{team.id}", headers=user_headers, json={"maxMembers": 2})

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_kick_member_notifies_them(self, client, user, other_user, user_headers, ws_manager):
        team = await create_team(user, members=[other_user])
        socket = await connect_socket(ws_manager, other_user)

        response = await client.post(f"/api/teams/{team.id}/kick/{other_user.id}", headers=user_headers)

        assert response.status_code == 200
        pushed = socket.of_type("notification")
        assert len(pushed) == 1
        assert pushed[0]["payload"]["title"] == "Removed from Team"
        assert pushed[0]["payload"]["metadata"] == {"teamId": team.id}

    @pytest.mark.asyncio
    async def test_cannot_kick_self(self, client, user, user_headers):
        team = await create_team(user)

        response = await client.post(f"/api/teams/{team.id}/kick/{user.id}", headers=user_headers)

        assert response.status_code == 400
        assert response.json()["message"] == "Cannot kick yourself"

    @pytest.mark.asyncio
    async def test_promote_swaps_roles(self, client, user, other_user, user_headers):
        team = await create_team(user, members=[other_user])

        response = await client.post(f"/api/teams/{team.id}/promote/{other_user.id}", headers=user_headers)

        assert response.status_code == 200
        roles = {m["userId"]: m["role"] for m in (await client.get(f"/api/teams/{team.id}/members")).json()}
        assert roles == {user.id: "MEMBER", other_user.id: "LEADER"}

    @pytest.mark.asyncio
    async def test_invite_by_username(self, client, user, other_user, user_headers):
        team = await create_team(user)

        response = await client.post(
            f"/api/teams/{team.id}/invite",
            headers=user_headers,
            json={"username": other_user.username},
        )

        assert response.status_code == 200
        async with async_session_factory() as session:
            notice = await session.scalar(select(Notification).where(Notification.user_id == other_user.id))
        assert notice.title == "Team Invitation"
        assert notice.meta == {"teamId": team.id, "invitedBy": user.id}

    @pytest.mark.asyncio
    async def test_delete_releases_members(self, client, user, other_user, user_headers, other_headers):
        team = await create_team(user, members=[other_user])

        response = await client.delete(f"/api/teams/{team.id}", headers=user_headers)

        assert response.status_code == 200
        # both players are free to found new teams
        assert (await client.post("/api/teams", headers=user_headers, json={"name": "Phoenix"})).status_code == 201
        assert (await client.post("/api/teams", headers=other_headers, json={"name": "Raptors"})).status_code == 201

    @pytest.mark.asyncio
    async def test_upload_logo(self, client, user, user_headers):
        team = await create_team(user)

        response = await client.post(
            f"/api/images/team/{team.id}/logo",
            headers=user_headers,
            files={"logo": ("logo.webp", b"RIFF0000WEBP", "image/webp")},
        )

        assert response.status_code == 200
        assert response.json()["avatar"].endswith(".webp")
