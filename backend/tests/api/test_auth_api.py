"""Authentication endpoint tests."""

import pytest

from crackzone.models import User
from crackzone.utils.cache import refresh_key, reset_key
from crackzone.utils.db import async_session_factory

from factories import DEFAULT_PASSWORD, auth_headers, create_user, make_register_data


class TestRegister:
    """POST /api/auth/register"""

    @pytest.mark.asyncio
    async def test_register_success(self, client, email_service):
        data = make_register_data()

        response = await client.post("/api/auth/register", json=data)

        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "User registered successfully"
        assert body["accessToken"]
        assert body["refreshToken"]
        assert body["user"]["email"] == data["email"]
        assert body["user"]["username"] == data["username"]
        assert body["user"]["firstName"] == "Test"
        assert body["user"]["role"] == "USER"
        assert body["user"]["isVerified"] is False
        assert body["user"]["coins"] == 0
        assert "passwordHash" not in body["user"]
        assert email_service.last("verification")["to"] == data["email"]

    @pytest.mark.asyncio
    async def test_register_normalizes_email(self, client):
        data = make_register_data(email="Mixed.Case@Example.com")

        response = await client.post("/api/auth/register", json=data)

        assert response.status_code == 201
        assert response.json()["user"]["email"] == "mixed.case@example.com"

    @pytest.mark.asyncio
    async def test_register_duplicate_email(self, client, user):
        response = await client.post("/api/auth/register", json=make_register_data(email=user.email))

        assert response.status_code == 409
        body = response.json()
        assert body["error"]["code"] == "ALREADY_EXISTS"
        assert body["message"] == "Email already registered"

    @pytest.mark.asyncio
    async def test_register_duplicate_username(self, client, user):
        response = await client.post("/api/auth/register", json=make_register_data(username=user.username))

        assert response.status_code == 409
        assert response.json()["message"] == "Username already taken"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "password",
        ["short1!", "alllowercase1!", "ALLUPPERCASE1!", "NoDigitsHere!", "NoSpecial123"],
    )
    async def test_register_rejects_weak_password(self, client, password):
        response = await client.post("/api/auth/register", json=make_register_data(password=password))

        assert response.status_code == 400
        body = response.json()
        assert body["error"]["code"] == "VALIDATION_ERROR"
        assert body["error"]["details"]["errors"][0]["field"] == "password"

    @pytest.mark.asyncio
    async def test_register_rejects_bad_username(self, client):
        response = await client.post("/api/auth/register", json=make_register_data(username="bad name!"))

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"


class TestLogin:
    """POST /api/auth/login"""

    @pytest.mark.asyncio
    async def test_login_success(self, client, user):
        response = await client.post(
            "/api/auth/login",
            json={"email": user.email, "password": DEFAULT_PASSWORD},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Login successful"
        assert body["user"]["id"] == user.id
        assert body["user"]["lastLogin"] is not None
        assert body["accessToken"]

    @pytest.mark.asyncio
    async def test_login_wrong_password(self, client, user):
        response = await client.post(
            "/api/auth/login",
            json={"email": user.email, "password": "Wrong!Pass1"},
        )

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "AUTH_INVALID_CREDENTIALS"

    @pytest.mark.asyncio
    async def test_login_unknown_email(self, client):
        response = await client.post(
            "/api/auth/login",
            json={"email": "nobody@example.com", "password": DEFAULT_PASSWORD},
        )

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "AUTH_INVALID_CREDENTIALS"

    @pytest.mark.asyncio
    async def test_login_inactive_account(self, client):
        inactive = await create_user(is_active=False)

        response = await client.post(
            "/api/auth/login",
            json={"email": inactive.email, "password": DEFAULT_PASSWORD},
        )

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "AUTH_ACCOUNT_INACTIVE"


class TestCurrentUser:
    """GET /api/auth/me"""

    @pytest.mark.asyncio
    async def test_me_requires_token(self, client):
        response = await client.get("/api/auth/me")

        assert response.status_code == 401
        body = response.json()
        assert body["error"]["code"] == "AUTH_REQUIRED"
        assert body["message"] == "Access token required"

    @pytest.mark.asyncio
    async def test_me_rejects_garbage_token(self, client):
        response = await client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_me_returns_profile(self, client, user, user_headers):
        response = await client.get("/api/auth/me", headers=user_headers)

        assert response.status_code == 200
        body = response.json()["user"]
        assert body["id"] == user.id
        assert body["profile"] is not None


class TestRefreshToken:
    """POST /api/auth/refresh-token"""

    @pytest.mark.asyncio
    async def test_refresh_rotates_token(self, client, user):
        login = await client.post("/api/auth/login", json={"email": user.email, "password": DEFAULT_PASSWORD})
        old_refresh = login.json()["refreshToken"]

        response = await client.post("/api/auth/refresh-token", json={"refreshToken": old_refresh})

        assert response.status_code == 200
        new_refresh = response.json()["refreshToken"]
        assert new_refresh != old_refresh

        replay = await client.post("/api/auth/refresh-token", json={"refreshToken": old_refresh})
        assert replay.status_code == 401
        assert replay.json()["error"]["code"] == "AUTH_INVALID_TOKEN"

    @pytest.mark.asyncio
    async def test_refresh_rejects_access_token(self, client, user):
        response = await client.post(
            "/api/auth/refresh-token",
            json={"refreshToken": auth_headers(user)["Authorization"].split()[1]},
        )

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_logout_revokes_refresh_token(self, client, user, cache):
        login = await client.post("/api/auth/login", json={"email": user.email, "password": DEFAULT_PASSWORD})
        tokens = login.json()

        response = await client.post(
            "/api/auth/logout",
            headers={"Authorization": f"Bearer {tokens['accessToken']}"},
        )

        assert response.status_code == 200
        assert await cache.get(refresh_key(user.id)) is None
        replay = await client.post("/api/auth/refresh-token", json={"refreshToken": tokens["refreshToken"]})
        assert replay.status_code == 401


class TestEmailVerification:
    @pytest.mark.asyncio
    async def test_verify_with_emailed_code(self, client, email_service):
        register = await client.post("/api/auth/register", json=make_register_data())
        code = email_service.last("verification")["data"]["code"]

        response = await client.post("/api/auth/verify-email", json={"token": code})

        assert response.status_code == 200
        body = response.json()
        assert body["user"]["id"] == register.json()["user"]["id"]
        assert body["user"]["isVerified"] is True
        assert email_service.last("welcome")["to"] == body["user"]["email"]

    @pytest.mark.asyncio
    async def test_verify_with_unknown_code(self, client):
        response = await client.post("/api/auth/verify-email", json={"token": "000000"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "AUTH_INVALID_CODE"

    @pytest.mark.asyncio
    async def test_resend_for_verified_user(self, client, user):
        response = await client.post("/api/auth/resend-verification", json={"email": user.email})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "AUTH_ALREADY_VERIFIED"


class TestPasswordReset:
    @pytest.mark.asyncio
    async def test_forgot_password_unknown_email_is_silent(self, client, email_service):
        response = await client.post("/api/auth/forgot-password", json={"email": "ghost@example.com"})

        assert response.status_code == 200
        assert email_service.sent == []

    @pytest.mark.asyncio
    async def test_reset_flow(self, client, user, email_service, cache):
        response = await client.post("/api/auth/forgot-password", json={"email": user.email})
        assert response.status_code == 200

        reset_url = email_service.last("password-reset")["data"]["reset_url"]
        token = reset_url.split("token=")[1]

        response = await client.post(
            "/api/auth/reset-password",
            json={"token": token, "password": "N3w!Password"},
        )
        assert response.status_code == 200
        assert await cache.get(reset_key(token)) is None

        login = await client.post("/api/auth/login", json={"email": user.email, "password": "N3w!Password"})
        assert login.status_code == 200

    @pytest.mark.asyncio
    async def test_reset_with_invalid_token(self, client):
        response = await client.post(
            "/api/auth/reset-password",
            json={"token": "nope", "password": "N3w!Password"},
        )

        assert response.status_code == 400


class TestChangePassword:
    @pytest.mark.asyncio
    async def test_change_password(self, client, user, user_headers):
        response = await client.post(
            "/api/auth/change-password",
            headers=user_headers,
            json={"currentPassword": DEFAULT_PASSWORD, "newPassword": "Chang3d!Pass"},
        )

        assert response.status_code == 200
        async with async_session_factory() as session:
            stored = await session.get(User, user.id)
        assert stored.password_hash != user.password_hash

    @pytest.mark.asyncio
    async def test_change_password_wrong_current(self, client, user_headers):
        response = await client.post(
            "/api/auth/change-password",
            headers=user_headers,
            json={"currentPassword": "Wrong!Pass1", "newPassword": "Chang3d!Pass"},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "AUTH_WRONG_PASSWORD"
