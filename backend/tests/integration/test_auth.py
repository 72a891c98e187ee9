"""Integration tests for authentication endpoints."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession

from infrastructure.config.settings import settings
from infrastructure.database.models.user import User

pytestmark = pytest.mark.asyncio

TEST_PASSWORD = "TestPassword123"


def token_issued_at(user: User, issued_at: datetime) -> str:
    """Access token with a chosen issue time."""
    payload = {
        "sub": user.id,
        "type": "access",
        "iat": issued_at,
        "exp": datetime.now(UTC) + timedelta(minutes=30),
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


class TestRegistration:
    """Tests for user registration."""

    async def test_register_success(self, async_client: AsyncClient):
        response = await async_client.post(
            "/api/v1/auth/register",
            json={"email": "NewUser@Example.com", "password": "SecurePass123", "name": "New User"},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["email"] == "newuser@example.com"
        assert data["role"] == "user"
        assert data["tier"] == "free"
        assert "password_hash" not in data

    async def test_register_duplicate_email(self, async_client: AsyncClient, test_user: User):
        response = await async_client.post(
            "/api/v1/auth/register",
            json={"email": test_user.email, "password": "SecurePass123", "name": "Again"},
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "User already exists"

    @pytest.mark.parametrize(
        "payload",
        [
            {"email": "weak@example.com", "password": "short1A", "name": "Weak"},
            {"email": "weak@example.com", "password": "nouppercase123", "name": "Weak"},
            {"email": "not-an-email", "password": "SecurePass123", "name": "Bad"},
            {"email": "noname@example.com", "password": "SecurePass123", "name": ""},
        ],
    )
    async def test_register_validation(self, async_client: AsyncClient, payload: dict):
        response = await async_client.post("/api/v1/auth/register", json=payload)
        assert response.status_code == 422


class TestLogin:
    """Tests for logging in."""

    async def test_login_success(self, async_client: AsyncClient, test_user: User):
        response = await async_client.post(
            "/api/v1/auth/login",
            json={"email": test_user.email, "password": TEST_PASSWORD},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["expires_in"] == settings.jwt_access_token_expire_minutes * 60
        assert data["access_token"]
        assert "access_token" in response.cookies
        assert "refresh_token" in response.cookies

    async def test_login_is_case_insensitive_on_email(self, async_client: AsyncClient, test_user: User):
        response = await async_client.post(
            "/api/v1/auth/login",
            json={"email": test_user.email.upper(), "password": TEST_PASSWORD},
        )
        assert response.status_code == 200

    async def test_wrong_password(self, async_client: AsyncClient, test_user: User):
        response = await async_client.post(
            "/api/v1/auth/login",
            json={"email": test_user.email, "password": "WrongPassword123"},
        )

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid email or password"

    async def test_unknown_email(self, async_client: AsyncClient):
        response = await async_client.post(
            "/api/v1/auth/login",
            json={"email": "nobody@example.com", "password": TEST_PASSWORD},
        )
        assert response.status_code == 401

    async def test_suspended_account(
        self, async_client: AsyncClient, db_session: AsyncSession, test_user: User
    ):
        test_user.status = "suspended"
        await db_session.commit()

        response = await async_client.post(
            "/api/v1/auth/login",
            json={"email": test_user.email, "password": TEST_PASSWORD},
        )

        assert response.status_code == 403

    async def test_login_is_rate_limited(self, async_client: AsyncClient, test_user: User):
        statuses = []
        for _ in range(6):
            response = await async_client.post(
                "/api/v1/auth/login",
                json={"email": test_user.email, "password": "WrongPassword123"},
            )
            statuses.append(response.status_code)

        assert statuses[:5] == [401] * 5
        assert statuses[5] == 429


class TestSession:
    """Tests for /me, refresh and logout."""

    async def test_me(self, async_client: AsyncClient, test_user: User, auth_headers: dict):
        response = await async_client.get("/api/v1/auth/me", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["id"] == test_user.id

    async def test_me_requires_auth(self, async_client: AsyncClient):
        response = await async_client.get("/api/v1/auth/me")
        assert response.status_code == 401

    async def test_me_rejects_garbage_token(self, async_client: AsyncClient):
        response = await async_client.get(
            "/api/v1/auth/me", headers={"Authorization": "Bearer not.a.token"}
        )
        assert response.status_code == 401

    async def test_cookie_session(self, async_client: AsyncClient, test_user: User):
        await async_client.post(
            "/api/v1/auth/login",
            json={"email": test_user.email, "password": TEST_PASSWORD},
        )

        response = await async_client.get("/api/v1/auth/me")

        assert response.status_code == 200
        assert response.json()["email"] == test_user.email

    async def test_refresh_with_body_token(self, async_client: AsyncClient, test_user: User):
        login = await async_client.post(
            "/api/v1/auth/login",
            json={"email": test_user.email, "password": TEST_PASSWORD},
        )
        async_client.cookies.clear()

        response = await async_client.post(
            "/api/v1/auth/refresh",
            json={"refresh_token": login.json()["refresh_token"]},
        )

        assert response.status_code == 200
        assert response.json()["access_token"]

    async def test_refresh_rejects_access_token(self, async_client: AsyncClient, test_user: User):
        login = await async_client.post(
            "/api/v1/auth/login",
            json={"email": test_user.email, "password": TEST_PASSWORD},
        )
        async_client.cookies.clear()

        response = await async_client.post(
            "/api/v1/auth/refresh",
            json={"refresh_token": login.json()["access_token"]},
        )

        assert response.status_code == 401

    async def test_refresh_without_token(self, async_client: AsyncClient):
        response = await async_client.post("/api/v1/auth/refresh")
        assert response.status_code == 401
        assert response.json()["detail"] == "Refresh token required"

    async def test_logout_clears_cookies(self, async_client: AsyncClient, test_user: User):
        await async_client.post(
            "/api/v1/auth/login",
            json={"email": test_user.email, "password": TEST_PASSWORD},
        )

        response = await async_client.post("/api/v1/auth/logout")

        assert response.status_code == 200
        assert "access_token" not in async_client.cookies


class TestPasswordChange:
    """Changing the password revokes earlier tokens."""

    async def test_old_token_rejected_after_change(self, async_client: AsyncClient, test_user: User):
        old_token = token_issued_at(test_user, datetime.now(UTC) - timedelta(minutes=5))
        headers = {"Authorization": f"Bearer {old_token}"}

        response = await async_client.put(
            "/api/v1/users/me/password",
            headers=headers,
            json={"current_password": TEST_PASSWORD, "new_password": "BrandNewPass456"},
        )
        assert response.status_code == 200

        response = await async_client.get("/api/v1/auth/me", headers=headers)
        assert response.status_code == 401
        assert "invalidated" in response.json()["detail"]

        login = await async_client.post(
            "/api/v1/auth/login",
            json={"email": test_user.email, "password": "BrandNewPass456"},
        )
        assert login.status_code == 200

    async def test_wrong_current_password(self, async_client: AsyncClient, auth_headers: dict):
        response = await async_client.put(
            "/api/v1/users/me/password",
            headers=auth_headers,
            json={"current_password": "NotMyPassword1", "new_password": "BrandNewPass456"},
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Current password is incorrect"


class TestPasswordReset:
    """Forgot/reset password flow."""

    async def test_forgot_and_reset(
        self, async_client: AsyncClient, db_session: AsyncSession, test_user: User
    ):
        with patch(
            "api.routes.auth.email_service.send_password_reset_email",
            new_callable=AsyncMock,
            return_value=True,
        ) as send:
            response = await async_client.post(
                "/api/v1/auth/forgot-password", json={"email": test_user.email}
            )

        assert response.status_code == 202
        token = send.call_args.kwargs["reset_token"]

        response = await async_client.post(
            "/api/v1/auth/reset-password",
            json={"token": token, "new_password": "ResetPass789"},
        )
        assert response.status_code == 200

        # Single use
        response = await async_client.post(
            "/api/v1/auth/reset-password",
            json={"token": token, "new_password": "ResetPass790"},
        )
        assert response.status_code == 400

    async def test_forgot_unknown_email_looks_the_same(self, async_client: AsyncClient):
        with patch(
            "api.routes.auth.email_service.send_password_reset_email", new_callable=AsyncMock
        ) as send:
            response = await async_client.post(
                "/api/v1/auth/forgot-password", json={"email": "ghost@example.com"}
            )

        assert response.status_code == 202
        send.assert_not_awaited()

    async def test_reset_with_invalid_token(self, async_client: AsyncClient):
        response = await async_client.post(
            "/api/v1/auth/reset-password",
            json={"token": "bogus", "new_password": "ResetPass789"},
        )
        assert response.status_code == 400
