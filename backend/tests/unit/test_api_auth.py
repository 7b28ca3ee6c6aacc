"""Tests for /api/v1/auth endpoints and the current-user dependency.

The app runs against the in-memory store (see unit/conftest.py). Refresh
cookies are read from Set-Cookie and sent back by hand.
"""

import uuid
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import jwt
import pytest

from app.core.config import settings
from tests.conftest import TEST_ACCESS_SECRET, TEST_PASSWORD
from tests.unit.conftest import refresh_cookie_header

_REGISTER_URL = "/api/v1/auth/register"
_LOGIN_URL = "/api/v1/auth/login"
_REFRESH_URL = "/api/v1/auth/refresh"
_LOGOUT_URL = "/api/v1/auth/logout"
_FORGOT_URL = "/api/v1/auth/forgot-password"
_RESET_URL = "/api/v1/auth/reset-password"
_ME_URL = "/api/v1/auth/me"

_EMAIL = "sam@example.com"
_NEW_PASSWORD = "Brand-new-pass-5"  # nosec B105
_FORGOT_MSG = "If the email exists, a reset link has been sent"


def _register_body(email: str = _EMAIL, password: str = TEST_PASSWORD) -> dict:
    return {
        "email": email,
        "password": password,
        "first_name": "Sam",
        "last_name": "Lee",
    }


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _set_cookie_header(response, name: str) -> str:
    return next(
        h for h in response.headers.get_list("set-cookie") if h.startswith(f"{name}=")
    )


@pytest.fixture
def mock_reset_email(monkeypatch) -> AsyncMock:
    """Replace the Resend sender scheduled by the background notifier."""
    mock = AsyncMock()
    monkeypatch.setattr("app.api.deps.send_password_reset_email", mock)
    return mock


# ===================================================================
# POST /auth/register
# ===================================================================


class TestRegister:
    """Tests for POST /auth/register."""

    async def test_returns_201_with_user_and_access_token(self, client):
        response = await client.post(_REGISTER_URL, json=_register_body())
        assert response.status_code == 201
        data = response.json()["data"]
        assert data["access_token"]
        assert data["token_type"] == "bearer"
        assert data["user"]["email"] == _EMAIL
        assert data["user"]["role"] == "user"
        assert data["user"]["provider"] == "email"

    async def test_body_never_contains_secrets(self, client):
        response = await client.post(_REGISTER_URL, json=_register_body())
        body = response.text
        assert "password_hash" not in body
        assert "refresh_token_hash" not in body
        assert "refresh_token\"" not in body

    async def test_sets_refresh_cookie_attributes(self, client):
        response = await client.post(_REGISTER_URL, json=_register_body())
        header = _set_cookie_header(response, settings.refresh_cookie_name).lower()
        assert "httponly" in header
        assert "samesite=strict" in header
        assert "path=/api/v1/auth" in header
        assert "max-age=604800" in header
        assert "secure" in header

    async def test_duplicate_email_returns_409(self, client):
        await client.post(_REGISTER_URL, json=_register_body())
        response = await client.post(_REGISTER_URL, json=_register_body())
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "EMAIL_ALREADY_EXISTS"

    async def test_weak_password_returns_400(self, client):
        response = await client.post(
            _REGISTER_URL, json=_register_body(password="password")
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    async def test_invalid_email_returns_400(self, client):
        response = await client.post(
            _REGISTER_URL, json=_register_body(email="not-an-email")
        )
        assert response.status_code == 400

    async def test_role_cannot_be_supplied(self, client):
        """extra="forbid" rejects privilege escalation attempts."""
        body = {**_register_body(), "role": "admin"}
        response = await client.post(_REGISTER_URL, json=body)
        assert response.status_code == 400


# ===================================================================
# POST /auth/login
# ===================================================================


class TestLogin:
    """Tests for POST /auth/login."""

    async def test_returns_user_and_new_access_token(self, client):
        registered = await client.post(_REGISTER_URL, json=_register_body())
        response = await client.post(
            _LOGIN_URL, json={"email": _EMAIL, "password": TEST_PASSWORD}
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["user"]["email"] == _EMAIL
        assert data["access_token"] != registered.json()["data"]["access_token"]
        assert response.cookies.get(settings.refresh_cookie_name)

    async def test_wrong_password_and_unknown_email_look_the_same(self, client):
        await client.post(_REGISTER_URL, json=_register_body())

        wrong = await client.post(
            _LOGIN_URL, json={"email": _EMAIL, "password": "Wrong-pass-1"}
        )
        unknown = await client.post(
            _LOGIN_URL, json={"email": "ghost@example.com", "password": "Wrong-pass-1"}
        )

        assert wrong.status_code == unknown.status_code == 401
        assert wrong.json() == unknown.json()
        assert wrong.json()["error"]["message"] == "Invalid credentials"

    async def test_deactivated_account_returns_401(self, client, store):
        registered = await client.post(_REGISTER_URL, json=_register_body())
        user_id = uuid.UUID(registered.json()["data"]["user"]["id"])
        store.users[user_id].is_active = False

        response = await client.post(
            _LOGIN_URL, json={"email": _EMAIL, "password": TEST_PASSWORD}
        )

        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Account is deactivated"


# ===================================================================
# POST /auth/refresh
# ===================================================================


class TestRefresh:
    """Tests for POST /auth/refresh."""

    async def test_rotates_cookie_and_returns_access_token(self, client):
        registered = await client.post(_REGISTER_URL, json=_register_body())
        old_refresh = registered.cookies[settings.refresh_cookie_name]

        response = await client.post(
            _REFRESH_URL, headers=refresh_cookie_header(old_refresh)
        )

        assert response.status_code == 200
        assert response.json()["data"]["access_token"]
        new_refresh = response.cookies[settings.refresh_cookie_name]
        assert new_refresh != old_refresh

    async def test_missing_cookie_returns_401(self, client):
        response = await client.post(_REFRESH_URL)
        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Invalid refresh token"

    async def test_replayed_cookie_returns_401(self, client):
        registered = await client.post(_REGISTER_URL, json=_register_body())
        old_refresh = registered.cookies[settings.refresh_cookie_name]
        await client.post(_REFRESH_URL, headers=refresh_cookie_header(old_refresh))

        replay = await client.post(
            _REFRESH_URL, headers=refresh_cookie_header(old_refresh)
        )

        assert replay.status_code == 401


# ===================================================================
# POST /auth/logout
# ===================================================================


class TestLogout:
    """Tests for POST /auth/logout."""

    async def test_requires_bearer_token(self, client):
        response = await client.post(_LOGOUT_URL)
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHORIZED"

    async def test_clears_cookie_and_revokes_refresh(self, client):
        registered = await client.post(_REGISTER_URL, json=_register_body())
        access = registered.json()["data"]["access_token"]
        refresh = registered.cookies[settings.refresh_cookie_name]

        response = await client.post(_LOGOUT_URL, headers=_bearer(access))

        assert response.status_code == 200
        header = _set_cookie_header(response, settings.refresh_cookie_name)
        assert "Max-Age=0" in header or "max-age=0" in header.lower()
        after = await client.post(_REFRESH_URL, headers=refresh_cookie_header(refresh))
        assert after.status_code == 401

    async def test_logout_twice_succeeds(self, client):
        registered = await client.post(_REGISTER_URL, json=_register_body())
        access = registered.json()["data"]["access_token"]

        first = await client.post(_LOGOUT_URL, headers=_bearer(access))
        second = await client.post(_LOGOUT_URL, headers=_bearer(access))

        assert first.status_code == second.status_code == 200


# ===================================================================
# Password reset
# ===================================================================


class TestForgotPassword:
    """Tests for POST /auth/forgot-password."""

    async def test_known_and_unknown_email_get_same_response(
        self, client, mock_reset_email
    ):
        await client.post(_REGISTER_URL, json=_register_body())

        known = await client.post(_FORGOT_URL, json={"email": _EMAIL})
        unknown = await client.post(_FORGOT_URL, json={"email": "ghost@example.com"})

        assert known.status_code == unknown.status_code == 200
        assert known.json() == unknown.json()
        assert known.json()["data"]["message"] == _FORGOT_MSG
        assert mock_reset_email.await_count == 1

    async def test_email_carries_plain_token(self, client, mock_reset_email):
        await client.post(_REGISTER_URL, json=_register_body())
        await client.post(_FORGOT_URL, json={"email": _EMAIL})

        kwargs = mock_reset_email.call_args.kwargs
        assert kwargs["to_email"] == _EMAIL
        assert len(kwargs["token"]) == 64


class TestResetPassword:
    """Tests for POST /auth/reset-password."""

    async def test_full_reset_flow(self, client, mock_reset_email):
        await client.post(_REGISTER_URL, json=_register_body())
        await client.post(_FORGOT_URL, json={"email": _EMAIL})
        token = mock_reset_email.call_args.kwargs["token"]

        response = await client.post(
            _RESET_URL, json={"token": token, "new_password": _NEW_PASSWORD}
        )

        assert response.status_code == 200
        assert response.json()["data"]["message"] == "Password reset successfully"
        login = await client.post(
            _LOGIN_URL, json={"email": _EMAIL, "password": _NEW_PASSWORD}
        )
        assert login.status_code == 200

    async def test_invalid_token_returns_400(self, client):
        response = await client.post(
            _RESET_URL, json={"token": "0" * 64, "new_password": _NEW_PASSWORD}
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_RESET_TOKEN"


# ===================================================================
# GET /auth/me and the Bearer dependency
# ===================================================================


class TestCurrentUser:
    """Tests for GET /auth/me (exercises get_current_user)."""

    async def test_returns_user_for_valid_token(self, client):
        registered = await client.post(_REGISTER_URL, json=_register_body())
        access = registered.json()["data"]["access_token"]

        response = await client.get(_ME_URL, headers=_bearer(access))

        assert response.status_code == 200
        assert response.json()["data"]["email"] == _EMAIL

    async def test_missing_header_returns_401(self, client):
        response = await client.get(_ME_URL)
        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Authentication required"

    async def test_refresh_token_is_not_an_access_token(self, client):
        registered = await client.post(_REGISTER_URL, json=_register_body())
        refresh = registered.cookies[settings.refresh_cookie_name]

        response = await client.get(_ME_URL, headers=_bearer(refresh))

        assert response.status_code == 401

    async def test_expired_token_returns_401(self, client, member_user):
        now = datetime.now(UTC)
        token = jwt.encode(
            {
                "sub": str(member_user.id),
                "email": member_user.email,
                "role": "user",
                "typ": "access",
                "jti": "x",
                "iss": settings.jwt_issuer,
                "aud": settings.jwt_audience,
                "iat": now - timedelta(hours=1),
                "exp": now - timedelta(seconds=1),
            },
            TEST_ACCESS_SECRET,
            algorithm="HS256",
        )
        response = await client.get(_ME_URL, headers=_bearer(token))
        assert response.status_code == 401

    async def test_deactivated_user_token_returns_401(
        self, client, store, member_user, member_headers
    ):
        store.users[member_user.id].is_active = False
        response = await client.get(_ME_URL, headers=member_headers)
        assert response.status_code == 401

    async def test_deleted_user_token_returns_401(
        self, client, store, member_user, member_headers
    ):
        await store.delete(member_user.id)
        response = await client.get(_ME_URL, headers=member_headers)
        assert response.status_code == 401


# ===================================================================
# End-to-end scenario
# ===================================================================


class TestTokenLifecycleOverHttp:
    """register → login → refresh → replay."""

    async def test_scenario(self, client):
        registered = await client.post(_REGISTER_URL, json=_register_body())
        assert registered.status_code == 201
        reg_access = registered.json()["data"]["access_token"]
        assert registered.json()["data"]["user"]["role"] == "user"

        login = await client.post(
            _LOGIN_URL, json={"email": _EMAIL, "password": TEST_PASSWORD}
        )
        login_access = login.json()["data"]["access_token"]
        login_refresh = login.cookies[settings.refresh_cookie_name]
        assert login_access != reg_access

        refreshed = await client.post(
            _REFRESH_URL, headers=refresh_cookie_header(login_refresh)
        )
        assert refreshed.status_code == 200
        assert refreshed.json()["data"]["access_token"] != login_access
        assert refreshed.cookies[settings.refresh_cookie_name] != login_refresh

        replay = await client.post(
            _REFRESH_URL, headers=refresh_cookie_header(login_refresh)
        )
        assert replay.status_code == 401
