"""HTTP client fixtures for API tests.

The app runs against InMemoryUserStore through dependency_overrides, and
get_db yields an AsyncMock so router-level commits are no-ops.
"""

from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock

import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.core.config import settings
from app.core.passwords import PasswordHasher
from app.core.tokens import TokenIssuer
from app.models.user import User, UserRole
from tests.conftest import TEST_PASSWORD
from tests.fakes import InMemoryUserStore

ADMIN_EMAIL = "admin@example.com"
MEMBER_EMAIL = "member@example.com"


@pytest_asyncio.fixture
async def client(
    store: InMemoryUserStore,
    hasher: PasswordHasher,
) -> AsyncGenerator[AsyncClient, None]:
    """Unauthenticated async HTTP client over the in-memory store.

    Yields:
        AsyncClient bound to the app through ASGITransport.
    """
    from app.api.deps import get_credential_store, get_password_hasher
    from app.core.database import get_db
    from app.main import app

    async def override_get_db() -> AsyncGenerator[AsyncMock, None]:
        yield AsyncMock()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_credential_store] = lambda: store
    app.dependency_overrides[get_password_hasher] = lambda: hasher

    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        follow_redirects=False,
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


async def _make_user(
    store: InMemoryUserStore,
    hasher: PasswordHasher,
    *,
    email: str,
    role: UserRole,
) -> User:
    return await store.create(
        email=email,
        first_name="Test",
        last_name="User",
        password_hash=await hasher.hash_password(TEST_PASSWORD),
        role=role.value,
    )


@pytest_asyncio.fixture
async def admin_user(store: InMemoryUserStore, hasher: PasswordHasher) -> User:
    return await _make_user(store, hasher, email=ADMIN_EMAIL, role=UserRole.ADMIN)


@pytest_asyncio.fixture
async def member_user(store: InMemoryUserStore, hasher: PasswordHasher) -> User:
    return await _make_user(store, hasher, email=MEMBER_EMAIL, role=UserRole.USER)


@pytest_asyncio.fixture
async def admin_headers(admin_user: User, token_issuer: TokenIssuer) -> dict[str, str]:
    """Authorization header carrying a fresh access token for the admin."""
    pair = await token_issuer.issue_pair(admin_user)
    return {"Authorization": f"Bearer {pair.access_token}"}


@pytest_asyncio.fixture
async def member_headers(
    member_user: User, token_issuer: TokenIssuer
) -> dict[str, str]:
    """Authorization header carrying a fresh access token for a plain user."""
    pair = await token_issuer.issue_pair(member_user)
    return {"Authorization": f"Bearer {pair.access_token}"}


def refresh_cookie_header(token: str) -> dict[str, str]:
    """Explicit Cookie header for /auth/refresh.

    The refresh cookie is Secure, so the client jar never sends it over the
    http:// test transport; tests pass it by hand instead.
    """
    return {"Cookie": f"{settings.refresh_cookie_name}={token}"}
