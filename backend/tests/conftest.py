import socket
from collections.abc import AsyncGenerator, Iterator
from datetime import timedelta

import pytest
import pytest_asyncio
from pydantic import SecretStr
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.core.config import settings
from app.core.passwords import PasswordHasher
from app.core.tokens import TokenConfig, TokenIssuer
from app.models.base import Base
from app.services.auth_service import AuthService
from tests.fakes import InMemoryUserStore, RecordingNotifier

# Use separate test database
TEST_DATABASE_URL = settings.database_url.replace(
    settings.database_name, f"{settings.database_name}_test"
)

# Security: test-only secrets. Production reads them from the environment.
TEST_ACCESS_SECRET = "test-access-secret-that-is-at-least-32-chars"  # nosec B105  # gitleaks:allow
TEST_REFRESH_SECRET = "test-refresh-secret-that-is-at-least-32-chars"  # nosec B105  # gitleaks:allow

# bcrypt minimum cost keeps the suite fast
TEST_BCRYPT_ROUNDS = 4

# Satisfies the strength rules: letter, digit, special character
TEST_PASSWORD = "Correct-horse-42"  # nosec B105


def _is_postgres_available() -> bool:
    """Check if PostgreSQL is accepting connections.

    Returns:
        True if PostgreSQL is reachable on port 5432, False otherwise.
    """
    try:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.settimeout(1)
        result = sock.connect_ex(("127.0.0.1", 5432))
        sock.close()
        return result == 0
    except OSError:
        return False


# Check once at module load time
_POSTGRES_AVAILABLE = _is_postgres_available()


def skip_if_no_postgres() -> None:
    """Skip test if PostgreSQL is not available.

    Called by fixtures that require database connection.
    """
    if not _POSTGRES_AVAILABLE:
        pytest.skip(
            "PostgreSQL not available on port 5432. "
            "Start database with: docker compose up -d"
        )


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create test database engine.

    Skips test if PostgreSQL is not available (e.g., Docker not running).
    """
    skip_if_no_postgres()

    engine = create_async_engine(TEST_DATABASE_URL, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session
        await session.rollback()


# =============================================================================
# Auth core fixtures (no database)
# =============================================================================


@pytest.fixture
def token_config() -> TokenConfig:
    return TokenConfig(
        access_secret=TEST_ACCESS_SECRET,
        refresh_secret=TEST_REFRESH_SECRET,
    )


@pytest.fixture
def token_issuer(token_config: TokenConfig) -> TokenIssuer:
    return TokenIssuer(token_config)


@pytest.fixture
def hasher() -> PasswordHasher:
    return PasswordHasher(rounds=TEST_BCRYPT_ROUNDS)


@pytest.fixture
def store() -> InMemoryUserStore:
    return InMemoryUserStore()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def auth_service(
    store: InMemoryUserStore,
    hasher: PasswordHasher,
    token_issuer: TokenIssuer,
    notifier: RecordingNotifier,
) -> AuthService:
    """AuthService over the in-memory store with a 15 minute reset TTL."""
    return AuthService(
        store=store,
        hasher=hasher,
        tokens=token_issuer,
        notifier=notifier,
        reset_token_ttl=timedelta(minutes=15),
    )


# =============================================================================
# Autouse Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def jwt_test_secrets() -> Iterator[None]:
    """Configure signing secrets on the global settings for each test.

    Yields:
        None (autouse fixture).
    """
    original_access = settings.jwt_access_secret
    original_refresh = settings.jwt_refresh_secret
    settings.jwt_access_secret = SecretStr(TEST_ACCESS_SECRET)
    settings.jwt_refresh_secret = SecretStr(TEST_REFRESH_SECRET)

    yield

    settings.jwt_access_secret = original_access
    settings.jwt_refresh_secret = original_refresh


@pytest.fixture(autouse=True)
def disable_rate_limiting() -> Iterator[None]:
    """Disable rate limiting during tests.

    Rate limiting is tested separately; disable for other tests to avoid
    flaky failures from rate limit triggers.

    Yields:
        None (autouse fixture).
    """
    from app.core.rate_limiting import limiter

    original_enabled = limiter.enabled
    limiter.enabled = False

    yield

    limiter.enabled = original_enabled
