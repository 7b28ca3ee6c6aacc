"""Shared dependencies for API endpoints.

Builds the auth core from settings (token config, bcrypt cost, credential
store, reset-email notifier) and resolves the current user from the
Authorization: Bearer access token.

Tests replace get_credential_store / get_password_hasher through
app.dependency_overrides so no database is needed.
"""

import logging
from datetime import timedelta
from typing import Annotated

import jwt
from fastapi import BackgroundTasks, Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_db
from app.core.email import send_password_reset_email
from app.core.errors import AdminRequiredError, InternalError, UnauthorizedError
from app.core.passwords import PasswordHasher
from app.core.tokens import TokenConfig, TokenIssuer
from app.models.user import User, UserRole
from app.services.auth_service import AuthService
from app.services.credential_store import SqlCredentialStore
from app.services.user_admin_service import UserAdminService, UserDirectory

logger = logging.getLogger(__name__)

# auto_error=False: a missing header must produce our 401 envelope,
# not FastAPI's 403 default.
_bearer_scheme = HTTPBearer(auto_error=False)

DbSession = Annotated[AsyncSession, Depends(get_db)]


# ===================================================================
# Auth core wiring
# ===================================================================


def get_token_config() -> TokenConfig:
    """Token secrets and lifetimes from settings.

    Raises:
        InternalError: A signing secret is not configured.
    """
    access = settings.jwt_access_secret.get_secret_value()
    refresh = settings.jwt_refresh_secret.get_secret_value()
    if not access or not refresh:
        logger.error("JWT_ACCESS_SECRET / JWT_REFRESH_SECRET not configured")
        raise InternalError("Authentication is not configured")
    return TokenConfig(
        access_secret=access,
        refresh_secret=refresh,
        access_ttl=timedelta(minutes=settings.access_token_ttl_minutes),
        refresh_ttl=timedelta(days=settings.refresh_token_ttl_days),
        issuer=settings.jwt_issuer,
        audience=settings.jwt_audience,
    )


def get_token_issuer(
    config: Annotated[TokenConfig, Depends(get_token_config)],
) -> TokenIssuer:
    return TokenIssuer(config)


def get_password_hasher() -> PasswordHasher:
    return PasswordHasher(rounds=settings.bcrypt_rounds)


def get_credential_store(db: DbSession) -> UserDirectory:
    return SqlCredentialStore(db)


TokenConfigDep = Annotated[TokenConfig, Depends(get_token_config)]
TokenIssuerDep = Annotated[TokenIssuer, Depends(get_token_issuer)]
PasswordHasherDep = Annotated[PasswordHasher, Depends(get_password_hasher)]
CredentialStoreDep = Annotated[UserDirectory, Depends(get_credential_store)]


class BackgroundResetNotifier:
    """Schedules the reset email to run after the response is sent.

    The forgot-password response then takes the same time whether or not
    an email goes out.
    """

    def __init__(self, background_tasks: BackgroundTasks) -> None:
        self._background_tasks = background_tasks

    async def send_password_reset(self, *, to_email: str, token: str) -> None:
        self._background_tasks.add_task(
            send_password_reset_email,
            to_email=to_email,
            token=token,
        )


def get_auth_service(
    store: CredentialStoreDep,
    hasher: PasswordHasherDep,
    tokens: TokenIssuerDep,
    background_tasks: BackgroundTasks,
) -> AuthService:
    return AuthService(
        store=store,
        hasher=hasher,
        tokens=tokens,
        notifier=BackgroundResetNotifier(background_tasks),
        reset_token_ttl=timedelta(minutes=settings.reset_token_ttl_minutes),
    )


def get_user_admin_service(store: CredentialStoreDep) -> UserAdminService:
    return UserAdminService(store)


AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]
UserAdminServiceDep = Annotated[UserAdminService, Depends(get_user_admin_service)]


# ===================================================================
# Current user
# ===================================================================


async def get_current_user(
    credentials: Annotated[
        HTTPAuthorizationCredentials | None, Depends(_bearer_scheme)
    ],
    tokens: TokenIssuerDep,
    store: CredentialStoreDep,
) -> User:
    """Resolve the user behind the Bearer access token.

    Validation steps:
    1. Read the token from the Authorization header
    2. Verify signature, exp, iss, aud and typ=access
    3. Load the user; it must exist and be active

    Security: the 401 message never says WHY auth failed.

    Raises:
        UnauthorizedError: Any failure.
    """
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError()

    try:
        claims = tokens.verify_access(credentials.credentials)
    except jwt.InvalidTokenError as exc:
        raise UnauthorizedError() from exc

    user = await store.get_by_id(claims.sub)
    if user is None or not user.is_active:
        raise UnauthorizedError()
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


async def require_admin(user: CurrentUser) -> User:
    """Gate an endpoint to admins.

    The role is read from the database row, not the token, so a demotion
    takes effect immediately.

    Raises:
        AdminRequiredError: Authenticated user is not an admin.
    """
    if user.role != UserRole.ADMIN.value:
        raise AdminRequiredError()
    return user


AdminUser = Annotated[User, Depends(require_admin)]
