"""Authentication endpoints for email + password accounts.

register, login, refresh, logout, forgot-password, reset-password, me.

Security considerations:
- login: one "Invalid credentials" message for unknown email, OAuth-only
  account and wrong password, with a timing-equalizing bcrypt check
- refresh: the refresh token is read from the httpOnly cookie only and is
  rotated on every use
- forgot-password: identical response whether or not the email exists
- reset-password: single-use token, signs out every session
"""

from fastapi import APIRouter, Request, Response
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.api.deps import AuthServiceDep, CurrentUser, DbSession
from app.core.cookies import clear_refresh_cookie, read_refresh_cookie, set_refresh_cookie
from app.core.rate_limiting import limiter
from app.core.responses import DataResponse
from app.schemas.user import (
    AccessTokenResponse,
    AuthResponse,
    MessageResponse,
    UserResponse,
)

# Long enough for any strength-valid password; strength rules run in the service
_PASSWORD_MAX_LENGTH = 128
_NAME_MAX_LENGTH = 100

_FORGOT_PASSWORD_MSG = "If the email exists, a reset link has been sent"

router = APIRouter()


# ===================================================================
# Request models
# ===================================================================


class RegisterRequest(BaseModel):
    """Request body for POST /auth/register."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    password: str = Field(min_length=1, max_length=_PASSWORD_MAX_LENGTH)
    first_name: str = Field(default="", max_length=_NAME_MAX_LENGTH)
    last_name: str = Field(default="", max_length=_NAME_MAX_LENGTH)


class LoginRequest(BaseModel):
    """Request body for POST /auth/login."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    password: str = Field(min_length=1, max_length=_PASSWORD_MAX_LENGTH)


class ForgotPasswordRequest(BaseModel):
    """Request body for POST /auth/forgot-password."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr


class ResetPasswordRequest(BaseModel):
    """Request body for POST /auth/reset-password."""

    model_config = ConfigDict(extra="forbid")

    token: str = Field(min_length=1, max_length=128)
    new_password: str = Field(min_length=1, max_length=_PASSWORD_MAX_LENGTH)


# ===================================================================
# POST /auth/register
# ===================================================================


@router.post("/register", status_code=201)
@limiter.limit("3/hour")
async def register(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: RegisterRequest,
    response: Response,
    service: AuthServiceDep,
    db: DbSession,
) -> DataResponse[AuthResponse]:
    """Create an account and sign it in.

    Rate limit: 3 per hour per IP.
    """
    result = await service.register(
        email=body.email,
        password=body.password,
        first_name=body.first_name.strip(),
        last_name=body.last_name.strip(),
    )
    await db.commit()

    set_refresh_cookie(response, result.refresh_token)
    return DataResponse(
        data=AuthResponse(
            user=UserResponse.from_user(result.user),
            access_token=result.access_token,
        )
    )


# ===================================================================
# POST /auth/login
# ===================================================================


@router.post("/login")
@limiter.limit("5/15minute")
async def login(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: LoginRequest,
    response: Response,
    service: AuthServiceDep,
    db: DbSession,
) -> DataResponse[AuthResponse]:
    """Verify email + password, issue a pair and set the refresh cookie.

    Rate limit: 5 per 15 minutes per IP.
    """
    result = await service.login(email=body.email, password=body.password)
    await db.commit()

    set_refresh_cookie(response, result.refresh_token)
    return DataResponse(
        data=AuthResponse(
            user=UserResponse.from_user(result.user),
            access_token=result.access_token,
        )
    )


# ===================================================================
# POST /auth/refresh
# ===================================================================


@router.post("/refresh")
@limiter.limit("30/hour")
async def refresh(
    request: Request,
    response: Response,
    service: AuthServiceDep,
    db: DbSession,
) -> DataResponse[AccessTokenResponse]:
    """Rotate the refresh cookie and return a new access token.

    A successful call retires the presented refresh token; only the one in
    the new cookie can be used next. A rejected call leaves the stored
    token unchanged.

    Rate limit: 30 per hour.
    """
    pair = await service.refresh_tokens(read_refresh_cookie(request))
    await db.commit()

    set_refresh_cookie(response, pair.refresh_token)
    return DataResponse(data=AccessTokenResponse(access_token=pair.access_token))


# ===================================================================
# POST /auth/logout
# ===================================================================


@router.post("/logout")
async def logout(
    response: Response,
    user: CurrentUser,
    service: AuthServiceDep,
    db: DbSession,
) -> DataResponse[MessageResponse]:
    """Forget the stored refresh token and clear the cookie. Idempotent."""
    await service.logout(user.id)
    await db.commit()

    clear_refresh_cookie(response)
    return DataResponse(data=MessageResponse(message="Logged out successfully"))


# ===================================================================
# POST /auth/forgot-password
# ===================================================================


@router.post("/forgot-password")
@limiter.limit("3/hour")
async def forgot_password(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: ForgotPasswordRequest,
    service: AuthServiceDep,
    db: DbSession,
) -> DataResponse[MessageResponse]:
    """Email a reset link if the address belongs to an account.

    Always returns the same message (anti-enumeration). The email itself
    is sent as a background task after the response.

    Rate limit: 3 per hour per IP.
    """
    await service.forgot_password(body.email)
    await db.commit()
    return DataResponse(data=MessageResponse(message=_FORGOT_PASSWORD_MSG))


# ===================================================================
# POST /auth/reset-password
# ===================================================================


@router.post("/reset-password")
@limiter.limit("5/hour")
async def reset_password(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: ResetPasswordRequest,
    service: AuthServiceDep,
    db: DbSession,
) -> DataResponse[MessageResponse]:
    """Consume a reset token and set a new password.

    Rate limit: 5 per hour per IP.
    """
    await service.reset_password(token=body.token, new_password=body.new_password)
    await db.commit()
    return DataResponse(data=MessageResponse(message="Password reset successfully"))


# ===================================================================
# GET /auth/me
# ===================================================================


@router.get("/me")
async def me(user: CurrentUser) -> DataResponse[UserResponse]:
    """Return the user behind the Bearer access token."""
    return DataResponse(data=UserResponse.from_user(user))
