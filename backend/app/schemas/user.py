"""User API request/response schemas.

The response model never carries password_hash, refresh_token_hash or the
reset token fields. Request schemas use ConfigDict(extra="forbid") so an
attempt to set an unlisted field (role via /users/me, password via the
admin endpoint) is a 400 rather than silently ignored.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.models.user import AuthProvider, User, UserRole

_NAME_MAX_LENGTH = 100


class UserResponse(BaseModel):
    """Public view of a user account."""

    id: uuid.UUID
    email: str
    first_name: str
    last_name: str
    role: UserRole
    provider: AuthProvider
    is_active: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        """Build from an ORM row."""
        return cls(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            role=UserRole(user.role),
            provider=AuthProvider(user.provider),
            is_active=user.is_active,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class AuthResponse(BaseModel):
    """Body of register/login: the user plus a new access token.

    The refresh token travels only in the httpOnly cookie.
    """

    user: UserResponse
    access_token: str
    token_type: str = "bearer"


class AccessTokenResponse(BaseModel):
    """Body of /auth/refresh."""

    access_token: str
    token_type: str = "bearer"


class MessageResponse(BaseModel):
    """Plain acknowledgement."""

    message: str


class ProfileUpdateRequest(BaseModel):
    """Request body for PATCH /users/me."""

    model_config = ConfigDict(extra="forbid")

    first_name: str | None = Field(default=None, max_length=_NAME_MAX_LENGTH)
    last_name: str | None = Field(default=None, max_length=_NAME_MAX_LENGTH)


class AdminUserUpdateRequest(BaseModel):
    """Request body for PATCH /users/{user_id}."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr | None = None
    first_name: str | None = Field(default=None, max_length=_NAME_MAX_LENGTH)
    last_name: str | None = Field(default=None, max_length=_NAME_MAX_LENGTH)
    role: UserRole | None = None
    is_active: bool | None = None
