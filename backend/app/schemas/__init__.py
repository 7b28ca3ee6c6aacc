"""Pydantic request/response schemas for API endpoints."""

from app.schemas.user import (
    AccessTokenResponse,
    AdminUserUpdateRequest,
    AuthResponse,
    MessageResponse,
    ProfileUpdateRequest,
    UserResponse,
)

__all__ = [
    "AccessTokenResponse",
    "AdminUserUpdateRequest",
    "AuthResponse",
    "MessageResponse",
    "ProfileUpdateRequest",
    "UserResponse",
]
