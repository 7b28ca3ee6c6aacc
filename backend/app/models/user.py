"""User model - the only persisted entity of the service.

Holds identity, credentials (password hash, refresh-token hash, reset token)
and authorization data (role, active flag) for one account.
"""

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, CheckConstraint, String, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TimestampMixin

_DEFAULT_UUID = text("gen_random_uuid()")


class UserRole(str, Enum):
    """Authorization role carried in every token."""

    ADMIN = "admin"
    USER = "user"


class AuthProvider(str, Enum):
    """How the account was created / signs in."""

    EMAIL = "email"
    GOOGLE = "google"
    GITHUB = "github"


class User(Base, TimestampMixin):
    """User account for authentication.

    Attributes:
        id: UUID primary key.
        email: Unique email address, stored lowercase.
        password_hash: bcrypt hash. NULL or empty for OAuth-only users.
        first_name: Given name.
        last_name: Family name.
        role: "admin" or "user".
        provider: "email", "google" or "github".
        provider_id: Account id at the OAuth provider.
        refresh_token_hash: bcrypt hash of the current refresh token digest.
            NULL when signed out.
        reset_password_token: SHA-256 digest of the outstanding reset token.
        reset_password_expires: Expiry of the outstanding reset token.
        is_active: Deactivated users cannot sign in or refresh.
        created_at: Account creation timestamp (from TimestampMixin).
        updated_at: Last modification timestamp (from TimestampMixin).
    """

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("role IN ('admin', 'user')", name="role"),
        CheckConstraint(
            "provider IN ('email', 'google', 'github')",
            name="provider",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=_DEFAULT_UUID,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
    )
    password_hash: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    first_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        server_default="",
    )
    last_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        server_default="",
    )
    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        server_default=UserRole.USER.value,
        default=UserRole.USER.value,
    )
    provider: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        server_default=AuthProvider.EMAIL.value,
        default=AuthProvider.EMAIL.value,
    )
    provider_id: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    refresh_token_hash: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    reset_password_token: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        index=True,
    )
    reset_password_expires: Mapped[datetime | None] = mapped_column(
        nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        server_default=text("true"),
        default=True,
    )

    @property
    def has_password(self) -> bool:
        """False for OAuth-only accounts (NULL or empty hash)."""
        return bool(self.password_hash)
