"""Create the users table.

Revision ID: 001_create_users
Revises:
Create Date: 2026-10-19

Accounts for email/password and OAuth sign-in, the current refresh-token
hash, and the outstanding password reset token.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "001_create_users"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # pgcrypto provides gen_random_uuid() on PostgreSQL < 13
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")

    op.create_table(
        "users",
        sa.Column(
            "id",
            sa.UUID(),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=True),
        sa.Column("first_name", sa.String(100), nullable=False, server_default=""),
        sa.Column("last_name", sa.String(100), nullable=False, server_default=""),
        sa.Column("role", sa.String(20), nullable=False, server_default="user"),
        sa.Column("provider", sa.String(20), nullable=False, server_default="email"),
        sa.Column("provider_id", sa.String(255), nullable=True),
        sa.Column("refresh_token_hash", sa.String(255), nullable=True),
        sa.Column("reset_password_token", sa.String(64), nullable=True),
        sa.Column(
            "reset_password_expires", sa.DateTime(timezone=True), nullable=True
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("email", name="users_email_key"),
        sa.CheckConstraint("role IN ('admin', 'user')", name="ck_users_role"),
        sa.CheckConstraint(
            "provider IN ('email', 'google', 'github')",
            name="ck_users_provider",
        ),
    )
    op.create_index(
        "ix_users_reset_password_token", "users", ["reset_password_token"]
    )


def downgrade() -> None:
    op.drop_index("ix_users_reset_password_token", table_name="users")
    op.drop_table("users")
