"""Repository for User CRUD operations.

Provides database access for the users table. Every credential mutation the
auth core performs goes through one of these methods.
"""

import uuid
from datetime import UTC, datetime

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User

# Fields that may be updated via UserRepository.update().
# Security: Never add 'id', 'created_at' or 'updated_at'.
# - id: primary key, immutable
# - created_at/updated_at: server-managed timestamps
# Security: refresh_token_hash is excluded; rotation must go through
# set_refresh_token_hash() / rotate_refresh_token_hash().
_UPDATABLE_FIELDS: frozenset[str] = frozenset(
    {
        "email",
        "first_name",
        "last_name",
        "password_hash",
        "role",
        "provider",
        "provider_id",
        "reset_password_token",
        "reset_password_expires",
        "is_active",
    }
)


class UserRepository:
    """Stateless repository for User table operations.

    All methods are static, no instance state. Pass an AsyncSession
    for every call so the caller controls transaction boundaries.
    """

    @staticmethod
    async def get_by_id(db: AsyncSession, user_id: uuid.UUID) -> User | None:
        """Fetch a user by primary key.

        Args:
            db: Async database session.
            user_id: UUID primary key.

        Returns:
            User if found, None otherwise.
        """
        return await db.get(User, user_id)

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> User | None:
        """Fetch a user by email address (case-insensitive).

        Args:
            db: Async database session.
            email: Email address to look up.

        Returns:
            User if found, None otherwise.
        """
        stmt = select(User).where(User.email == email.strip().lower())
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_reset_token(db: AsyncSession, token_digest: str) -> User | None:
        """Fetch the user holding a password-reset token digest.

        Args:
            db: Async database session.
            token_digest: SHA-256 hex digest of the reset token.

        Returns:
            User if a matching token is stored, None otherwise.
        """
        stmt = select(User).where(User.reset_password_token == token_digest)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def list_users(
        db: AsyncSession,
        *,
        offset: int,
        limit: int,
        role: str | None = None,
        is_active: bool | None = None,
    ) -> tuple[list[User], int]:
        """List users ordered by creation time, with optional filters.

        Args:
            db: Async database session.
            offset: Rows to skip.
            limit: Maximum rows to return.
            role: Only users with this role.
            is_active: Only users with this active flag.

        Returns:
            (users, total) where total ignores offset/limit.
        """
        filters = []
        if role is not None:
            filters.append(User.role == role)
        if is_active is not None:
            filters.append(User.is_active == is_active)

        total = await db.scalar(select(func.count()).select_from(User).where(*filters))
        stmt = (
            select(User)
            .where(*filters)
            .order_by(User.created_at, User.id)
            .offset(offset)
            .limit(limit)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all()), total or 0

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        email: str,
        first_name: str = "",
        last_name: str = "",
        password_hash: str | None = None,
        role: str | None = None,
        provider: str | None = None,
        provider_id: str | None = None,
    ) -> User:
        """Create a new user.

        Email is normalized to lowercase before storage.

        Args:
            db: Async database session.
            email: User email address.
            first_name: Given name.
            last_name: Family name.
            password_hash: bcrypt hash (None or "" for OAuth-only users).
            role: Role value; database default "user" when None.
            provider: Provider value; database default "email" when None.
            provider_id: Account id at the OAuth provider.

        Returns:
            Created User with database-generated fields populated.

        Raises:
            sqlalchemy.exc.IntegrityError: If email already exists.
        """
        user = User(
            email=email.strip().lower(),
            first_name=first_name,
            last_name=last_name,
            password_hash=password_hash,
            provider_id=provider_id,
        )
        if role is not None:
            user.role = role
        if provider is not None:
            user.provider = provider
        db.add(user)
        await db.flush()
        await db.refresh(user)
        return user

    @staticmethod
    async def update(
        db: AsyncSession,
        user_id: uuid.UUID,
        **kwargs: str | datetime | bool | None,
    ) -> User | None:
        """Update user fields.

        Only fields in _UPDATABLE_FIELDS are allowed. Unknown field names
        raise ValueError.

        Args:
            db: Async database session.
            user_id: UUID of the user to update.
            **kwargs: Field names and values to update.

        Returns:
            Updated User if found, None if user does not exist.

        Raises:
            ValueError: If an unknown field name is passed.
            sqlalchemy.exc.IntegrityError: If a new email collides.
        """
        unknown = set(kwargs) - _UPDATABLE_FIELDS
        if unknown:
            msg = f"Unknown fields: {', '.join(sorted(unknown))}"
            raise ValueError(msg)

        user = await db.get(User, user_id)
        if user is None:
            return None

        for field, value in kwargs.items():
            if field == "email" and isinstance(value, str):
                value = value.strip().lower()
            setattr(user, field, value)

        await db.flush()
        await db.refresh(user)
        return user

    @staticmethod
    async def _reload(db: AsyncSession, user_id: uuid.UUID) -> None:
        # Statement-level UPDATEs bypass the identity map; re-read the row so
        # an already loaded User (including updated_at) is current.
        await db.get(User, user_id, populate_existing=True)

    @staticmethod
    async def set_refresh_token_hash(
        db: AsyncSession, user_id: uuid.UUID, token_hash: str | None
    ) -> None:
        """Overwrite (or clear with None) the stored refresh-token hash.

        Unconditional: used on login, registration and logout. A missing
        user is not an error.
        """
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(refresh_token_hash=token_hash)
            .execution_options(synchronize_session=False)
        )
        await db.execute(stmt)
        await UserRepository._reload(db, user_id)

    @staticmethod
    async def rotate_refresh_token_hash(
        db: AsyncSession,
        user_id: uuid.UUID,
        *,
        expected_hash: str,
        new_hash: str,
    ) -> bool:
        """Replace the refresh-token hash only if it still equals expected_hash.

        Single-statement compare-and-swap: of two concurrent refreshes that
        read the same hash, only the first UPDATE matches a row.

        Returns:
            True if the row was updated, False if the hash had changed.
        """
        stmt = (
            update(User)
            .where(User.id == user_id, User.refresh_token_hash == expected_hash)
            .values(refresh_token_hash=new_hash)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        if result.rowcount != 1:
            return False
        await UserRepository._reload(db, user_id)
        return True

    @staticmethod
    async def consume_reset_token(
        db: AsyncSession,
        user_id: uuid.UUID,
        *,
        token_digest: str,
        password_hash: str,
    ) -> bool:
        """Set a new password if the reset token is still current and unexpired.

        One conditional UPDATE: clears both reset fields and the refresh-token
        hash with the password, so a token is consumed at most once.

        Returns:
            True if the row was updated, False if the token was already
            consumed, superseded or expired.
        """
        stmt = (
            update(User)
            .where(
                User.id == user_id,
                User.reset_password_token == token_digest,
                User.reset_password_expires > datetime.now(UTC),
            )
            .values(
                password_hash=password_hash,
                reset_password_token=None,
                reset_password_expires=None,
                refresh_token_hash=None,
            )
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        if result.rowcount != 1:
            return False
        await UserRepository._reload(db, user_id)
        return True

    @staticmethod
    async def delete(db: AsyncSession, user_id: uuid.UUID) -> bool:
        """Hard-delete a user.

        Returns:
            True if a row was deleted.
        """
        result = await db.execute(delete(User).where(User.id == user_id))
        return result.rowcount == 1
