"""User administration service - admin-only CRUD over accounts.

Business rules:
- an admin cannot remove their own admin role, deactivate or delete themselves
- deactivating an account revokes its stored refresh token
- email changes keep the unique constraint (409 on collision)
"""

import logging
import uuid
from datetime import datetime
from typing import Protocol

from app.core.errors import InvalidStateError, NotFoundError
from app.models.user import User, UserRole
from app.services.credential_store import CredentialStore

logger = logging.getLogger(__name__)


class UserDirectory(CredentialStore, Protocol):
    """CredentialStore plus the listing/deletion admin screens need."""

    async def list_users(
        self,
        *,
        offset: int,
        limit: int,
        role: str | None = None,
        is_active: bool | None = None,
    ) -> tuple[list[User], int]: ...

    async def delete(self, user_id: uuid.UUID) -> bool: ...


class UserAdminService:
    """Admin operations on user accounts.

    Args:
        store: User persistence.
    """

    def __init__(self, store: UserDirectory) -> None:
        self._store = store

    async def list_users(
        self,
        *,
        offset: int,
        limit: int,
        role: UserRole | None = None,
        is_active: bool | None = None,
    ) -> tuple[list[User], int]:
        """Page through users, optionally filtered by role and active flag."""
        return await self._store.list_users(
            offset=offset,
            limit=limit,
            role=role.value if role is not None else None,
            is_active=is_active,
        )

    async def get_user(self, user_id: uuid.UUID) -> User:
        """Fetch one user.

        Raises:
            NotFoundError: Unknown id.
        """
        user = await self._store.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User", str(user_id))
        return user

    async def update_user(
        self,
        *,
        actor_id: uuid.UUID,
        user_id: uuid.UUID,
        **fields: str | bool | datetime | None,
    ) -> User:
        """Apply an admin edit to a user.

        Args:
            actor_id: The admin performing the change.
            user_id: Target user.
            **fields: Subset of email, first_name, last_name, role, is_active.

        Raises:
            NotFoundError: Unknown id.
            InvalidStateError: Admin demoting or deactivating themselves.
            ConflictError: Email already used by another account.
        """
        if actor_id == user_id:
            if fields.get("role") not in (None, UserRole.ADMIN.value):
                raise InvalidStateError("Admins cannot remove their own admin role")
            if fields.get("is_active") is False:
                raise InvalidStateError("Admins cannot deactivate themselves")

        user = await self.get_user(user_id)
        if not fields:
            return user

        updated = await self._store.update(user_id, **fields)
        if updated is None:
            raise NotFoundError("User", str(user_id))

        if fields.get("is_active") is False:
            await self._store.set_refresh_token_hash(user_id, None)

        logger.info(
            "User updated by admin",
            extra={
                "user_id": str(user_id),
                "actor_id": str(actor_id),
                "fields": sorted(fields),
            },
        )
        return updated

    async def delete_user(self, *, actor_id: uuid.UUID, user_id: uuid.UUID) -> None:
        """Hard-delete a user.

        Raises:
            InvalidStateError: Admin deleting themselves.
            NotFoundError: Unknown id.
        """
        if actor_id == user_id:
            raise InvalidStateError("Admins cannot delete their own account")
        if not await self._store.delete(user_id):
            raise NotFoundError("User", str(user_id))
        logger.info(
            "User deleted by admin",
            extra={"user_id": str(user_id), "actor_id": str(actor_id)},
        )
