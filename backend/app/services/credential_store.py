"""Credential Store - persistence contract used by the auth core.

AuthService never touches the ORM session directly; it talks to a
CredentialStore. SqlCredentialStore is the production implementation on
top of UserRepository.
"""

import logging
import uuid
from datetime import datetime
from typing import Protocol

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ConflictError
from app.models.user import User
from app.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)


class CredentialStore(Protocol):
    """Persistence operations the auth core needs."""

    async def get_by_id(self, user_id: uuid.UUID) -> User | None: ...

    async def get_by_email(self, email: str) -> User | None: ...

    async def get_by_reset_token(self, token_digest: str) -> User | None: ...

    async def create(
        self,
        *,
        email: str,
        first_name: str,
        last_name: str,
        password_hash: str | None,
        role: str | None = None,
        provider: str | None = None,
        provider_id: str | None = None,
    ) -> User: ...

    async def update(
        self, user_id: uuid.UUID, **fields: str | datetime | bool | None
    ) -> User | None: ...

    async def set_refresh_token_hash(
        self, user_id: uuid.UUID, token_hash: str | None
    ) -> None: ...

    async def rotate_refresh_token_hash(
        self, user_id: uuid.UUID, *, expected_hash: str, new_hash: str
    ) -> bool: ...

    async def consume_reset_token(
        self, user_id: uuid.UUID, *, token_digest: str, password_hash: str
    ) -> bool: ...


def email_conflict() -> ConflictError:
    """Error raised for a duplicate email, shared by every store."""
    return ConflictError(
        code="EMAIL_ALREADY_EXISTS",
        message="User with this email already exists",
    )


class SqlCredentialStore:
    """CredentialStore (and UserDirectory) backed by the users table.

    Args:
        db: Request-scoped session. The get_db dependency commits it.
    """

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def get_by_id(self, user_id: uuid.UUID) -> User | None:
        return await UserRepository.get_by_id(self._db, user_id)

    async def get_by_email(self, email: str) -> User | None:
        return await UserRepository.get_by_email(self._db, email)

    async def get_by_reset_token(self, token_digest: str) -> User | None:
        return await UserRepository.get_by_reset_token(self._db, token_digest)

    async def create(
        self,
        *,
        email: str,
        first_name: str,
        last_name: str,
        password_hash: str | None,
        role: str | None = None,
        provider: str | None = None,
        provider_id: str | None = None,
    ) -> User:
        """Insert a user, translating a unique-email violation to Conflict."""
        try:
            # Savepoint so a duplicate insert does not poison the request session
            async with self._db.begin_nested():
                return await UserRepository.create(
                    self._db,
                    email=email,
                    first_name=first_name,
                    last_name=last_name,
                    password_hash=password_hash,
                    role=role,
                    provider=provider,
                    provider_id=provider_id,
                )
        except IntegrityError as exc:
            logger.info("Duplicate email on user insert")
            raise email_conflict() from exc

    async def update(
        self, user_id: uuid.UUID, **fields: str | datetime | bool | None
    ) -> User | None:
        """Update fields, translating a unique-email violation to Conflict."""
        try:
            async with self._db.begin_nested():
                return await UserRepository.update(self._db, user_id, **fields)
        except IntegrityError as exc:
            raise email_conflict() from exc

    async def set_refresh_token_hash(
        self, user_id: uuid.UUID, token_hash: str | None
    ) -> None:
        await UserRepository.set_refresh_token_hash(self._db, user_id, token_hash)

    async def rotate_refresh_token_hash(
        self, user_id: uuid.UUID, *, expected_hash: str, new_hash: str
    ) -> bool:
        return await UserRepository.rotate_refresh_token_hash(
            self._db, user_id, expected_hash=expected_hash, new_hash=new_hash
        )

    async def consume_reset_token(
        self, user_id: uuid.UUID, *, token_digest: str, password_hash: str
    ) -> bool:
        return await UserRepository.consume_reset_token(
            self._db, user_id, token_digest=token_digest, password_hash=password_hash
        )

    async def list_users(
        self,
        *,
        offset: int,
        limit: int,
        role: str | None = None,
        is_active: bool | None = None,
    ) -> tuple[list[User], int]:
        return await UserRepository.list_users(
            self._db, offset=offset, limit=limit, role=role, is_active=is_active
        )

    async def delete(self, user_id: uuid.UUID) -> bool:
        return await UserRepository.delete(self._db, user_id)
