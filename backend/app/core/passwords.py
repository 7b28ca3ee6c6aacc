"""Password hashing and password strength rules.

bcrypt is used for both stored secrets the service keeps: user passwords and
the current refresh token. Hashing runs in a worker thread so the event loop
is not blocked for the ~250ms a cost-12 hash takes.
"""

import asyncio
import hashlib
import re

import bcrypt

from app.core.errors import ValidationError

# Pre-computed bcrypt hash for timing-safe comparison on user-not-found.
# Security: prevents user enumeration via response time differences.
# Pre-generated to avoid ~300ms bcrypt computation on every app startup.
DUMMY_HASH = b"$2b$12$ZP2PVB8yI35X.mkRqcUPUuSzJA1CNRt4dZ7X3cyrfJu.2S3w.Qen2"

_MIN_PASSWORD_LENGTH = 8
# bcrypt only accepts 72 bytes of input
_MAX_PASSWORD_BYTES = 72


def token_digest(token: str) -> str:
    """SHA-256 hex digest of an opaque token.

    Refresh tokens (JWTs) are far longer than bcrypt's 72-byte input limit,
    so they are digested before bcrypt. Reset tokens are stored as this
    digest directly so they can be looked up by equality.
    """
    return hashlib.sha256(token.encode()).hexdigest()


class PasswordHasher:
    """bcrypt wrapper for passwords and refresh tokens.

    Args:
        rounds: bcrypt cost factor. 12 in production, 4 in tests.
    """

    def __init__(self, rounds: int = 12) -> None:
        self._rounds = rounds

    def _hash(self, value: bytes) -> str:
        return bcrypt.hashpw(value, bcrypt.gensalt(rounds=self._rounds)).decode()

    @staticmethod
    def _check(value: bytes, hashed: str | bytes) -> bool:
        if isinstance(hashed, str):
            hashed = hashed.encode()
        try:
            return bcrypt.checkpw(value, hashed)
        except ValueError:
            # Malformed stored hash (e.g. the empty string of OAuth accounts)
            return False

    async def hash_password(self, password: str) -> str:
        """Hash a plain-text password for storage."""
        return await asyncio.to_thread(self._hash, password.encode())

    async def verify_password(self, password: str, hashed: str | bytes) -> bool:
        """Compare a plain-text password with a stored bcrypt hash."""
        return await asyncio.to_thread(self._check, password.encode(), hashed)

    async def burn_dummy_check(self, password: str) -> None:
        """Run one bcrypt comparison against DUMMY_HASH and discard the result.

        Called when there is no stored hash so that "unknown email" and
        "wrong password" take the same time.
        """
        await asyncio.to_thread(self._check, password.encode(), DUMMY_HASH)

    async def hash_token(self, token: str) -> str:
        """Hash a refresh token for storage."""
        return await asyncio.to_thread(self._hash, token_digest(token).encode())

    async def verify_token(self, token: str, hashed: str) -> bool:
        """Compare a presented refresh token with its stored hash."""
        return await asyncio.to_thread(
            self._check, token_digest(token).encode(), hashed
        )


def validate_password_strength(password: str) -> None:
    """Validate password meets strength requirements.

    8 chars to 72 bytes, letter + number + special character.

    Args:
        password: Plain-text password to validate.

    Raises:
        ValidationError: If password doesn't meet requirements.
    """
    if len(password) < _MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {_MIN_PASSWORD_LENGTH} characters"
        )
    if len(password.encode()) > _MAX_PASSWORD_BYTES:
        raise ValidationError(
            f"Password must be at most {_MAX_PASSWORD_BYTES} bytes"
        )
    if not re.search(r"[a-zA-Z]", password):
        raise ValidationError("Password must contain at least one letter")
    if not re.search(r"\d", password):
        raise ValidationError("Password must contain at least one number")
    if not re.search(r"[^a-zA-Z\d]", password):
        raise ValidationError("Password must contain at least one special character")
