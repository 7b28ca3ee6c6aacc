"""Authentication service - credential verification and token lifecycle.

The sole authority for passwords and tokens. Routers call into this service
and never hash, compare or sign anything themselves.

Operations:
- register / login: verify or create credentials, issue a token pair
- refresh_tokens: single-use refresh with atomic rotation
- logout: forget the stored refresh token
- forgot_password / reset_password: random reset token, 15 minute expiry
- validate_oauth_user / login_oauth_user: OAuth upsert and sign-in

Security:
- "Invalid credentials" is returned for unknown email, OAuth-only account
  and wrong password alike, with a dummy bcrypt check to equalize timing.
- "Account is deactivated" is only reachable after the password has been
  verified, so it reveals nothing to a caller without the password.
- Every refresh failure collapses to "Invalid refresh token".
- forgot_password behaves identically for unknown emails.
"""

import logging
import secrets
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Protocol

import jwt

from app.core.errors import BadRequestError, ConflictError, UnauthorizedError
from app.core.passwords import (
    PasswordHasher,
    token_digest,
    validate_password_strength,
)
from app.core.tokens import TokenIssuer, TokenPair
from app.models.user import AuthProvider, User, UserRole
from app.services.credential_store import CredentialStore, email_conflict

logger = logging.getLogger(__name__)

_INVALID_CREDENTIALS_MSG = "Invalid credentials"
_DEACTIVATED_MSG = "Account is deactivated"
_INVALID_REFRESH_MSG = "Invalid refresh token"
_INVALID_RESET_MSG = "Invalid or expired reset token"

# Reset token: 32 random bytes as 64 hex characters
_RESET_TOKEN_BYTES = 32
_DEFAULT_RESET_TTL = timedelta(minutes=15)


class PasswordResetNotifier(Protocol):
    """Out-of-band delivery of a plaintext reset token."""

    async def send_password_reset(self, *, to_email: str, token: str) -> None: ...


@dataclass(frozen=True)
class AuthResult:
    """Outcome of register/login: the user and a freshly issued pair."""

    user: User
    access_token: str
    refresh_token: str


class AuthService:
    """Registration, login, token rotation and password reset.

    Args:
        store: Persistence for user records.
        hasher: bcrypt wrapper for passwords and refresh tokens.
        tokens: Signs and verifies access/refresh tokens.
        notifier: Delivers password reset tokens.
        reset_token_ttl: Lifetime of a password reset token.
    """

    def __init__(
        self,
        *,
        store: CredentialStore,
        hasher: PasswordHasher,
        tokens: TokenIssuer,
        notifier: PasswordResetNotifier,
        reset_token_ttl: timedelta = _DEFAULT_RESET_TTL,
    ) -> None:
        self._store = store
        self._hasher = hasher
        self._tokens = tokens
        self._notifier = notifier
        self._reset_token_ttl = reset_token_ttl

    # -----------------------------------------------------------------
    # Token helpers
    # -----------------------------------------------------------------

    async def _issue_and_store(self, user: User) -> TokenPair:
        """Issue a pair and overwrite the stored refresh-token hash."""
        pair = await self._tokens.issue_pair(user)
        token_hash = await self._hasher.hash_token(pair.refresh_token)
        await self._store.set_refresh_token_hash(user.id, token_hash)
        return pair

    # -----------------------------------------------------------------
    # Email + password
    # -----------------------------------------------------------------

    async def register(
        self,
        *,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        role: UserRole | None = None,
    ) -> AuthResult:
        """Create an email/password account and sign it in.

        Raises:
            ConflictError: Email already registered.
            ValidationError: Password fails the strength rules.
        """
        if await self._store.get_by_email(email) is not None:
            raise email_conflict()

        validate_password_strength(password)
        password_hash = await self._hasher.hash_password(password)

        user = await self._store.create(
            email=email,
            first_name=first_name,
            last_name=last_name,
            password_hash=password_hash,
            role=(role or UserRole.USER).value,
            provider=AuthProvider.EMAIL.value,
        )
        pair = await self._issue_and_store(user)

        logger.info("User registered", extra={"user_id": str(user.id)})
        return AuthResult(
            user=user,
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
        )

    async def login(self, *, email: str, password: str) -> AuthResult:
        """Verify email + password and issue a new pair.

        Raises:
            UnauthorizedError: Invalid credentials, or deactivated account.
        """
        user = await self._store.get_by_email(email)

        if user is None or not user.has_password:
            # Security: always perform a bcrypt comparison so response time
            # does not reveal whether the account exists.
            await self._hasher.burn_dummy_check(password)
            raise UnauthorizedError(_INVALID_CREDENTIALS_MSG)

        if not await self._hasher.verify_password(password, user.password_hash):
            raise UnauthorizedError(_INVALID_CREDENTIALS_MSG)

        if not user.is_active:
            logger.info(
                "Login refused for deactivated account",
                extra={"user_id": str(user.id)},
            )
            raise UnauthorizedError(_DEACTIVATED_MSG)

        pair = await self._issue_and_store(user)
        return AuthResult(
            user=user,
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
        )

    # -----------------------------------------------------------------
    # Refresh / logout
    # -----------------------------------------------------------------

    async def refresh_tokens(self, presented_refresh_token: str | None) -> TokenPair:
        """Exchange a refresh token for a new pair (rotation).

        The presented token must verify against the refresh secret AND match
        the hash currently stored for its subject. The stored hash is then
        swapped atomically, so the presented token can never be used again.

        Raises:
            UnauthorizedError: Any failure, always "Invalid refresh token".
        """
        if not presented_refresh_token:
            raise UnauthorizedError(_INVALID_REFRESH_MSG)

        try:
            claims = self._tokens.verify_refresh(presented_refresh_token)
        except jwt.InvalidTokenError as exc:
            raise UnauthorizedError(_INVALID_REFRESH_MSG) from exc

        user = await self._store.get_by_id(claims.sub)
        if user is None or not user.refresh_token_hash or not user.is_active:
            raise UnauthorizedError(_INVALID_REFRESH_MSG)

        seen_hash = user.refresh_token_hash
        if not await self._hasher.verify_token(presented_refresh_token, seen_hash):
            logger.warning(
                "Superseded or foreign refresh token presented",
                extra={"user_id": str(user.id)},
            )
            raise UnauthorizedError(_INVALID_REFRESH_MSG)

        pair = await self._tokens.issue_pair(user)
        new_hash = await self._hasher.hash_token(pair.refresh_token)
        rotated = await self._store.rotate_refresh_token_hash(
            user.id, expected_hash=seen_hash, new_hash=new_hash
        )
        if not rotated:
            # A concurrent refresh (or logout) changed the hash after we read it
            logger.warning(
                "Refresh token rotation lost a race",
                extra={"user_id": str(user.id)},
            )
            raise UnauthorizedError(_INVALID_REFRESH_MSG)

        return pair

    async def logout(self, user_id: uuid.UUID) -> None:
        """Forget the stored refresh token. Idempotent."""
        await self._store.set_refresh_token_hash(user_id, None)

    # -----------------------------------------------------------------
    # Password reset
    # -----------------------------------------------------------------

    @staticmethod
    def _accepts_password_reset(user: User) -> bool:
        # OAuth-only accounts never get a password; a reset would bypass the
        # provider check in validate_oauth_user
        return user.has_password and user.provider == AuthProvider.EMAIL.value

    async def forgot_password(self, email: str) -> None:
        """Issue a reset token for the email, if it belongs to a password account.

        Returns nothing either way (anti-enumeration): unknown emails and
        OAuth-only accounts look exactly like a sent email. The token is
        generated in all paths so every path does the same work.
        """
        token = secrets.token_hex(_RESET_TOKEN_BYTES)
        user = await self._store.get_by_email(email)
        if user is None or not self._accepts_password_reset(user):
            return

        await self._store.update(
            user.id,
            reset_password_token=token_digest(token),
            reset_password_expires=datetime.now(UTC) + self._reset_token_ttl,
        )
        await self._notifier.send_password_reset(to_email=user.email, token=token)
        logger.info("Password reset token issued", extra={"user_id": str(user.id)})

    async def reset_password(self, *, token: str, new_password: str) -> None:
        """Consume a reset token and set a new password.

        The token is consumed with one conditional update that also clears
        the reset fields and revokes the stored refresh token, so of two
        concurrent resets with the same token at most one succeeds.

        A rejected request changes nothing; an expired token stays stored,
        unusable, until the next forgot_password overwrites it.

        Raises:
            BadRequestError: Unknown, superseded, consumed or expired token,
                or an account that does not use a password.
            ValidationError: New password fails the strength rules.
        """
        if not token:
            raise BadRequestError("INVALID_RESET_TOKEN", _INVALID_RESET_MSG)

        digest = token_digest(token)
        user = await self._store.get_by_reset_token(digest)
        if user is None or not self._accepts_password_reset(user):
            raise BadRequestError("INVALID_RESET_TOKEN", _INVALID_RESET_MSG)

        expires = user.reset_password_expires
        if expires is None or expires <= datetime.now(UTC):
            raise BadRequestError("INVALID_RESET_TOKEN", _INVALID_RESET_MSG)

        validate_password_strength(new_password)
        password_hash = await self._hasher.hash_password(new_password)

        consumed = await self._store.consume_reset_token(
            user.id, token_digest=digest, password_hash=password_hash
        )
        if not consumed:
            logger.warning(
                "Reset token consumed concurrently", extra={"user_id": str(user.id)}
            )
            raise BadRequestError("INVALID_RESET_TOKEN", _INVALID_RESET_MSG)
        logger.info("Password reset completed", extra={"user_id": str(user.id)})

    # -----------------------------------------------------------------
    # OAuth
    # -----------------------------------------------------------------

    async def validate_oauth_user(
        self,
        *,
        email: str,
        first_name: str,
        last_name: str,
        provider: AuthProvider,
        provider_id: str,
    ) -> User:
        """Find or create the account for an OAuth identity.

        Federation policy:
        - no account with this email: create one (empty password hash)
        - same provider, same (or not yet recorded) provider id: return it
        - anything else: reject, the email belongs to another sign-in method

        Raises:
            ConflictError: Email registered under another provider/identity.
        """
        user = await self._store.get_by_email(email)

        if user is None:
            user = await self._store.create(
                email=email,
                first_name=first_name,
                last_name=last_name,
                password_hash="",
                provider=provider.value,
                provider_id=provider_id,
            )
            logger.info(
                "Created new OAuth user",
                extra={"user_id": str(user.id), "provider": provider.value},
            )
            return user

        if user.provider == provider.value and user.provider_id in (None, provider_id):
            if user.provider_id is None:
                user = await self._store.update(user.id, provider_id=provider_id) or user
            return user

        logger.warning(
            "OAuth account linking blocked",
            extra={
                "user_id": str(user.id),
                "provider": provider.value,
                "existing_provider": user.provider,
            },
        )
        raise ConflictError(
            code="ACCOUNT_LINKING_BLOCKED",
            message=(
                "An account with this email already exists. "
                "Please sign in with your original method."
            ),
        )

    async def login_oauth_user(self, user: User) -> TokenPair:
        """Issue a pair for a user authenticated by an OAuth provider.

        Raises:
            UnauthorizedError: Account is deactivated.
        """
        if not user.is_active:
            raise UnauthorizedError(_DEACTIVATED_MSG)
        return await self._issue_and_store(user)
