"""JWT issuance and verification for access and refresh tokens.

Two token classes share one claim shape ({email, sub, role}) and differ in
secret, lifetime and the "typ" claim:

- access: 15 minutes, signed with the access secret
- refresh: 7 days, signed with the refresh secret

Every issuance carries a random jti so that two pairs minted in the same
second for the same user are still different strings.
"""

import asyncio
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, Literal

import jwt

from app.models.user import User

_ALGORITHM = "HS256"

TokenType = Literal["access", "refresh"]


@dataclass(frozen=True)
class TokenConfig:
    """Secrets and lifetimes for token signing.

    Passed explicitly into TokenIssuer so nothing reads process-wide state
    at signing time.
    """

    access_secret: str
    refresh_secret: str
    access_ttl: timedelta = timedelta(minutes=15)
    refresh_ttl: timedelta = timedelta(days=7)
    issuer: str = "account-service"
    audience: str = "account-service"


@dataclass(frozen=True)
class TokenPair:
    """Freshly signed access + refresh tokens."""

    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class TokenClaims:
    """Verified claims of an access or refresh token.

    Attributes:
        sub: User id.
        email: Email at issuance time.
        role: Role at issuance time.
        jti: Unique token id.
        typ: "access" or "refresh".
    """

    sub: uuid.UUID
    email: str
    role: str
    jti: str
    typ: TokenType


class TokenIssuer:
    """Signs and verifies access/refresh tokens with PyJWT."""

    def __init__(self, config: TokenConfig) -> None:
        if not config.access_secret or not config.refresh_secret:
            msg = "TokenIssuer requires non-empty access and refresh secrets"
            raise ValueError(msg)
        self._config = config

    def _sign(
        self, claims: dict[str, Any], typ: TokenType, now: datetime
    ) -> str:
        if typ == "access":
            secret, ttl = self._config.access_secret, self._config.access_ttl
        else:
            secret, ttl = self._config.refresh_secret, self._config.refresh_ttl
        payload = {
            **claims,
            "typ": typ,
            "jti": uuid.uuid4().hex,
            "iat": now,
            "exp": now + ttl,
        }
        return jwt.encode(payload, secret, algorithm=_ALGORITHM)

    async def issue_pair(self, user: User) -> TokenPair:
        """Sign a new access + refresh token for a user.

        The claims are built once and signed with both secrets concurrently.
        Signing errors propagate to the caller.
        """
        claims = {
            "email": user.email,
            "sub": str(user.id),
            "role": user.role,
            "iss": self._config.issuer,
            "aud": self._config.audience,
        }
        now = datetime.now(UTC)
        access_token, refresh_token = await asyncio.gather(
            asyncio.to_thread(self._sign, claims, "access", now),
            asyncio.to_thread(self._sign, claims, "refresh", now),
        )
        return TokenPair(access_token=access_token, refresh_token=refresh_token)

    def _verify(self, token: str, typ: TokenType) -> TokenClaims:
        secret = (
            self._config.access_secret
            if typ == "access"
            else self._config.refresh_secret
        )
        payload = jwt.decode(
            token,
            secret,
            algorithms=[_ALGORITHM],
            audience=self._config.audience,
            issuer=self._config.issuer,
            options={"require": ["exp", "iat", "sub", "jti"]},
        )
        if payload.get("typ") != typ:
            msg = f"Expected a {typ} token"
            raise jwt.InvalidTokenError(msg)
        try:
            return TokenClaims(
                sub=uuid.UUID(payload["sub"]),
                email=payload["email"],
                role=payload["role"],
                jti=payload["jti"],
                typ=typ,
            )
        except (KeyError, ValueError, TypeError) as exc:
            msg = "Malformed token claims"
            raise jwt.InvalidTokenError(msg) from exc

    def verify_access(self, token: str) -> TokenClaims:
        """Verify an access token.

        Raises:
            jwt.InvalidTokenError: Bad signature, expired, wrong type or
                malformed claims.
        """
        return self._verify(token, "access")

    def verify_refresh(self, token: str) -> TokenClaims:
        """Verify a refresh token.

        Raises:
            jwt.InvalidTokenError: Bad signature, expired, wrong type or
                malformed claims.
        """
        return self._verify(token, "refresh")
