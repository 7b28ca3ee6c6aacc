"""OAuth building blocks: PKCE, the signed state cookie, provider endpoints.

Flow: /auth/providers/{provider} creates a PKCE verifier and a random
state, stores both in a short-lived signed cookie and redirects to the
provider. /auth/callback/{provider} checks the returned state against that
cookie and uses the verifier for the code exchange (see oauth_client).
"""

import base64
import hashlib
import secrets
import time
from dataclasses import dataclass

import jwt

# 96 random bytes encode to exactly 128 base64url characters, the RFC 7636
# maximum; base64url only uses characters from the unreserved set.
_VERIFIER_BYTES = 96

_STATE_COOKIE_TYP = "oauth_state"
_DEFAULT_STATE_TTL = 600


def generate_code_verifier() -> str:
    return secrets.token_urlsafe(_VERIFIER_BYTES)


def generate_code_challenge(verifier: str) -> str:
    """S256 challenge: unpadded base64url of SHA-256(verifier)."""
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


def create_oauth_state_cookie(
    *,
    state: str,
    code_verifier: str,
    secret: str,
    ttl_seconds: int = _DEFAULT_STATE_TTL,
) -> str:
    """HS256 JWT holding state and verifier between redirect and callback.

    The typ claim keeps it from being mistaken for any other token signed
    with the same secret.
    """
    payload = {
        "typ": _STATE_COOKIE_TYP,
        "state": state,
        "code_verifier": code_verifier,
        "exp": int(time.time()) + ttl_seconds,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def validate_oauth_state_cookie(
    *,
    cookie_value: str,
    expected_state: str,
    secret: str,
) -> str | None:
    """Return the PKCE verifier, or None if the cookie is bad or stale.

    Bad means: signature or expiry fails, wrong typ, or a state that does
    not match the one the provider sent back (CSRF).
    """
    try:
        payload = jwt.decode(
            cookie_value,
            secret,
            algorithms=["HS256"],
            options={"require": ["exp"]},
        )
    except jwt.InvalidTokenError:
        return None

    if payload.get("typ") != _STATE_COOKIE_TYP:
        return None
    if not secrets.compare_digest(str(payload.get("state", "")), expected_state):
        return None
    verifier = payload.get("code_verifier")
    return verifier if isinstance(verifier, str) and verifier else None


# ===================================================================
# Providers
# ===================================================================


@dataclass(frozen=True)
class OAuthProviderConfig:
    """Endpoints and scopes for one provider.

    emails_url is set for providers whose userinfo does not say whether
    the email is verified (GitHub); the verified address is read from it.
    """

    authorization_url: str
    token_url: str
    userinfo_url: str
    scopes: tuple[str, ...]
    emails_url: str | None = None


_PROVIDERS: dict[str, OAuthProviderConfig] = {
    "google": OAuthProviderConfig(
        authorization_url="https://accounts.google.com/o/oauth2/v2/auth",
        token_url="https://oauth2.googleapis.com/token",  # nosec B106
        userinfo_url="https://openidconnect.googleapis.com/v1/userinfo",
        scopes=("openid", "email", "profile"),
    ),
    "github": OAuthProviderConfig(
        authorization_url="https://github.com/login/oauth/authorize",
        token_url="https://github.com/login/oauth/access_token",  # nosec B106
        userinfo_url="https://api.github.com/user",
        scopes=("read:user", "user:email"),
        emails_url="https://api.github.com/user/emails",
    ),
}


def get_provider_config(provider: str) -> OAuthProviderConfig:
    """Look up a provider by its lowercase name.

    Raises:
        ValueError: Unsupported provider.
    """
    try:
        return _PROVIDERS[provider]
    except KeyError:
        msg = f"Unsupported OAuth provider: {provider}"
        raise ValueError(msg) from None
