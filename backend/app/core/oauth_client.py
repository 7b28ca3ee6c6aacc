"""OAuth HTTP client: token exchange and identity fetching.

Exchanges authorization codes for provider tokens and normalizes the
provider's user info into an OAuthIdentity.
"""

from dataclasses import dataclass
from typing import Any

import httpx

from app.core.config import settings
from app.core.oauth import get_provider_config

# HTTP client timeout for OAuth token exchange and userinfo
_OAUTH_HTTP_TIMEOUT = 10.0

# Map provider names to settings attribute prefixes
_PROVIDER_CREDENTIALS = {
    "google": ("google_client_id", "google_client_secret"),
    "github": ("github_client_id", "github_client_secret"),
}


@dataclass(frozen=True)
class OAuthIdentity:
    """Provider-independent view of an OAuth user.

    Attributes:
        provider_id: The user's id at the provider.
        email: Email address, lowercase. Empty if none was returned.
        email_verified: Whether the provider vouches for the email.
        first_name: Given name ("" if unknown).
        last_name: Family name ("" if unknown).
    """

    provider_id: str
    email: str
    email_verified: bool
    first_name: str
    last_name: str


def get_client_id(provider: str) -> str:
    """Configured OAuth client id for a provider ("" if not configured)."""
    cred_attrs = _PROVIDER_CREDENTIALS.get(provider)
    if cred_attrs is None:
        return ""
    return getattr(settings, cred_attrs[0])


async def exchange_code_for_tokens(
    *,
    provider: str,
    code: str,
    code_verifier: str,
    redirect_uri: str,
) -> dict[str, Any]:
    """Exchange authorization code for OAuth tokens.

    Args:
        provider: Provider name.
        code: Authorization code from callback.
        code_verifier: PKCE code verifier.
        redirect_uri: Callback URL used in initiation.

    Returns:
        Token response dict (access_token, token_type, ...).

    Raises:
        httpx.HTTPStatusError: If token exchange fails.
    """
    config = get_provider_config(provider)
    cred_attrs = _PROVIDER_CREDENTIALS[provider]
    client_id = getattr(settings, cred_attrs[0])
    client_secret = getattr(settings, cred_attrs[1]).get_secret_value()

    async with httpx.AsyncClient() as client:
        resp = await client.post(
            config.token_url,
            data={
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": redirect_uri,
                "client_id": client_id,
                "client_secret": client_secret,
                "code_verifier": code_verifier,
            },
            # GitHub answers form-encoded unless JSON is requested
            headers={"Accept": "application/json"},
            timeout=_OAUTH_HTTP_TIMEOUT,
        )
        resp.raise_for_status()
        result: dict[str, Any] = resp.json()
        return result


def _split_name(full_name: str | None) -> tuple[str, str]:
    if not full_name:
        return "", ""
    first, _, last = full_name.strip().partition(" ")
    return first, last.strip()


def _google_identity(info: dict[str, Any]) -> OAuthIdentity:
    first, last = info.get("given_name"), info.get("family_name")
    if first is None and last is None:
        first, last = _split_name(info.get("name"))
    return OAuthIdentity(
        provider_id=str(info.get("sub", "")),
        email=str(info.get("email", "")).strip().lower(),
        email_verified=info.get("email_verified") is True,
        first_name=first or "",
        last_name=last or "",
    )


async def _github_identity(
    client: httpx.AsyncClient,
    info: dict[str, Any],
    headers: dict[str, str],
    emails_url: str,
) -> OAuthIdentity:
    # /user exposes only the public email and says nothing about
    # verification; the primary verified address comes from /user/emails.
    resp = await client.get(emails_url, headers=headers, timeout=_OAUTH_HTTP_TIMEOUT)
    resp.raise_for_status()
    emails: list[dict[str, Any]] = resp.json()
    primary = next(
        (e for e in emails if e.get("primary") and e.get("verified")),
        None,
    )
    first, last = _split_name(info.get("name"))
    user_id = info.get("id")
    return OAuthIdentity(
        provider_id=str(user_id) if user_id is not None else "",
        email=str(primary["email"]).strip().lower() if primary else "",
        email_verified=primary is not None,
        first_name=first,
        last_name=last,
    )


async def fetch_identity(
    *,
    provider: str,
    access_token: str,
) -> OAuthIdentity:
    """Fetch and normalize user info from the OAuth provider.

    Args:
        provider: Provider name.
        access_token: OAuth access token.

    Returns:
        OAuthIdentity for the signed-in provider account.

    Raises:
        httpx.HTTPStatusError: If a provider request fails.
    """
    config = get_provider_config(provider)
    headers = {
        "Authorization": f"Bearer {access_token}",
        "Accept": "application/json",
    }

    async with httpx.AsyncClient() as client:
        resp = await client.get(
            config.userinfo_url,
            headers=headers,
            timeout=_OAUTH_HTTP_TIMEOUT,
        )
        resp.raise_for_status()
        info: dict[str, Any] = resp.json()

        if provider == "github" and config.emails_url:
            return await _github_identity(client, info, headers, config.emails_url)

    return _google_identity(info)
