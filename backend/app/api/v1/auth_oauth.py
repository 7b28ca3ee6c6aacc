"""OAuth sign-in endpoints (Google, GitHub) using the PKCE code flow.

GET /auth/providers/{provider}
    307 to the provider's consent page; state + verifier ride in a signed,
    httpOnly cookie scoped to the callback path.
GET /auth/callback/{provider}
    Checks state, exchanges the code, reads a verified email, finds or
    creates the account (AuthService.validate_oauth_user), then 307s to the
    frontend with the refresh cookie set. The frontend obtains its access
    token from POST /auth/refresh.
"""

import logging
import secrets
from urllib.parse import urlencode

import httpx
from fastapi import APIRouter, Request
from fastapi.responses import RedirectResponse

from app.api.deps import AuthServiceDep, DbSession, TokenConfigDep
from app.core.config import settings
from app.core.cookies import set_refresh_cookie
from app.core.errors import ValidationError
from app.core.oauth import (
    OAuthProviderConfig,
    create_oauth_state_cookie,
    generate_code_challenge,
    generate_code_verifier,
    get_provider_config,
    validate_oauth_state_cookie,
)
from app.core.oauth_client import (
    OAuthIdentity,
    exchange_code_for_tokens,
    fetch_identity,
    get_client_id,
)
from app.core.rate_limiting import limiter
from app.models.user import AuthProvider

logger = logging.getLogger(__name__)

router = APIRouter()

_STATE_COOKIE = "oauth_state"
_STATE_COOKIE_PATH = "/api/v1/auth/callback"
_STATE_TTL_SECONDS = 600


def _provider_config(provider: str) -> OAuthProviderConfig:
    try:
        return get_provider_config(provider)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc


def _callback_url(request: Request, provider: str) -> str:
    # Must be byte-identical in the authorize request and the code exchange
    return str(request.url_for("oauth_callback", provider=provider))


async def _identity_from_code(
    request: Request, provider: str, code: str, code_verifier: str
) -> OAuthIdentity:
    """Run the provider round trip; provider HTTP failures become 400."""
    try:
        tokens = await exchange_code_for_tokens(
            provider=provider,
            code=code,
            code_verifier=code_verifier,
            redirect_uri=_callback_url(request, provider),
        )
    except httpx.HTTPStatusError:
        logger.exception("OAuth token exchange failed", extra={"provider": provider})
        raise ValidationError("OAuth authentication failed") from None

    access_token = tokens.get("access_token")
    if not access_token:
        raise ValidationError("OAuth provider did not return access token")

    try:
        identity = await fetch_identity(provider=provider, access_token=access_token)
    except httpx.HTTPStatusError:
        logger.exception("OAuth userinfo fetch failed", extra={"provider": provider})
        raise ValidationError("Could not retrieve user information") from None

    if not identity.email or not identity.provider_id:
        raise ValidationError("OAuth provider did not return required user info")
    # An unverified address may belong to someone else; never bind it
    if not identity.email_verified:
        raise ValidationError("OAuth provider email is not verified")
    return identity


@router.get("/providers/{provider}")
@limiter.limit("10/hour")
async def oauth_initiate(
    provider: str,
    request: Request,
    token_config: TokenConfigDep,
) -> RedirectResponse:
    """Redirect to the provider with a PKCE challenge and CSRF state."""
    config = _provider_config(provider)
    client_id = get_client_id(provider)
    if not client_id:
        raise ValidationError(f"OAuth provider {provider} is not configured")

    verifier = generate_code_verifier()
    state = secrets.token_urlsafe(32)
    query = urlencode(
        {
            "client_id": client_id,
            "redirect_uri": _callback_url(request, provider),
            "response_type": "code",
            "scope": " ".join(config.scopes),
            "state": state,
            "code_challenge": generate_code_challenge(verifier),
            "code_challenge_method": "S256",
        }
    )

    response = RedirectResponse(f"{config.authorization_url}?{query}", status_code=307)
    response.set_cookie(
        key=_STATE_COOKIE,
        value=create_oauth_state_cookie(
            state=state,
            code_verifier=verifier,
            secret=token_config.access_secret,
            ttl_seconds=_STATE_TTL_SECONDS,
        ),
        max_age=_STATE_TTL_SECONDS,
        path=_STATE_COOKIE_PATH,
        httponly=True,
        secure=settings.refresh_cookie_secure,
        # lax, not strict: the provider's redirect back is a cross-site navigation
        samesite="lax",
    )
    return response


@router.get("/callback/{provider}", name="oauth_callback")
@limiter.limit("20/hour")
async def oauth_callback(
    provider: str,
    request: Request,
    service: AuthServiceDep,
    token_config: TokenConfigDep,
    db: DbSession,
    code: str | None = None,
    state: str | None = None,
) -> RedirectResponse:
    """Finish sign-in and hand the session to the frontend via the cookie."""
    if not code:
        raise ValidationError("Missing authorization code")
    if not state:
        raise ValidationError("Missing state parameter")
    _provider_config(provider)

    state_cookie = request.cookies.get(_STATE_COOKIE)
    if not state_cookie:
        raise ValidationError("Missing OAuth state cookie")
    verifier = validate_oauth_state_cookie(
        cookie_value=state_cookie,
        expected_state=state,
        secret=token_config.access_secret,
    )
    if verifier is None:
        raise ValidationError("Invalid or expired OAuth state")

    identity = await _identity_from_code(request, provider, code, verifier)
    user = await service.validate_oauth_user(
        email=identity.email,
        first_name=identity.first_name,
        last_name=identity.last_name,
        provider=AuthProvider(provider),
        provider_id=identity.provider_id,
    )
    pair = await service.login_oauth_user(user)
    await db.commit()

    response = RedirectResponse(settings.frontend_url, status_code=307)
    set_refresh_cookie(response, pair.refresh_token)
    response.delete_cookie(key=_STATE_COOKIE, path=_STATE_COOKIE_PATH)
    return response
