"""slowapi limiter for the auth endpoints.

Limits (per key, in-memory storage, single instance):
    register 3/hour, login 5/15minute, refresh 30/hour,
    forgot-password 3/hour, reset-password 5/hour,
    OAuth initiate 10/hour, OAuth callback 20/hour.

Requests with a valid access token are keyed per user, so accounts behind
one NAT do not throttle each other; everything else is keyed per IP.
"""

import logging

import jwt
from fastapi import Request, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from app.core.config import settings

logger = logging.getLogger(__name__)

_BEARER_PREFIX = "bearer "
_DEFAULT_RETRY_AFTER = 60


def _access_token_subject(request: Request) -> str | None:
    """sub of a valid access token in the Authorization header, if any.

    Signature, expiry, issuer, audience and typ are checked; the user row is
    not (that is get_current_user's job).
    """
    header = request.headers.get("authorization", "")
    secret = settings.jwt_access_secret.get_secret_value()
    if not secret or not header.lower().startswith(_BEARER_PREFIX):
        return None
    try:
        payload = jwt.decode(
            header[len(_BEARER_PREFIX) :].strip(),
            secret,
            algorithms=["HS256"],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
        )
    except jwt.InvalidTokenError:
        return None
    sub = payload.get("sub")
    if payload.get("typ") != "access" or not isinstance(sub, str) or len(sub) > 36:
        return None
    return sub


def _rate_limit_key_func(request: Request) -> str:
    """"user:{sub}" for authenticated requests, "unauth:{ip}" otherwise."""
    sub = _access_token_subject(request)
    if sub is not None:
        return f"user:{sub}"
    return f"unauth:{get_remote_address(request)}"


limiter = Limiter(
    key_func=_rate_limit_key_func,
    enabled=settings.rate_limit_enabled,
)


def _retry_after_seconds(exc: RateLimitExceeded) -> int:
    # exc.limit.limit is the limits.RateLimitItem; its expiry is the window
    try:
        return int(exc.limit.limit.get_expiry())
    except (AttributeError, TypeError, ValueError):
        return _DEFAULT_RETRY_AFTER


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> Response:
    """429 RATE_LIMITED in the error envelope, with Retry-After."""
    logger.warning(
        "Rate limit exceeded",
        extra={"path": request.url.path, "limit": str(exc.detail)},
    )
    return JSONResponse(
        status_code=429,
        content={
            "error": {
                "code": "RATE_LIMITED",
                "message": f"Rate limit exceeded: {exc.detail}",
                "details": None,
            }
        },
        headers={"Retry-After": str(_retry_after_seconds(exc))},
    )
