"""Refresh token cookie helpers.

The refresh token never appears in a response body. It is set as an
httpOnly cookie scoped to the auth path, so the browser only sends it to
/api/v1/auth/* and page scripts cannot read it.
"""

from fastapi import Request, Response

from app.core.config import settings


def set_refresh_cookie(response: Response, token: str) -> None:
    """Set the httpOnly refresh token cookie on a response.

    Args:
        response: FastAPI response object.
        token: Refresh JWT string.
    """
    response.set_cookie(
        key=settings.refresh_cookie_name,
        value=token,
        httponly=True,
        secure=settings.refresh_cookie_secure,
        samesite=settings.refresh_cookie_samesite,
        path=settings.refresh_cookie_path,
        max_age=settings.refresh_token_ttl_days * 24 * 60 * 60,
        domain=settings.refresh_cookie_domain or None,
    )


def clear_refresh_cookie(response: Response) -> None:
    """Expire the refresh token cookie (same path/domain it was set with)."""
    response.delete_cookie(
        key=settings.refresh_cookie_name,
        path=settings.refresh_cookie_path,
        domain=settings.refresh_cookie_domain or None,
        secure=settings.refresh_cookie_secure,
        httponly=True,
        samesite=settings.refresh_cookie_samesite,
    )


def read_refresh_cookie(request: Request) -> str | None:
    return request.cookies.get(settings.refresh_cookie_name)
