"""Password reset email delivery via the Resend API.

Simple HTTP POST to Resend with a plain-text body. Without a Resend API key
(local development) the reset link is written to the log instead.
"""

import logging
from urllib.parse import quote, urlencode

import httpx

from app.core.config import settings

logger = logging.getLogger(__name__)

_RESEND_API_URL = "https://api.resend.com/emails"
_RESEND_TIMEOUT = 10.0


def build_reset_url(token: str) -> str:
    """Frontend URL the user opens to choose a new password."""
    params = urlencode({"token": token}, quote_via=quote)
    return f"{settings.frontend_url}/reset-password?{params}"


async def send_password_reset_email(*, to_email: str, token: str) -> None:
    """Send a password reset link.

    Failures are logged and swallowed: the forgot-password response must not
    depend on delivery, and the caller has already returned.

    Args:
        to_email: Recipient email address.
        token: Plain (unhashed) reset token.
    """
    reset_url = build_reset_url(token)
    api_key = settings.resend_api_key.get_secret_value()

    if not api_key:
        if settings.environment == "development":
            logger.info("Password reset link (email delivery disabled): %s", reset_url)
        else:
            logger.warning("RESEND_API_KEY not set; password reset email not sent")
        return

    try:
        async with httpx.AsyncClient() as client:
            resp = await client.post(
                _RESEND_API_URL,
                headers={"Authorization": f"Bearer {api_key}"},
                json={
                    "from": settings.email_from,
                    "to": to_email,
                    "subject": "Reset your password",
                    "text": (
                        f"Click this link to choose a new password:\n\n{reset_url}\n\n"
                        "This link expires in "
                        f"{settings.reset_token_ttl_minutes} minutes. "
                        "If you didn't request this, you can safely ignore this email."
                    ),
                },
                timeout=_RESEND_TIMEOUT,
            )
            resp.raise_for_status()
    except httpx.HTTPError:
        logger.warning("Failed to send password reset email", exc_info=True)
