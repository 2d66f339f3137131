"""Magic link email delivery.

The token issuer decides that an email goes out and what link it carries;
an EmailSender moves it. Two senders ship:

- ResendEmailSender: plain-text email via a simple HTTP POST to Resend.
- LoggingEmailSender: development fallback that writes the link to the log.

Senders never raise: a delivery failure is logged and the login response
stays identical, so delivery problems cannot be used to enumerate accounts.
"""

import logging
from typing import Protocol
from urllib.parse import quote, urlencode

import httpx

from admin_auth.core.config import Settings

logger = logging.getLogger(__name__)

_RESEND_API_URL = "https://api.resend.com/emails"
_RESEND_TIMEOUT = 10.0

VERIFY_PATH = "/api/v1/auth/verify"


def build_verify_url(backend_url: str, token: str) -> str:
    """Build the link the administrator clicks.

    Args:
        backend_url: Public base URL of this service.
        token: Plain (unhashed) magic link token.

    Returns:
        Absolute URL of the verify endpoint carrying the token.
    """
    params = urlencode({"token": token}, quote_via=quote)
    return f"{backend_url.rstrip('/')}{VERIFY_PATH}?{params}"


class EmailSender(Protocol):
    """Outbound email collaborator used by the token issuer."""

    async def send_magic_link(self, *, to_email: str, verify_url: str) -> None: ...


class ResendEmailSender:
    """Send magic link emails via the Resend API."""

    def __init__(
        self,
        *,
        api_key: str,
        email_from: str,
        ttl_minutes: int,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the sender.

        Args:
            api_key: Resend API key.
            email_from: Sender address.
            ttl_minutes: Link lifetime, quoted in the email body.
            transport: Optional httpx transport (tests inject a MockTransport).
        """
        self._api_key = api_key
        self._email_from = email_from
        self._ttl_minutes = ttl_minutes
        self._transport = transport

    async def send_magic_link(self, *, to_email: str, verify_url: str) -> None:
        """Send a magic link sign-in email.

        Args:
            to_email: Recipient email address.
            verify_url: Link to the verify endpoint, token included.
        """
        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                resp = await client.post(
                    _RESEND_API_URL,
                    headers={"Authorization": f"Bearer {self._api_key}"},
                    json={
                        "from": self._email_from,
                        "to": to_email,
                        "subject": "Sign in to the Métrica admin panel",
                        "text": (
                            f"Click this link to sign in:\n\n{verify_url}\n\n"
                            f"This link expires in {self._ttl_minutes} minutes "
                            "and can be used once. "
                            "If you didn't request this, you can safely ignore this email."
                        ),
                    },
                    timeout=_RESEND_TIMEOUT,
                )
                resp.raise_for_status()
        except Exception:
            logger.warning("Failed to send magic link email", exc_info=True)


class LoggingEmailSender:
    """Development sender: logs the link instead of emailing it."""

    async def send_magic_link(self, *, to_email: str, verify_url: str) -> None:
        logger.info("Magic link for %s: %s", to_email, verify_url)


def build_email_sender(settings: Settings) -> EmailSender:
    """Pick the sender for the configured environment.

    Resend when an API key is configured; otherwise the logging sender,
    which is refused in production because it would write live links to logs.

    Raises:
        ValueError: In production without RESEND_API_KEY.
    """
    api_key = settings.resend_api_key.get_secret_value()
    if api_key:
        return ResendEmailSender(
            api_key=api_key,
            email_from=settings.email_from,
            ttl_minutes=settings.magic_link_ttl_minutes,
        )
    if settings.environment == "production":
        msg = "RESEND_API_KEY must be set in production to deliver magic links."
        raise ValueError(msg)
    return LoggingEmailSender()
