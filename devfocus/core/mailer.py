"""
DevFocus - Email Delivery
=========================

Sends one-time verification / password-reset codes through the SendGrid v3
mail API. Without an API key the mailer runs in logging-only mode (the code
is written to the log instead of sent), which is what development and tests
use.
"""

import secrets
from dataclasses import dataclass
from typing import Literal, Optional

import httpx
import structlog

from devfocus.core.config import settings
from devfocus.core.exceptions import EmailDeliveryError

logger = structlog.get_logger()

OTPPurpose = Literal["verify", "reset"]

SUBJECTS: dict[str, str] = {
    "verify": "Your DevFocus verification code",
    "reset": "Your DevFocus password reset code",
}


def generate_otp(length: Optional[int] = None) -> str:
    """Generate a numeric one-time code (no leading-zero loss)."""
    length = length or settings.OTP_LENGTH
    return "".join(secrets.choice("0123456789") for _ in range(length))


def render_otp_email(name: str, otp: str, purpose: OTPPurpose) -> str:
    """HTML body for a one-time code email."""
    if purpose == "reset":
        intro = "Use the code below to reset your DevFocus password."
    else:
        intro = "Welcome to DevFocus! Verify your email address with the code below."
    return f"""\
<!DOCTYPE html>
<html>
  <body style="font-family: 'Segoe UI', Tahoma, sans-serif; background: #f4f4f4; padding: 20px;">
    <div style="max-width: 600px; margin: 0 auto; background: white; border-radius: 10px; padding: 30px;">
      <h2 style="color: #333;">Hi {name}!</h2>
      <p style="color: #666;">{intro}</p>
      <p style="font-size: 36px; font-weight: bold; letter-spacing: 8px; color: #667eea;">{otp}</p>
      <p style="color: #999; font-size: 12px;">Valid for {settings.OTP_EXPIRE_MINUTES} minutes.
      If you didn't request this, you can safely ignore this email.</p>
    </div>
  </body>
</html>
"""


@dataclass
class SentEmail:
    """Record of an email handed to the provider (or logged)."""
    to: str
    subject: str
    otp: str
    purpose: OTPPurpose


class Mailer:
    """
    SendGrid mail client.

    Usage:
        mailer = Mailer()
        await mailer.send_otp("ada@example.com", "Ada", "123456", "verify")
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.SENDGRID_API_KEY
        self.api_url = api_url or settings.SENDGRID_API_URL
        self._client = client or httpx.AsyncClient(timeout=30.0)

    @property
    def enabled(self) -> bool:
        """Check if SendGrid is configured."""
        return bool(self.api_key)

    async def send_otp(
        self,
        email: str,
        name: str,
        otp: str,
        purpose: OTPPurpose = "verify",
    ) -> SentEmail:
        """
        Send a one-time code.

        Raises:
            EmailDeliveryError: If the provider rejects the message or is unreachable
        """
        subject = SUBJECTS[purpose]
        sent = SentEmail(to=email, subject=subject, otp=otp, purpose=purpose)

        if not self.enabled:
            logger.info(
                "otp_email_logged",
                to=email,
                purpose=purpose,
                otp=otp if settings.is_development else "***",
                mode="disabled",
            )
            return sent

        payload = {
            "personalizations": [{"to": [{"email": email, "name": name}]}],
            "from": {"email": settings.EMAIL_FROM, "name": settings.EMAIL_FROM_NAME},
            "subject": subject,
            "content": [
                {"type": "text/html", "value": render_otp_email(name, otp, purpose)}
            ],
        }

        try:
            response = await self._client.post(
                self.api_url,
                json=payload,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
            )
        except httpx.HTTPError as e:
            logger.error("otp_email_transport_error", to=email, error=str(e))
            raise EmailDeliveryError("Failed to send verification email") from e

        if response.status_code >= 400:
            logger.error(
                "otp_email_rejected",
                to=email,
                status_code=response.status_code,
                body=response.text[:500],
            )
            raise EmailDeliveryError("Failed to send verification email")

        logger.info("otp_email_sent", to=email, purpose=purpose)
        return sent

    async def close(self) -> None:
        await self._client.aclose()


_mailer: Optional[Mailer] = None


def get_mailer() -> Mailer:
    """FastAPI dependency returning the process-wide mailer."""
    global _mailer
    if _mailer is None:
        _mailer = Mailer()
    return _mailer


async def close_mailer() -> None:
    """Close the process-wide mailer's HTTP client, if one was created."""
    global _mailer
    if _mailer is not None:
        await _mailer.close()
        _mailer = None
