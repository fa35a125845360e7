"""Outbound email for one-time passcodes."""

import logging

import httpx

from src.config import Settings, get_settings
from src.models.enums import OtpPurpose
from src.services.errors import SystemFailureError

logger = logging.getLogger(__name__)

SENDGRID_SEND_URL = "https://api.sendgrid.com/v3/mail/send"


class MailSender:
    """Delivers a plain-text message. ``send`` reports success, never raises."""

    def send(self, to: str, subject: str, body: str) -> bool:
        raise NotImplementedError


class SendGridMailSender(MailSender):
    """Sends mail through the SendGrid v3 REST API."""

    def __init__(self, api_key: str, from_email: str, timeout: float = 10.0) -> None:
        self.api_key = api_key
        self.from_email = from_email
        self.timeout = timeout

    def send(self, to: str, subject: str, body: str) -> bool:
        payload = {
            "personalizations": [{"to": [{"email": to}]}],
            "from": {"email": self.from_email},
            "subject": subject,
            "content": [{"type": "text/plain", "value": body}],
        }
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(
                    SENDGRID_SEND_URL,
                    json=payload,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"SendGrid delivery to {to} failed: {e}")
            return False
        logger.info(f"Sent '{subject}' to {to}")
        return True


class LoggingMailSender(MailSender):
    """Used when no mail provider is configured: logs instead of delivering."""

    def send(self, to: str, subject: str, body: str) -> bool:
        logger.warning(f"Mail provider not configured, '{subject}' to {to} was not delivered")
        return False


def build_mail_sender(settings: Settings | None = None) -> MailSender:
    """Pick the configured mail transport."""
    settings = settings or get_settings()
    if settings.sendgrid_api_key:
        return SendGridMailSender(settings.sendgrid_api_key, settings.mail_from)
    return LoggingMailSender()


def render_otp_email(
    code: str,
    purpose: OtpPurpose,
    settings: Settings,
    username: str | None = None,
) -> tuple[str, str]:
    """Subject and body for an OTP message."""
    greeting = f"Hello {username}," if username else "Hello,"
    if purpose == OtpPurpose.PASSWORD_RESET:
        subject = f"[{settings.app_name}] Your password reset code"
        action = "reset your password"
    else:
        subject = f"[{settings.app_name}] Your email verification code"
        action = "verify your email address"

    body = (
        f"{greeting}\n\n"
        f"Use the code below to {action}:\n\n"
        f"    {code}\n\n"
        f"The code expires in {settings.otp_expire_minutes} minutes. "
        f"If you did not request it, you can ignore this email.\n\n"
        f"{settings.app_name}"
    )
    return subject, body


def deliver_otp(
    mail_sender: MailSender,
    email: str,
    code: str,
    purpose: OtpPurpose,
    settings: Settings,
    username: str | None = None,
    raise_on_failure: bool = True,
) -> bool:
    """Email a freshly issued code.

    Outside production an undelivered code still counts as sent: it stays
    in the ledger and can be read back through the debug endpoint. In
    production a failed delivery raises SystemFailureError unless the
    caller opts out with ``raise_on_failure=False``.
    """
    subject, body = render_otp_email(code, purpose, settings, username)
    if mail_sender.send(email, subject, body):
        return True

    if not settings.is_production:
        logger.warning(
            f"{purpose.value} code for {email} was not delivered; "
            f"it can be read from /debug/otp/{email} outside production"
        )
        return True

    logger.error(f"Failed to deliver {purpose.value} code to {email}")
    if raise_on_failure:
        raise SystemFailureError("Could not send the verification code. Please try again later.")
    return False
