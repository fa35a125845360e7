"""Password reset workflow: forgot-password -> verify code -> reset."""

import logging

from sqlalchemy.orm import Session

from src.config import Settings, get_settings
from src.models.enums import OtpPurpose
from src.services.credential_store import CredentialStore, is_valid_email
from src.services.errors import ForbiddenError, NotFoundError, ValidationError
from src.services.mail import MailSender, deliver_otp
from src.services.otp_ledger import OtpLedger
from src.services.passwords import get_password_hash, validate_password_strength, verify_password

logger = logging.getLogger(__name__)

GENERIC_RESET_MESSAGE = (
    "If an account exists for this email, a password reset code has been sent to it."
)


def require_email(email: str | None) -> str:
    if not email or not email.strip():
        raise ValidationError("Email is required")
    if not is_valid_email(email):
        raise ValidationError("Email address is not valid")
    return email.strip()


def require_code(code: str | None, settings: Settings) -> str:
    code = (code or "").strip()
    if len(code) != settings.otp_length or not code.isdigit():
        raise ValidationError(f"Verification code must be {settings.otp_length} digits")
    return code


class PasswordResetService:
    """Resets a customer's password after proving control of their email."""

    def __init__(self, db: Session, mail_sender: MailSender, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self.store = CredentialStore(db)
        self.ledger = OtpLedger(db, self.settings)
        self.mail_sender = mail_sender

    def forgot_password(self, email: str | None) -> str:
        """Send a reset code if the account exists.

        The same message is returned whether or not the email is known.
        """
        email = require_email(email)
        user = self.store.find_by_email(email)
        if user is None or not user.is_active:
            logger.info("Password reset requested for an unknown or inactive account")
            return GENERIC_RESET_MESSAGE

        if not user.is_customer:
            logger.warning(f"Password reset by email refused for staff account {user.id}")
            raise ForbiddenError("Password reset by email is only available for customer accounts")

        record = self.ledger.issue(user.email, OtpPurpose.PASSWORD_RESET, user_id=user.id)
        deliver_otp(
            self.mail_sender,
            user.email,
            record.code,
            OtpPurpose.PASSWORD_RESET,
            self.settings,
            username=user.username,
            raise_on_failure=False,
        )
        logger.info(f"Issued password reset code {record.id} for user {user.id}")
        return GENERIC_RESET_MESSAGE

    def verify_forgot_password_otp(self, email: str | None, code: str | None) -> bool:
        """Pre-check a reset code. The record is not consumed."""
        email = require_email(email)
        code = require_code(code, self.settings)
        record = self.ledger.check(email, code, OtpPurpose.PASSWORD_RESET)
        if record.user_id is None or self.store.get(record.user_id) is None:
            raise NotFoundError("Account not found")
        return True

    def reset_password(self, email: str | None, code: str | None, new_password: str | None) -> None:
        """Set a new password, then consume the code.

        The code is marked verified only after the new hash is stored, so a
        failed update leaves it usable for a retry.
        """
        email = require_email(email)
        code = require_code(code, self.settings)
        if not new_password:
            raise ValidationError("New password is required")

        record = self.ledger.check(email, code, OtpPurpose.PASSWORD_RESET)
        validate_password_strength(new_password, self.settings)

        user = self.store.get(record.user_id) if record.user_id is not None else None
        if user is None:
            raise NotFoundError("Account not found")
        if verify_password(new_password, user.password_hash):
            raise ValidationError("New password must be different from the current password")

        self.store.update_password(user, get_password_hash(new_password))
        self.ledger.mark_verified(record)
        logger.info(f"Password reset completed for user {user.id}")
