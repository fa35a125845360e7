"""Registration workflow: register -> send code -> verify code -> create account.

No ``User`` row is written at registration time. The candidate account
travels inside the OTP record as a pending registration and is only
materialised when the emailed code is verified, so an abandoned signup
leaves nothing behind but an expiring ledger entry.
"""

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.config import Settings, get_settings
from src.models.enums import OtpPurpose, UserRole
from src.models.user import User
from src.services.credential_store import (
    PROFILE_FIELDS,
    CredentialStore,
    materialize_user,
    normalize_email,
)
from src.services.errors import NotFoundError, ValidationError
from src.services.mail import MailSender, deliver_otp
from src.services.otp_ledger import OtpLedger
from src.services.password_reset import PasswordResetService, require_code, require_email
from src.services.passwords import get_password_hash, validate_password_strength
from src.services.timing import utcnow

logger = logging.getLogger(__name__)


@dataclass
class RegistrationResult:
    email: str
    otp_sent: bool


@dataclass
class VerificationResult:
    verified: bool
    user: User | None = None
    user_created: bool = False


class RegistrationService:
    """Orchestrates deferred account creation gated by an email OTP."""

    def __init__(self, db: Session, mail_sender: MailSender, settings: Settings | None = None):
        self.db = db
        self.settings = settings or get_settings()
        self.store = CredentialStore(db)
        self.ledger = OtpLedger(db, self.settings)
        self.mail_sender = mail_sender

    def register(
        self,
        email: str | None,
        username: str | None,
        password: str | None = None,
        password_hash: str | None = None,
        role: str | None = None,
        **profile: Any,
    ) -> RegistrationResult:
        """Validate a signup and email a verification code for it."""
        if not email or not email.strip() or not username or not username.strip():
            raise ValidationError("Email and username are required")
        email = require_email(email)
        username = username.strip()
        if not password and not password_hash:
            raise ValidationError("Password is required")

        if self.store.email_taken(email):
            raise ValidationError("Email is already registered")
        if self.store.username_taken(username):
            raise ValidationError("Username is already taken")

        if password:
            validate_password_strength(password, self.settings)
            password_hash = get_password_hash(password)

        if role is not None and role != UserRole.CUSTOMER.value:
            logger.warning(f"Ignoring requested role '{role}' on self-registration for {username}")

        pending = {
            "email": normalize_email(email),
            "username": username,
            "password_hash": password_hash,
            "role": UserRole.CUSTOMER.value,
            **{k: v for k, v in profile.items() if k in PROFILE_FIELDS and v is not None},
        }
        record = self.ledger.issue(
            email, OtpPurpose.EMAIL_VERIFICATION, user_id=None, pending_registration=pending
        )
        sent = deliver_otp(
            self.mail_sender,
            record.email,
            record.code,
            OtpPurpose.EMAIL_VERIFICATION,
            self.settings,
            username=username,
        )
        logger.info(f"Registration pending for {username}; verification code {record.id} issued")
        return RegistrationResult(email=record.email, otp_sent=sent)

    def send_otp(self, email: str | None, purpose: OtpPurpose = OtpPurpose.EMAIL_VERIFICATION) -> bool:
        """Issue a fresh code for an address (resend)."""
        if purpose == OtpPurpose.PASSWORD_RESET:
            PasswordResetService(self.db, self.mail_sender, self.settings).forgot_password(email)
            return True

        email = require_email(email)
        user = self.store.find_by_email(email)
        if user is not None:
            if user.email_verified:
                raise ValidationError("Email is already verified")
            record = self.ledger.issue(user.email, purpose, user_id=user.id)
            username = user.username
        else:
            latest = self.ledger.find_latest_pending_registration(email)
            if latest is None:
                raise NotFoundError("No pending registration for this email. Please register again.")
            pending = dict(latest.pending_registration)
            record = self.ledger.issue(email, purpose, pending_registration=pending)
            username = pending.get("username")

        return deliver_otp(
            self.mail_sender, record.email, record.code, purpose, self.settings, username=username
        )

    def verify_otp(
        self,
        email: str | None,
        code: str | None,
        purpose: OtpPurpose = OtpPurpose.EMAIL_VERIFICATION,
    ) -> VerificationResult:
        """Consume a code and apply its effect."""
        email = require_email(email)
        code = require_code(code, self.settings)
        record = self.ledger.check(email, code, purpose)

        if purpose != OtpPurpose.EMAIL_VERIFICATION:
            self.ledger.mark_verified(record)
            return VerificationResult(verified=True)

        if record.user_id is not None:
            self.ledger.mark_verified(record)
            user = self.store.mark_email_verified(record.user_id)
            logger.info(f"Email verified for existing user {record.user_id}")
            return VerificationResult(verified=True, user=user)

        if record.pending_registration:
            return self._materialize(record)

        # Stale record with nothing attached
        self.ledger.mark_verified(record)
        logger.info(f"Verified code {record.id} had no account or pending registration")
        return VerificationResult(verified=True)

    def _materialize(self, record) -> VerificationResult:
        pending = record.pending_registration
        if self.store.email_taken(pending["email"]) or self.store.username_taken(pending["username"]):
            raise ValidationError("Email or username has been registered in the meantime")

        user = materialize_user(pending)
        record.verified = True
        record.verified_at = utcnow()
        self.db.add(user)
        try:
            # Account row and consumed code commit together
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.warning(f"Lost race materialising registration from code {record.id}")
            raise ValidationError("Email or username has been registered in the meantime") from None
        self.db.refresh(user)
        logger.info(f"Created customer account {user.id} ({user.username}) after email verification")
        return VerificationResult(verified=True, user=user, user_created=True)
