"""OTP ledger: persistence and lifecycle of one-time verification codes."""

import logging
import secrets
from datetime import timedelta
from typing import Any

from sqlalchemy.orm import Session

from src.config import Settings, get_settings
from src.models.enums import OtpPurpose
from src.models.otp import OtpRecord
from src.services.credential_store import normalize_email
from src.services.errors import (
    OtpInvalidOrExpiredError,
    RateLimitExceededError,
    TooManyOtpAttemptsError,
)
from src.services.timing import utcnow

logger = logging.getLogger(__name__)


class OtpLedger:
    """Creates, matches and consumes OTP records.

    Nothing is ever deleted: expired and consumed rows stay as an audit
    trail and are filtered out at read time.
    """

    def __init__(self, db: Session, settings: Settings | None = None):
        self.db = db
        self.settings = settings or get_settings()

    def generate_code(self) -> str:
        """Random numeric code of the configured length without a leading zero."""
        length = self.settings.otp_length
        low = 10 ** (length - 1)
        return str(low + secrets.randbelow(9 * low))

    def count_recent(self, email: str, purpose: OtpPurpose) -> int:
        since = utcnow() - timedelta(minutes=self.settings.otp_rate_limit_window_minutes)
        return (
            self.db.query(OtpRecord)
            .filter(
                OtpRecord.email == normalize_email(email),
                OtpRecord.purpose == purpose,
                OtpRecord.created_at > since,
            )
            .count()
        )

    def check_rate_limit(self, email: str, purpose: OtpPurpose) -> None:
        """Raise RateLimitExceededError once the rolling window is full."""
        if self.settings.otp_rate_limit_bypass:
            return
        recent = self.count_recent(email, purpose)
        if recent >= self.settings.otp_rate_limit_max:
            logger.warning(
                f"OTP rate limit hit for {purpose.value}: {recent} codes in "
                f"{self.settings.otp_rate_limit_window_minutes} minutes"
            )
            raise RateLimitExceededError(
                f"Too many verification codes requested. Please wait "
                f"{self.settings.otp_rate_limit_window_minutes} minutes before trying again."
            )

    def issue(
        self,
        email: str,
        purpose: OtpPurpose,
        user_id: int | None = None,
        pending_registration: dict[str, Any] | None = None,
    ) -> OtpRecord:
        """Rate-limit, then persist a fresh code."""
        if user_id is None and purpose == OtpPurpose.EMAIL_VERIFICATION and not pending_registration:
            raise ValueError("An OTP without a user needs a pending registration payload")

        self.check_rate_limit(email, purpose)
        now = utcnow()
        record = OtpRecord(
            email=normalize_email(email),
            code=self.generate_code(),
            user_id=user_id,
            purpose=purpose,
            pending_registration=pending_registration,
            expires_at=now + timedelta(minutes=self.settings.otp_expire_minutes),
            verified=False,
            attempts=0,
            created_at=now,
        )
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        return record

    def _live(self, email: str, purpose: OtpPurpose):
        return self.db.query(OtpRecord).filter(
            OtpRecord.email == normalize_email(email),
            OtpRecord.purpose == purpose,
            OtpRecord.verified.is_(False),
            OtpRecord.expires_at > utcnow(),
        )

    def find_latest(self, email: str, purpose: OtpPurpose) -> OtpRecord | None:
        """Most recent unexpired, unconsumed record regardless of code."""
        return (
            self._live(email, purpose)
            .order_by(OtpRecord.created_at.desc(), OtpRecord.id.desc())
            .first()
        )

    def find_latest_pending_registration(self, email: str) -> OtpRecord | None:
        return (
            self._live(email, OtpPurpose.EMAIL_VERIFICATION)
            .filter(OtpRecord.user_id.is_(None), OtpRecord.pending_registration.isnot(None))
            .order_by(OtpRecord.created_at.desc(), OtpRecord.id.desc())
            .first()
        )

    def increment_attempts(self, record: OtpRecord) -> None:
        """Count a failed guess; the counter saturates at the ceiling."""
        self.db.query(OtpRecord).filter(
            OtpRecord.id == record.id,
            OtpRecord.attempts < self.settings.otp_max_attempts,
        ).update({OtpRecord.attempts: OtpRecord.attempts + 1}, synchronize_session=False)
        self.db.commit()

    def mark_verified(self, record: OtpRecord) -> None:
        """Consume the record; it can never match again."""
        record.verified = True
        record.verified_at = utcnow()
        self.db.commit()

    def check(self, email: str, code: str, purpose: OtpPurpose) -> OtpRecord:
        """Match a submitted code against the newest live record without consuming it.

        Only the most recent unexpired, unconsumed record is trusted, so a
        resend retires earlier codes. A miss charges one attempt to that
        record; once it reaches the ceiling every submission is refused.
        """
        record = self.find_latest(email, purpose)
        if record is None:
            logger.warning(f"Rejected {purpose.value} code (no live record)")
            raise OtpInvalidOrExpiredError()

        if record.attempts >= self.settings.otp_max_attempts:
            logger.warning(f"Rejected {purpose.value} code {record.id}: attempts exhausted")
            raise TooManyOtpAttemptsError()

        if not secrets.compare_digest(record.code, code):
            self.increment_attempts(record)
            logger.warning(f"Rejected {purpose.value} code {record.id}: mismatch")
            raise OtpInvalidOrExpiredError()
        return record
