"""One-time passcode ledger model."""

from datetime import UTC, datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, Enum, ForeignKey, Index, Integer, String

from src.database import Base
from src.models.enums import OtpPurpose


class OtpRecord(Base):
    """A one-time verification ticket sent by email.

    Records are never deleted; expiry is decided at read time by comparing
    ``expires_at`` with the current time. When ``user_id`` is null the
    record carries the candidate account in ``pending_registration``.
    """

    __tablename__ = "otp_records"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), nullable=False)
    code = Column(String(10), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    purpose = Column(
        Enum(
            OtpPurpose,
            name="otppurpose",
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
    )
    pending_registration = Column(JSON(none_as_null=True), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    verified = Column(Boolean, default=False, nullable=False)
    attempts = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False)
    verified_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (Index("ix_otp_records_email_purpose_created", "email", "purpose", "created_at"),)
