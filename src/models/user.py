"""User model."""

from sqlalchemy import Boolean, Column, DateTime, Enum, Integer, String, Text

from src.database import Base
from src.models.enums import UserRole
from src.models.mixins import SoftDeleteMixin, TimestampMixin


class User(Base, TimestampMixin, SoftDeleteMixin):
    """Identity record with its login security counters.

    A row exists only after administrative creation or a successful
    email-verification OTP for a pending registration.
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(100), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)  # stored lower-cased
    password_hash = Column(String(255), nullable=False)
    role = Column(
        Enum(
            UserRole,
            name="userrole",
            values_callable=lambda x: [e.value for e in x],
        ),
        default=UserRole.CUSTOMER,
        nullable=False,
    )
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    phone = Column(String(30), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)
    email_verified = Column(Boolean, default=False, nullable=False)

    failed_login_attempts = Column(Integer, default=0, nullable=False)
    last_failed_login = Column(DateTime(timezone=True), nullable=True)
    last_login = Column(DateTime(timezone=True), nullable=True)

    # Single live refresh token; each login overwrites it.
    refresh_token = Column(Text, nullable=True)
    refresh_token_issued_at = Column(DateTime(timezone=True), nullable=True)

    @property
    def is_customer(self) -> bool:
        return self.role == UserRole.CUSTOMER
