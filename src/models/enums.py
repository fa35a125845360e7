"""Enums for model fields."""

from enum import Enum


class UserRole(str, Enum):
    """Account roles. Self-registration always yields CUSTOMER."""

    ADMIN = "admin"
    SHIPPER = "shipper"
    CUSTOMER = "customer"


class OtpPurpose(str, Enum):
    """What a one-time passcode proves."""

    EMAIL_VERIFICATION = "email_verification"
    PASSWORD_RESET = "password_reset"
