"""SQLAlchemy models."""

from src.models.otp import OtpRecord
from src.models.user import User

__all__ = [
    "User",
    "OtpRecord",
]
