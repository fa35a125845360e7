"""Password hashing and password policy."""

import logging
import re

from passlib.context import CryptContext

from src.config import Settings
from src.services.errors import ValidationError

logger = logging.getLogger(__name__)

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

SPECIAL_CHARACTERS = re.compile(r"[!@#$%^&*()_+\-=\[\]{};':\"\\|,.<>/?]")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash. Malformed hashes never match."""
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError) as e:
        logger.error(f"Unverifiable password hash: {e}")
        return False


def get_password_hash(password: str) -> str:
    """Hash a password."""
    return pwd_context.hash(password)


def password_problems(password: str, settings: Settings) -> list[str]:
    """List every rule the password breaks (empty list means acceptable)."""
    problems = []
    if len(password) < settings.password_min_length:
        problems.append(f"at least {settings.password_min_length} characters")
    if len(password) > settings.password_max_length:
        problems.append(f"at most {settings.password_max_length} characters")
    if not re.search(r"[A-Z]", password):
        problems.append("an uppercase letter")
    if not re.search(r"[a-z]", password):
        problems.append("a lowercase letter")
    if not re.search(r"[0-9]", password):
        problems.append("a digit")
    if not SPECIAL_CHARACTERS.search(password):
        problems.append("a special character")
    return problems


def validate_password_strength(password: str, settings: Settings) -> None:
    """Raise ValidationError unless the password satisfies the policy."""
    problems = password_problems(password, settings)
    if problems:
        raise ValidationError(
            "Password must contain " + ", ".join(problems),
            passwordRequirements=problems,
        )
