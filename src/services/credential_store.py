"""Credential store: data access for user identity rows and their counters."""

import logging
import re
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from src.models.enums import UserRole
from src.models.user import User
from src.services.passwords import get_password_hash
from src.services.timing import utcnow

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# Optional profile fields a registrant may supply and later edit
PROFILE_FIELDS = ("first_name", "last_name", "phone")


def normalize_email(email: str) -> str:
    return email.strip().lower()


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_PATTERN.match(email.strip()))


def materialize_user(pending: dict[str, Any]) -> User:
    """Build a new, unsaved customer account from a pending registration.

    Role, activation and verification are forced regardless of what the
    payload says.
    """
    profile = {field: pending.get(field) for field in PROFILE_FIELDS}
    return User(
        email=normalize_email(pending["email"]),
        username=pending["username"].strip(),
        password_hash=pending["password_hash"],
        role=UserRole.CUSTOMER,
        is_active=True,
        email_verified=True,
        failed_login_attempts=0,
        **profile,
    )


class CredentialStore:
    """Reads and writes ``User`` rows. No business rules live here."""

    def __init__(self, db: Session):
        self.db = db

    # Lookups

    def get(self, user_id: int) -> User | None:
        return self.db.query(User).filter(User.id == user_id, User.live()).first()

    def find_by_email(self, email: str) -> User | None:
        return (
            self.db.query(User)
            .filter(User.email == normalize_email(email), User.live())
            .first()
        )

    def find_by_username(self, username: str) -> User | None:
        return self.db.query(User).filter(User.username == username.strip(), User.live()).first()

    def find_by_identifier(self, identifier: str) -> User | None:
        """Email if the identifier contains '@', otherwise username."""
        if "@" in identifier:
            return self.find_by_email(identifier)
        return self.find_by_username(identifier)

    def email_taken(self, email: str) -> bool:
        """Uniqueness check; soft-deleted rows still reserve their email."""
        return (
            self.db.query(User.id).filter(User.email == normalize_email(email)).first() is not None
        )

    def username_taken(self, username: str) -> bool:
        return self.db.query(User.id).filter(User.username == username.strip()).first() is not None

    # Creation

    def add(self, user: User) -> User:
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user

    def create_user(
        self,
        email: str,
        username: str,
        password: str,
        role: UserRole = UserRole.CUSTOMER,
        *,
        is_active: bool = True,
        email_verified: bool = True,
        **profile: Any,
    ) -> User:
        """Administrative creation of an account of any role."""
        user = User(
            email=normalize_email(email),
            username=username.strip(),
            password_hash=get_password_hash(password),
            role=role,
            is_active=is_active,
            email_verified=email_verified,
            failed_login_attempts=0,
            **{k: v for k, v in profile.items() if k in PROFILE_FIELDS},
        )
        self.add(user)
        logger.info(f"Created {role.value} account {user.id} ({user.username})")
        return user

    # Login counters

    def record_failed_login(self, user: User, when: datetime | None = None) -> int:
        """Atomically increment the failed-login counter and return the new value."""
        when = when or utcnow()
        self.db.query(User).filter(User.id == user.id).update(
            {
                User.failed_login_attempts: User.failed_login_attempts + 1,
                User.last_failed_login: when,
            },
            synchronize_session=False,
        )
        self.db.commit()
        self.db.refresh(user)
        return user.failed_login_attempts

    def reset_failed_logins(self, user: User) -> None:
        user.failed_login_attempts = 0
        self.db.commit()

    def record_successful_login(self, user: User, when: datetime | None = None) -> None:
        user.failed_login_attempts = 0
        user.last_login = when or utcnow()
        self.db.commit()

    # Refresh token slot

    def set_refresh_token(self, user: User, token: str, issued_at: datetime | None = None) -> None:
        """Replace the single live refresh token."""
        user.refresh_token = token
        user.refresh_token_issued_at = issued_at or utcnow()
        self.db.commit()

    def clear_refresh_token(self, user_id: int, token: str) -> bool:
        """Drop the stored refresh token only if it is the one presented."""
        cleared = (
            self.db.query(User)
            .filter(User.id == user_id, User.refresh_token == token)
            .update(
                {User.refresh_token: None, User.refresh_token_issued_at: None},
                synchronize_session=False,
            )
        )
        self.db.commit()
        return cleared > 0

    # Account state

    def mark_email_verified(self, user_id: int) -> User | None:
        user = self.db.query(User).filter(User.id == user_id).first()
        if user is None:
            return None
        user.email_verified = True
        self.db.commit()
        return user

    def update_profile(self, user: User, **fields: Any) -> User:
        """Apply profile edits. Keys outside PROFILE_FIELDS are ignored."""
        for field in PROFILE_FIELDS:
            if field in fields:
                setattr(user, field, fields[field])
        self.db.commit()
        self.db.refresh(user)
        logger.info(f"Updated profile for account {user.id}")
        return user

    def update_password(self, user: User, password_hash: str) -> None:
        """Store a new hash and clear any lockout counter."""
        user.password_hash = password_hash
        user.failed_login_attempts = 0
        self.db.commit()

    def soft_delete(self, user: User) -> None:
        user.soft_delete(utcnow())
        user.refresh_token = None
        user.refresh_token_issued_at = None
        self.db.commit()
        logger.info(f"Soft-deleted account {user.id}")

    def restore(self, user_id: int) -> User | None:
        user = self.db.query(User).filter(User.id == user_id).first()
        if user is None:
            return None
        user.restore()
        self.db.commit()
        logger.info(f"Restored account {user.id}")
        return user
