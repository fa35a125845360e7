"""Credential verification: login with lockout and enumeration resistance."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.config import Settings, get_settings
from src.models.user import User
from src.services.credential_store import CredentialStore, is_valid_email
from src.services.errors import (
    AuthenticationError,
    EmailNotVerifiedError,
    InactiveAccountError,
    LockedError,
    SystemFailureError,
    ValidationError,
)
from src.services.passwords import verify_password
from src.services.timing import ResponseTimer, as_utc, utcnow
from src.services.tokens import TokenService, claims_for_user

logger = logging.getLogger(__name__)


@dataclass
class LoginResult:
    access_token: str
    refresh_token: str
    user: User
    expires_in: int


class AuthService:
    """Verifies credentials and opens a session.

    "Unknown account" and "wrong password" produce the same error and are
    padded to the same minimum response time.
    """

    def __init__(
        self,
        db: Session,
        settings: Settings | None = None,
        token_service: TokenService | None = None,
        timer_factory: Callable[[], ResponseTimer] = ResponseTimer,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.store = CredentialStore(db)
        self.tokens = token_service or TokenService(self.settings)
        self.timer_factory = timer_factory

    @property
    def lockout_duration(self) -> timedelta:
        return timedelta(minutes=self.settings.lockout_duration_minutes)

    def login(self, identifier: str | None, password: str | None) -> LoginResult:
        """Authenticate by email or username and issue access/refresh tokens."""
        timer = self.timer_factory()

        if not password or not password.strip():
            raise ValidationError("Password is required")
        if not identifier or not identifier.strip():
            raise ValidationError("Email or username is required")
        identifier = identifier.strip()
        if "@" in identifier and not is_valid_email(identifier):
            raise ValidationError("Email address is not valid")

        try:
            user = self.store.find_by_identifier(identifier)
        except SQLAlchemyError:
            logger.exception("Storage fault during login lookup")
            self.db.rollback()
            timer.pad(self.settings.system_error_min_seconds)
            raise SystemFailureError() from None

        if user is None:
            logger.warning("Login failed: no matching account")
            timer.pad(self.settings.login_failure_min_seconds)
            raise AuthenticationError()

        self._check_lockout(user)

        if not user.is_active:
            logger.warning(f"Login refused for inactive user {user.id}")
            raise InactiveAccountError()
        if not user.email_verified:
            logger.warning(f"Login refused for unverified user {user.id}")
            raise EmailNotVerifiedError(user.email)

        if not verify_password(password, user.password_hash):
            attempts = self.store.record_failed_login(user)
            remaining = max(0, self.settings.max_failed_login_attempts - attempts)
            logger.warning(
                f"Login failed for user {user.id}: wrong password "
                f"({attempts}/{self.settings.max_failed_login_attempts})"
            )
            timer.pad(self.settings.login_failure_min_seconds)
            raise AuthenticationError(remaining_attempts=remaining)

        return self._open_session(user)

    def _check_lockout(self, user: User) -> None:
        """Raise LockedError while locked; clear the counter once the lock lapses."""
        if user.failed_login_attempts < self.settings.max_failed_login_attempts:
            return

        last_failure = as_utc(user.last_failed_login or user.updated_at) or utcnow()
        lockout_expiry = last_failure + self.lockout_duration
        now = utcnow()
        if now < lockout_expiry:
            minutes_left = max(1, int((lockout_expiry - now).total_seconds() // 60) + 1)
            logger.warning(f"Login blocked for locked user {user.id} ({minutes_left} min left)")
            raise LockedError(
                lockout_expiry,
                f"Account is locked after too many failed login attempts. "
                f"Please try again in {minutes_left} minutes.",
            )

        logger.info(f"Lockout expired for user {user.id}, resetting failed attempts")
        self.store.reset_failed_logins(user)

    def _open_session(self, user: User) -> LoginResult:
        now = utcnow()
        self.store.record_successful_login(user, now)

        claims = claims_for_user(user)
        access_token = self.tokens.issue_access_token(claims)
        refresh_token = self.tokens.issue_refresh_token(claims)

        try:
            self.store.set_refresh_token(user, refresh_token, now)
        except SQLAlchemyError:
            # The login stands even if the refresh token could not be stored
            logger.exception(f"Failed to store refresh token for user {user.id}")
            self.db.rollback()

        logger.info(f"Login successful for user {user.id} ({user.username})")
        return LoginResult(
            access_token=access_token,
            refresh_token=refresh_token,
            user=user,
            expires_in=self.settings.access_token_expire_seconds,
        )
