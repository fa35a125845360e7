"""Tests for credential verification, lockout and session opening."""

from datetime import datetime, timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from src.models.enums import UserRole
from src.services.auth import AuthService
from src.services.errors import (
    AuthenticationError,
    EmailNotVerifiedError,
    InactiveAccountError,
    LockedError,
    SystemFailureError,
    ValidationError,
)
from src.services.timing import as_utc, utcnow
from src.services.tokens import TokenKind, TokenService


class RecordingTimer:
    """Stands in for ResponseTimer and remembers requested padding."""

    def __init__(self):
        self.pads: list[float] = []

    def pad(self, min_seconds: float) -> float:
        self.pads.append(min_seconds)
        return 0.0


@pytest.fixture
def timer():
    return RecordingTimer()


@pytest.fixture
def auth_service(db, settings, timer):
    return AuthService(db, settings, timer_factory=lambda: timer)


class TestLoginValidation:
    """Malformed input is rejected before any lookup."""

    def test_missing_password(self, auth_service):
        with pytest.raises(ValidationError, match="Password is required"):
            auth_service.login("alice@example.com", "")

    def test_missing_identifier(self, auth_service, password):
        with pytest.raises(ValidationError, match="Email or username is required"):
            auth_service.login("   ", password)

    def test_malformed_email(self, auth_service, password):
        with pytest.raises(ValidationError, match="not valid"):
            auth_service.login("alice@example", password)


class TestLoginSuccess:
    def test_login_by_email(self, auth_service, customer, password, settings):
        """A correct login returns both tokens and the account."""
        result = auth_service.login("alice@example.com", password)

        assert result.user.id == customer.id
        assert result.expires_in == settings.access_token_expire_minutes * 60
        tokens = TokenService(settings)
        access = tokens.verify(result.access_token, TokenKind.ACCESS)
        refresh = tokens.verify(result.refresh_token, TokenKind.REFRESH)
        assert access["user_id"] == customer.id
        assert access["role"] == "customer"
        assert refresh["user_id"] == customer.id

    def test_login_by_username(self, auth_service, customer, password):
        result = auth_service.login("alice", password)
        assert result.user.id == customer.id

    def test_email_is_case_insensitive(self, auth_service, customer, password):
        result = auth_service.login("  Alice@Example.COM ", password)
        assert result.user.id == customer.id

    def test_success_resets_counter_and_records_login(self, auth_service, db, customer, password):
        customer.failed_login_attempts = 3
        db.commit()

        auth_service.login("alice", password)
        db.refresh(customer)

        assert customer.failed_login_attempts == 0
        assert customer.last_login is not None

    def test_success_replaces_stored_refresh_token(self, auth_service, db, customer, password):
        """Only the newest refresh token is kept."""
        first = auth_service.login("alice", password)
        second = auth_service.login("alice", password)
        db.refresh(customer)

        assert first.refresh_token != second.refresh_token
        assert customer.refresh_token == second.refresh_token

    def test_staff_can_log_in(self, auth_service, make_user, password):
        admin = make_user(email="boss@example.com", username="boss", role=UserRole.ADMIN)
        result = auth_service.login("boss@example.com", password)
        assert result.user.id == admin.id

    def test_refresh_token_store_failure_does_not_fail_login(
        self, auth_service, customer, password
    ):
        with patch.object(
            auth_service.store,
            "set_refresh_token",
            side_effect=OperationalError("UPDATE users", {}, Exception("disk I/O error")),
        ):
            result = auth_service.login("alice", password)

        assert result.access_token
        assert result.refresh_token


class TestLoginFailures:
    def test_unknown_account_and_wrong_password_look_the_same(
        self, auth_service, customer, settings, timer
    ):
        """Both failures raise the same error and are padded equally."""
        with pytest.raises(AuthenticationError) as unknown:
            auth_service.login("nobody@example.com", "Wr0ng!pass")
        with pytest.raises(AuthenticationError) as wrong:
            auth_service.login("alice@example.com", "Wr0ng!pass")

        assert unknown.value.message == wrong.value.message
        assert unknown.value.status_code == wrong.value.status_code == 401
        assert timer.pads == [settings.login_failure_min_seconds] * 2

    def test_wrong_password_counts_down_remaining_attempts(self, auth_service, db, customer):
        remaining = []
        for _ in range(5):
            with pytest.raises(AuthenticationError) as exc_info:
                auth_service.login("alice", "Wr0ng!pass")
            remaining.append(exc_info.value.remaining_attempts)

        db.refresh(customer)
        assert remaining == [4, 3, 2, 1, 0]
        assert customer.failed_login_attempts == 5
        assert customer.last_failed_login is not None

    def test_inactive_account(self, auth_service, make_user, password):
        make_user(email="gone@example.com", username="gone", is_active=False)
        with pytest.raises(InactiveAccountError):
            auth_service.login("gone", password)

    def test_unverified_email(self, auth_service, make_user, password):
        make_user(email="new@example.com", username="newbie", email_verified=False)
        with pytest.raises(EmailNotVerifiedError) as exc_info:
            auth_service.login("newbie", password)

        assert exc_info.value.status_code == 403
        assert exc_info.value.extra["email"] == "new@example.com"
        assert exc_info.value.extra["requiresEmailVerification"] is True

    def test_soft_deleted_account_is_unknown(self, auth_service, store, customer, password):
        store.soft_delete(customer)
        with pytest.raises(AuthenticationError):
            auth_service.login("alice", password)

    def test_storage_fault_is_system_error(self, auth_service, settings, timer, password):
        with patch.object(
            auth_service.store,
            "find_by_identifier",
            side_effect=OperationalError("SELECT", {}, Exception("connection refused")),
        ):
            with pytest.raises(SystemFailureError) as exc_info:
                auth_service.login("alice", password)

        assert exc_info.value.status_code == 500
        assert "connection refused" not in exc_info.value.message
        assert timer.pads == [settings.system_error_min_seconds]


class TestLockout:
    def _fail(self, auth_service, times):
        for _ in range(times):
            with pytest.raises(AuthenticationError):
                auth_service.login("alice", "Wr0ng!pass")

    def test_correct_password_is_locked_out_after_max_failures(
        self, auth_service, customer, password
    ):
        self._fail(auth_service, 5)

        with pytest.raises(LockedError) as exc_info:
            auth_service.login("alice", password)

        assert exc_info.value.status_code == 423
        assert exc_info.value.lockout_expiry > utcnow() + timedelta(minutes=29)
        expiry = datetime.fromisoformat(exc_info.value.extra["lockoutExpiry"])
        assert expiry == exc_info.value.lockout_expiry

    def test_lockout_precedes_inactive_check(self, auth_service, db, customer, password):
        self._fail(auth_service, 5)
        customer.is_active = False
        db.commit()

        with pytest.raises(LockedError):
            auth_service.login("alice", password)

    def test_lockout_expires(self, auth_service, db, customer, password):
        """After the lockout window the counter resets and login succeeds."""
        self._fail(auth_service, 5)
        customer.last_failed_login = utcnow() - timedelta(minutes=31)
        db.commit()

        result = auth_service.login("alice", password)
        db.refresh(customer)

        assert result.user.id == customer.id
        assert customer.failed_login_attempts == 0

    def test_expired_lockout_with_wrong_password_starts_a_new_count(
        self, auth_service, db, customer
    ):
        self._fail(auth_service, 5)
        customer.last_failed_login = utcnow() - timedelta(minutes=31)
        db.commit()

        with pytest.raises(AuthenticationError) as exc_info:
            auth_service.login("alice", "Wr0ng!pass")

        assert exc_info.value.remaining_attempts == 4

    def test_lockout_expiry_counts_from_last_failure(self, auth_service, db, customer, settings):
        self._fail(auth_service, 5)
        db.refresh(customer)
        last_failure = as_utc(customer.last_failed_login)

        with pytest.raises(LockedError) as exc_info:
            auth_service.login("alice", "Wr0ng!pass")

        assert exc_info.value.lockout_expiry == last_failure + timedelta(
            minutes=settings.lockout_duration_minutes
        )
