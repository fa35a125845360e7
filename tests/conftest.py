"""Pytest configuration and fixtures."""

import os
import re
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from src.api.dependencies import get_mail_sender
from src.config import Settings, get_settings
from src.database import Base, get_db
from src.main import app
from src.models.enums import OtpPurpose, UserRole
from src.models.otp import OtpRecord
from src.services.credential_store import CredentialStore
from src.services.mail import MailSender
from src.services.timing import utcnow

STRONG_PASSWORD = "Str0ng!pass"

# Use test database - PostgreSQL in Docker, SQLite locally
if os.getenv("DATABASE_URL"):
    # Running in Docker - use PostgreSQL test database
    SQLALCHEMY_DATABASE_URL = os.getenv("DATABASE_URL").replace("/storefront", "/storefront_test")
else:
    # Running locally - use SQLite
    SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

connect_args = {"check_same_thread": False} if "sqlite" in SQLALCHEMY_DATABASE_URL else {}
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args=connect_args)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class FakeMailSender(MailSender):
    """Records outgoing mail instead of sending it."""

    def __init__(self, succeed: bool = True):
        self.succeed = succeed
        self.sent: list[dict] = []

    def send(self, to: str, subject: str, body: str) -> bool:
        self.sent.append({"to": to, "subject": subject, "body": body})
        return self.succeed

    def last_code(self, to: str | None = None) -> str:
        """The code in the most recent message (optionally to one address)."""
        messages = [m for m in self.sent if to is None or m["to"] == to]
        assert messages, "no mail was sent"
        return re.search(r"\b(\d{6})\b", messages[-1]["body"]).group(1)


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """Create test database schema once at the start of the test session."""
    if "postgresql" in SQLALCHEMY_DATABASE_URL:
        # For PostgreSQL, create the test database
        from sqlalchemy_utils import create_database, database_exists

        # Create test database if it doesn't exist
        if not database_exists(SQLALCHEMY_DATABASE_URL):
            create_database(SQLALCHEMY_DATABASE_URL)

    Base.metadata.create_all(bind=engine)
    yield
    # Don't drop database - just leave it for next run (each test cleans up after itself)


@pytest.fixture(scope="function", autouse=True)
def db():
    """Create a fresh database session for each test with cleanup."""
    session = TestingSessionLocal()

    yield session

    # Clean up all data after test
    session.rollback()
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()
    session.close()


@pytest.fixture
def settings():
    """Settings with response padding disabled so tests run fast."""
    return Settings(
        environment="test",
        jwt_secret="test-access-secret",
        jwt_refresh_secret="test-refresh-secret",
        login_failure_min_seconds=0,
        system_error_min_seconds=0,
        otp_rate_limit_bypass=False,
    )


@pytest.fixture
def mail_sender():
    return FakeMailSender()


@pytest.fixture(scope="function")
def client(db, settings, mail_sender):
    """Create a test client with database, settings and mail overrides."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_mail_sender] = lambda: mail_sender
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def store(db):
    return CredentialStore(db)


@pytest.fixture
def make_user(store):
    """Factory for persisted accounts; verified active customers by default."""
    counter = {"n": 0}

    def _make_user(
        email: str | None = None,
        username: str | None = None,
        password: str = STRONG_PASSWORD,
        role: UserRole = UserRole.CUSTOMER,
        **kwargs,
    ):
        counter["n"] += 1
        n = counter["n"]
        return store.create_user(
            email or f"user{n}@example.com",
            username or f"user{n}",
            password,
            role,
            **kwargs,
        )

    return _make_user


@pytest.fixture
def customer(make_user):
    return make_user(email="alice@example.com", username="alice", first_name="Alice")


@pytest.fixture
def password():
    return STRONG_PASSWORD


@pytest.fixture
def expire_otps(db):
    """Push matching codes' expiry into the past."""

    def _expire(email: str, purpose: OtpPurpose | None = None) -> None:
        query = db.query(OtpRecord).filter(OtpRecord.email == email)
        if purpose is not None:
            query = query.filter(OtpRecord.purpose == purpose)
        query.update(
            {OtpRecord.expires_at: utcnow() - timedelta(minutes=1)}, synchronize_session=False
        )
        db.commit()

    return _expire
