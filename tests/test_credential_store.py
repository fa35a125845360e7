"""Tests for the credential store."""

from src.models.enums import UserRole
from src.services.credential_store import is_valid_email, materialize_user
from src.services.passwords import password_problems, verify_password


def test_email_syntax():
    assert is_valid_email("a@b.co")
    assert not is_valid_email("a@b")
    assert not is_valid_email("a b@c.com")
    assert not is_valid_email("@b.com")


def test_password_policy(settings):
    assert password_problems("Str0ng!pass", settings) == []
    assert set(password_problems("abc", settings)) == {
        "at least 8 characters",
        "an uppercase letter",
        "a digit",
        "a special character",
    }
    assert "at most 128 characters" in password_problems("Aa1!" * 40, settings)


def test_create_user_hashes_and_normalizes(store, password):
    user = store.create_user(" Dave@Example.COM ", "dave", password, UserRole.ADMIN)

    assert user.email == "dave@example.com"
    assert user.role == UserRole.ADMIN
    assert user.password_hash != password
    assert verify_password(password, user.password_hash)


def test_materialize_forces_customer():
    user = materialize_user(
        {"email": "x@example.com", "username": "x", "password_hash": "h", "role": "admin"}
    )
    assert user.role == UserRole.CUSTOMER
    assert user.email_verified is True
    assert user.is_active is True


def test_failed_login_counter_is_incremented_in_storage(store, db, customer):
    assert store.record_failed_login(customer) == 1
    assert store.record_failed_login(customer) == 2
    db.refresh(customer)
    assert customer.failed_login_attempts == 2


def test_clear_refresh_token_only_matches_presented_token(store, db, customer):
    store.set_refresh_token(customer, "token-a")

    assert store.clear_refresh_token(customer.id, "token-b") is False
    assert store.clear_refresh_token(customer.id, "token-a") is True
    db.refresh(customer)
    assert customer.refresh_token is None


def test_soft_delete_and_restore(store, customer):
    store.set_refresh_token(customer, "token-a")
    store.soft_delete(customer)

    assert store.get(customer.id) is None
    assert store.find_by_email("alice@example.com") is None
    assert store.email_taken("alice@example.com")
    assert customer.refresh_token is None

    restored = store.restore(customer.id)
    assert restored.deleted_at is None
    assert store.find_by_identifier("alice").id == customer.id


def test_update_profile_only_touches_profile_fields(store, db, customer):
    user = store.update_profile(
        customer, first_name="Alicia", phone="555-0199", email="evil@example.com", role="admin"
    )

    db.refresh(user)
    assert user.first_name == "Alicia"
    assert user.phone == "555-0199"
    assert user.email == "alice@example.com"
    assert user.role == UserRole.CUSTOMER
