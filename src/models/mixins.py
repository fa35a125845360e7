"""Mixins for SQLAlchemy models."""

from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, func


class TimestampMixin:
    """Mixin to add created_at and updated_at timestamp columns."""

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class SoftDeleteMixin:
    """Mixin for rows that are retired instead of removed.

    Identity rows are never hard-deleted through the normal flow; a
    soft-deleted account keeps its email and username reserved but is
    invisible to login, token refresh and password reset.
    """

    deleted_at = Column(DateTime(timezone=True), nullable=True)

    @classmethod
    def live(cls):
        """Filter clause selecting rows that have not been soft-deleted."""
        return cls.deleted_at.is_(None)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def soft_delete(self, when: datetime | None = None) -> None:
        self.deleted_at = when or datetime.now(UTC)

    def restore(self) -> None:
        self.deleted_at = None
