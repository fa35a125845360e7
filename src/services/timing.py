"""Clock helpers and response-time padding."""

import time
from collections.abc import Callable
from datetime import UTC, datetime


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on read)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class ResponseTimer:
    """Pads a response so that at least ``min_seconds`` elapse since start.

    Used on the "user not found", "wrong password" and storage-fault paths
    so they cannot be told apart by latency. The sleep blocks only the
    calling worker thread.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._clock = clock
        self._sleep = sleep
        self.started_at = clock()

    def elapsed(self) -> float:
        return self._clock() - self.started_at

    def pad(self, min_seconds: float) -> float:
        """Sleep for whatever remains of ``min_seconds``. Returns the time slept."""
        remaining = min_seconds - self.elapsed()
        if remaining > 0:
            self._sleep(remaining)
            return remaining
        return 0.0
