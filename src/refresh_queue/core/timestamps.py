"""
UTC timestamp and duration utilities (stdlib-only).

Every timestamp the queue stores is timezone-aware UTC; every interval is a
``timedelta``. Callers may still pass plain seconds for convenience.

Features:
    - **utc_now():** Timezone-aware UTC datetime (the default queue clock)
    - **to_iso8601():** None-safe serialization for status/log output
    - **as_timedelta():** Normalize seconds or timedelta, rejecting negatives

STDLIB ONLY - NO PYDANTIC.
"""

from datetime import UTC, datetime, timedelta

from refresh_queue.core.errors import InvalidFrequencyError


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


def to_iso8601(dt: datetime | None) -> str | None:
    """Convert datetime to ISO 8601 string."""
    if dt is None:
        return None
    return dt.isoformat()


def as_timedelta(frequency: timedelta | float | int) -> timedelta:
    """Normalize a resend frequency to a non-negative timedelta.

    Raises:
        InvalidFrequencyError: If the frequency is negative.
    """
    if not isinstance(frequency, timedelta):
        frequency = timedelta(seconds=frequency)
    if frequency < timedelta(0):
        raise InvalidFrequencyError(frequency)
    return frequency
