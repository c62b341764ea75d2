"""Refresh Queue Core -- errors, logging, settings and time helpers.

Architecture::

    errors.py          Structured error hierarchy (RefreshQueueError, Cancelled)
    logging.py         structlog configuration + get_logger()
    settings.py        Environment-driven settings (pydantic-settings)
    timestamps.py      UTC helpers and frequency normalization (stdlib-only)

``settings`` is not re-exported here so importing the error types never pulls
in pydantic.
"""

from refresh_queue.core.errors import (
    Cancelled,
    DeadlineExceeded,
    ErrorCategory,
    ErrorContext,
    InvalidFrequencyError,
    RefreshQueueError,
    UnknownNameError,
    is_cancellation,
)
from refresh_queue.core.logging import configure_logging, get_logger
from refresh_queue.core.timestamps import as_timedelta, to_iso8601, utc_now

__all__ = [
    "Cancelled",
    "DeadlineExceeded",
    "ErrorCategory",
    "ErrorContext",
    "InvalidFrequencyError",
    "RefreshQueueError",
    "UnknownNameError",
    "is_cancellation",
    "configure_logging",
    "get_logger",
    "as_timedelta",
    "to_iso8601",
    "utc_now",
]
