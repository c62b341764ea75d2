"""
Structured error types for refresh-queue.

Every error raised by the queue carries a category, a retry flag and an
optional structured context, so callers driving repeated ``send()`` calls can
tell an expected shutdown from a defect without string matching.

Manifesto:
    - **Typed Error Hierarchy:** One base class, one subclass per failure mode
    - **Cancellation is not a failure:** ``Cancelled`` is the normal way a
      long-running ``send()`` ends
    - **Rich Context:** Errors carry the queue and record name for logging
    - **Error Chaining:** Preserve original exceptions as ``cause``

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                     RefreshQueueError                            │
        │        (category, retryable, context, cause)                     │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  Cancelled              UnknownNameError   InvalidFrequencyError │
        │  (CANCELLED)            (SCHEDULE)         (CONFIG)              │
        │       │                 + KeyError         + ValueError          │
        │  DeadlineExceeded                                                │
        │  (CANCELLED)                                                     │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    >>> error = Cancelled()
    >>> error.category
    <ErrorCategory.CANCELLED: 'CANCELLED'>
    >>> error.retryable
    False

    >>> error = UnknownNameError(["daily-ci"]).with_context(queue="groups")
    >>> error.to_dict()["context"]
    {'queue': 'groups', 'name': 'daily-ci'}

Guardrails:
    ❌ DON'T: Treat a stale (unmapped) schedule name as an error
    ✅ DO: Skip it; a concurrent ``init()`` legitimately produces them

    ❌ DON'T: Wrap ``Cancelled`` in another error type
    ✅ DO: Re-raise the context's own error object verbatim

Tags:
    error-handling, exception-hierarchy, cancellation, refresh-queue

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Standard error categories for classification and routing.

    Attributes:
        CANCELLED: Dispatch stopped by its cancellation context
        SCHEDULE: Operation on the schedule referenced an unknown entry
        CONFIG: Invalid settings or arguments (never retryable)
        INTERNAL: Bugs, unexpected state
    """

    CANCELLED = "CANCELLED"       # Context cancelled or deadline passed
    SCHEDULE = "SCHEDULE"         # Unknown schedule entry
    CONFIG = "CONFIG"             # Bad settings / arguments
    INTERNAL = "INTERNAL"         # Bugs, unexpected state


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Attributes:
        queue: Name of the queue the error came from
        name: Record/schedule name involved, if a single one
        metadata: Additional key-value pairs
    """

    queue: str | None = None
    name: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result: dict[str, Any] = {}
        for key in ("queue", "name"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class RefreshQueueError(Exception):
    """
    Base exception for all refresh-queue errors.

    Subclasses set ``default_category`` and ``default_retryable`` to give
    sensible defaults for their failure mode.

    Examples:
        >>> error = RefreshQueueError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.to_dict()["error_type"]
        'RefreshQueueError'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> RefreshQueueError:
        """
        Add context to this error (fluent API).

        Usage:
            raise UnknownNameError(names).with_context(queue="test-groups")
        """
        for key, value in kwargs.items():
            if key != "metadata" and hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# CANCELLATION
# =============================================================================


class Cancelled(RefreshQueueError):
    """
    The dispatch context was cancelled.

    This is the expected termination path for long-running consumers, so it is
    never retryable at this layer: the caller decides whether to start a new
    ``send()``.
    """

    default_category = ErrorCategory.CANCELLED

    def __init__(self, message: str = "context cancelled", **kwargs: Any):
        super().__init__(message, **kwargs)


class DeadlineExceeded(Cancelled):
    """The dispatch context's deadline passed."""

    def __init__(self, message: str = "context deadline exceeded", **kwargs: Any):
        super().__init__(message, **kwargs)


# =============================================================================
# SCHEDULE / CONFIG ERRORS
# =============================================================================


class UnknownNameError(RefreshQueueError, KeyError):
    """One or more names passed to ``fix()`` are not in the schedule."""

    default_category = ErrorCategory.SCHEDULE

    def __init__(self, names: Iterable[str], message: str | None = None):
        self.names = sorted(names)
        super().__init__(message or f"not in queue: {', '.join(self.names)}")
        if len(self.names) == 1:
            self.context.name = self.names[0]


class InvalidFrequencyError(RefreshQueueError, ValueError):
    """Resend frequency is negative."""

    default_category = ErrorCategory.CONFIG

    def __init__(self, frequency: Any, message: str | None = None):
        self.frequency = frequency
        super().__init__(message or f"frequency must not be negative, got {frequency!r}")


def is_cancellation(error: BaseException | None) -> bool:
    """Check whether an error represents a cancelled dispatch."""
    return isinstance(error, Cancelled)


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "RefreshQueueError",
    "Cancelled",
    "DeadlineExceeded",
    "UnknownNameError",
    "InvalidFrequencyError",
    "is_cancellation",
]
