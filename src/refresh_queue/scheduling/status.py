"""Status snapshot of a keyed queue.

The next-due record is a sum type, not an optional: ``Present`` carries the
record, ``Absent`` says *why* there is none (empty schedule, or a stale name
left behind by a concurrent reinitialization). Callers are expected to
``match`` on it::

    match queue.status().next:
        case Present(record=group):
            ...
        case Absent(reason=AbsentReason.STALE):
            ...
        case Absent():
            ...
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Generic, TypeVar

from refresh_queue.core.timestamps import to_iso8601

R = TypeVar("R")


class AbsentReason(str, Enum):
    """Why a status snapshot has no next record."""

    EMPTY = "empty"  # nothing scheduled
    STALE = "stale"  # next name is not in the current mapping


@dataclass(frozen=True)
class Present(Generic[R]):
    """The next-due name resolved to its current record."""

    name: str
    record: R


@dataclass(frozen=True)
class Absent:
    """No record for the next-due slot."""

    reason: AbsentReason
    name: str | None = None


@dataclass(frozen=True)
class QueueStatus(Generic[R]):
    """Depth of the schedule, the next-due record and when it is due."""

    depth: int
    next: Present[R] | Absent
    ready_at: datetime | None

    @property
    def is_empty(self) -> bool:
        return self.depth == 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logs and health output."""
        if isinstance(self.next, Present):
            state, name = "present", self.next.name
        else:
            state, name = self.next.reason.value, self.next.name
        return {
            "depth": self.depth,
            "next": name,
            "next_state": state,
            "ready_at": to_iso8601(self.ready_at),
        }


__all__ = ["AbsentReason", "Present", "Absent", "QueueStatus"]
