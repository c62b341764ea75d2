"""
refresh-queue - periodic re-delivery of named records.

Keeps a set of named records (configuration entries, test groups...) and
streams them to consumers at a tunable cadence. Records can be reloaded
wholesale at any time; the schedule restarts cleanly.
"""

__version__ = "0.1.0"

from refresh_queue.core.errors import Cancelled, DeadlineExceeded, RefreshQueueError
from refresh_queue.scheduling import (
    Absent,
    AbsentReason,
    DispatchContext,
    KeyedQueue,
    Present,
    QueueStatus,
    ReadyQueue,
    create_keyed_queue,
)

__all__ = [
    "Absent",
    "AbsentReason",
    "Cancelled",
    "DeadlineExceeded",
    "DispatchContext",
    "KeyedQueue",
    "Present",
    "QueueStatus",
    "ReadyQueue",
    "RefreshQueueError",
    "create_keyed_queue",
]
