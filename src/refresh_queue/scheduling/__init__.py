"""Scheduling package for refresh-queue.

Manifesto:
    Refresh work over a set of configuration entries ("re-process entry X
    every N minutes") needs more than ``asyncio.sleep()`` in a loop. Entries
    get reloaded wholesale while consumers are mid-stream, several consumers
    may drain the same schedule, and every loop must stop promptly when told
    to. The scheduling package provides a time-ordered schedule of names, a
    keyed overlay that turns names back into records at dispatch time, and a
    cancellation context threaded through every wait.

┌──────────────────────────────────────────────────────────────────────────────┐
│  Quick Start:                                                                 │
│  ┌──────────────────────────────────────────────────────────────────────┐   │
│  │   from refresh_queue.scheduling import DispatchContext, create_keyed_queue │
│  │                                                                      │   │
│  │   queue = create_keyed_queue()                                       │   │
│  │   queue.init(groups, utc_now())                                      │   │
│  │                                                                      │   │
│  │   sink = asyncio.Queue()                                             │   │
│  │   ctx = DispatchContext()                                            │   │
│  │   asyncio.create_task(queue.send(ctx, sink, timedelta(minutes=5)))   │   │
│  │   group = await sink.get()                                           │   │
│  │   ...                                                                │   │
│  │   ctx.cancel()                                                       │   │
│  └──────────────────────────────────────────────────────────────────────┘   │
│                                                                               │
│  Architecture:                                                                │
│   ┌──────────────┐  names   ┌──────────────┐  records  ┌──────────────┐     │
│   │  ReadyQueue  │ ───────► │  KeyedQueue  │ ────────► │  sink        │     │
│   │  (schedule)  │  relay   │  (mapping)   │           │ asyncio.Queue│     │
│   └──────────────┘          └──────────────┘           └──────────────┘     │
│          ▲                         ▲                                          │
│          └──── DispatchContext ────┘   (cancellation at every wait)          │
└──────────────────────────────────────────────────────────────────────────────┘

Guardrails:
    ❌ Treating a scheduled name with no record as an error
    ✅ Skip it; it is left over from a concurrent ``init()``
    ❌ Cancelling the consumer task and leaving the relay running
    ✅ ``send()`` always cancels and awaits its relay task

Tags:
    refresh-queue, scheduling, ready-queue, cancellation, asyncio
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Any

from refresh_queue.core.settings import RefreshQueueSettings, get_settings

from .context import DispatchContext
from .keyed_queue import KeyedQueue
from .protocol import ReadyQueueProtocol
from .ready_queue import ReadyQueue
from .rwlock import RWLock
from .status import Absent, AbsentReason, Present, QueueStatus

__all__ = [
    # Protocol
    "ReadyQueueProtocol",
    # Schedule + overlay
    "ReadyQueue",
    "KeyedQueue",
    # Status
    "QueueStatus",
    "Present",
    "Absent",
    "AbsentReason",
    # Concurrency
    "DispatchContext",
    "RWLock",
    # Factory
    "create_keyed_queue",
]


def create_keyed_queue(
    settings: RefreshQueueSettings | None = None,
    *,
    key: Callable[[Any], str] | None = None,
    clock: Callable[[], datetime] | None = None,
    name: str | None = None,
) -> KeyedQueue[Any]:
    """Factory function to create a keyed queue over a fresh ready queue.

    Args:
        settings: Settings to use (default: ``get_settings()``)
        key: Extracts the name of a record (default: its ``name`` attribute)
        clock: Clock for the ready queue (default: ``utc_now``)
        name: Queue name used in logs (default: ``settings.service_name``)

    Example:
        >>> queue = create_keyed_queue(RefreshQueueSettings(frequency_seconds=60))
        >>> queue.init(groups, utc_now())
    """
    settings = settings or get_settings()
    ready = ReadyQueue(clock) if clock is not None else ReadyQueue()
    return KeyedQueue(
        ready,
        key=key,
        frequency=settings.frequency,
        relay_buffer=settings.relay_buffer,
        name=name or settings.service_name,
    )
