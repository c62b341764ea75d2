"""Ready-time queue protocol.

┌──────────────────────────────────────────────────────────────────────────────┐
│  READY-TIME QUEUE PROTOCOL                                                    │
│                                                                               │
│  Design Philosophy:                                                           │
│  The ready queue only knows NAMES and WHEN they are due. What a name means   │
│  is the KeyedQueue's business. Keeping the two apart lets the mapping be     │
│  replaced under a lock while the schedule runs its own synchronization.      │
│                                                                               │
│  ┌─────────────────────────────────────────────────────────────────────┐     │
│  │                                                                     │     │
│  │   init(names, when) ──► schedule = {name@when, ...}                 │     │
│  │                                                                     │     │
│  │   send(ctx, out, frequency)                                         │     │
│  │      loop:                                                          │     │
│  │        wait until earliest entry is due  (or woken, or cancelled)   │     │
│  │        out.put(name)                     (or cancelled)             │     │
│  │        frequency > 0 ? reschedule at now+frequency : pop            │     │
│  │                                                                     │     │
│  │   status() ──► (depth, next name, ready at)                         │     │
│  │   fix(name, when, later) ──► move an existing entry in time         │     │
│  └─────────────────────────────────────────────────────────────────────┘     │
│                                                                               │
│  Implementations:                                                             │
│  - ReadyQueue: heap-backed, thread-safe, asyncio send loop (default)         │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Mapping
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from refresh_queue.scheduling.context import DispatchContext


@runtime_checkable
class ReadyQueueProtocol(Protocol):
    """Contract the keyed overlay requires of its schedule.

    ``init``, ``status``, ``fix`` and ``fix_all`` must be safe to call from
    any thread while ``send`` loops are running.
    """

    def init(self, names: Iterable[str], when: datetime) -> None:
        """Replace the working schedule; every name is ready at ``when``."""
        ...

    def status(self) -> tuple[int, str | None, datetime | None]:
        """Return (depth, next-ready name, its ready time)."""
        ...

    def fix(self, name: str, when: datetime, later: bool = False) -> None:
        """Move ``name`` to ``when``; only earlier unless ``later``."""
        ...

    def fix_all(self, whens: Mapping[str, datetime], later: bool = False) -> None:
        """Apply ``fix`` to several names at once."""
        ...

    async def send(
        self,
        ctx: DispatchContext,
        out: asyncio.Queue[str],
        frequency: timedelta,
    ) -> None:
        """Emit ready names into ``out`` until ``ctx`` is cancelled.

        Raises:
            Cancelled: The context's own error once it fires.
        """
        ...


__all__ = ["ReadyQueueProtocol"]
