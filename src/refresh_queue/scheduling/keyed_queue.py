"""Keyed dispatch overlay: a ready queue of names plus a name -> record map.

┌──────────────────────────────────────────────────────────────────────────────┐
│  KEYED QUEUE                                                                  │
│                                                                               │
│   init(records, now)                                                          │
│      ├── build {name: record}        (last duplicate wins)                   │
│      ├── swap mapping      ◄── write lock                                    │
│      └── queue.init(names, now)      (every occurrence scheduled)            │
│                                                                               │
│   send(ctx, sink, frequency)                                                  │
│   ┌─────────────────────────┐   relay (bounded)   ┌─────────────────────┐   │
│   │ relay task              │ ──── name ────────► │ caller coroutine     │   │
│   │ queue.send(ctx, relay)  │ ──── _CLOSED ─────► │ lookup ◄── read lock │   │
│   └─────────────────────────┘                     │ miss: skip (stale)   │   │
│                                                   │ hit: ctx.guard(put)  │──► sink
│                                                   └─────────────────────┘   │
│                                                                               │
│   No lock is held while waiting on the schedule or on the sink.              │
└──────────────────────────────────────────────────────────────────────────────┘

The mapping and the schedule are each replaced atomically, but not together:
for a moment a schedule name may have no record (or a newer one). Such stale
names are skipped at dispatch and reported as ``Absent(STALE)`` by status.
The mapping is swapped before the schedule so names of the new generation
always resolve. A forward still waiting on the sink when ``init()`` runs
looks its name up again, so it never delivers a replaced record.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime, timedelta
from operator import attrgetter
from typing import Generic, TypeVar

from refresh_queue.core.errors import Cancelled, is_cancellation
from refresh_queue.core.logging import get_logger
from refresh_queue.core.timestamps import as_timedelta
from refresh_queue.scheduling.context import DispatchContext
from refresh_queue.scheduling.protocol import ReadyQueueProtocol
from refresh_queue.scheduling.ready_queue import ReadyQueue
from refresh_queue.scheduling.rwlock import RWLock
from refresh_queue.scheduling.status import Absent, AbsentReason, Present, QueueStatus

logger = get_logger(__name__)

R = TypeVar("R")

_CLOSED = object()


class KeyedQueue(Generic[R]):
    """Send records to receivers at a specific frequency.

    Records are identified by name (their ``name`` attribute unless ``key``
    says otherwise). The first call must be to ``init()``; it may be repeated
    at any time to replace every record and restart the schedule. Exported
    methods are safe to call concurrently, and several ``send()`` loops may
    drain the same queue.

    Example:
        >>> queue = KeyedQueue()
        >>> queue.init(groups, utc_now())
        >>> sink = asyncio.Queue()
        >>> await queue.send(DispatchContext.with_timeout(60), sink, timedelta(minutes=5))
    """

    def __init__(
        self,
        queue: ReadyQueueProtocol | None = None,
        *,
        key: Callable[[R], str] | None = None,
        frequency: timedelta | float = timedelta(0),
        relay_buffer: int = 1,
        name: str = "refresh-queue",
    ) -> None:
        if relay_buffer < 1:
            raise ValueError(f"relay_buffer must be at least 1, got {relay_buffer}")
        self._queue: ReadyQueueProtocol = queue if queue is not None else ReadyQueue()
        self._key: Callable[[R], str] = key or attrgetter("name")
        self._frequency = as_timedelta(frequency)
        self._relay_buffer = relay_buffer
        self._records: dict[str, R] = {}
        # Cancelled by every init() so pending forwards re-resolve their name.
        self._epoch = DispatchContext()
        self._lock = RWLock()
        self.name = name

    @property
    def queue(self) -> ReadyQueueProtocol:
        """The underlying ready queue."""
        return self._queue

    @property
    def frequency(self) -> timedelta:
        """Resend interval used when ``send()`` is not given one."""
        return self._frequency

    def init(self, records: Iterable[R], now: datetime) -> None:
        """Init (or reinit) the queue with ``records``, all ready at ``now``."""
        names: list[str] = []
        mapping: dict[str, R] = {}
        for record in records:
            name = self._key(record)
            names.append(name)
            mapping[name] = record

        with self._lock.write_locked():
            self._records = mapping
            retired, self._epoch = self._epoch, DispatchContext()
        retired.cancel()
        self._queue.init(names, now)
        logger.debug(
            "queue_initialized",
            queue=self.name,
            records=len(names),
            unique=len(mapping),
        )

    def status(self) -> QueueStatus[R]:
        """Status of the queue: depth, next record and when it is ready."""
        with self._lock.read_locked():
            depth, who, when = self._queue.status()
            if who is None:
                return QueueStatus(depth, Absent(AbsentReason.EMPTY), when)
            record = self._records.get(who)
        if record is None:
            return QueueStatus(depth, Absent(AbsentReason.STALE, who), when)
        return QueueStatus(depth, Present(who, record), when)

    def get(self, name: str) -> R | None:
        """Current record for ``name``, or None if it is not mapped."""
        with self._lock.read_locked():
            return self._records.get(name)

    @property
    def record_count(self) -> int:
        """Number of distinct names mapped to a record.

        Not the schedule depth: duplicates and stale names may be scheduled
        without a record of their own (see ``status().depth``).
        """
        with self._lock.read_locked():
            return len(self._records)

    def fix(self, name: str, when: datetime, later: bool = False) -> None:
        """Reschedule ``name`` (see ``ReadyQueue.fix``)."""
        self._queue.fix(name, when, later)

    def fix_all(self, whens: Mapping[str, datetime], later: bool = False) -> None:
        """Reschedule several names (see ``ReadyQueue.fix_all``)."""
        self._queue.fix_all(whens, later)

    async def send(
        self,
        ctx: DispatchContext,
        receivers: asyncio.Queue[R],
        frequency: timedelta | float | None = None,
    ) -> None:
        """Send records to ``receivers`` until ``ctx`` is cancelled.

        Pops names off the schedule when frequency is zero. Otherwise each
        name is rescheduled after the frequency has elapsed. Names with no
        current record are skipped.

        The frequency spaces emissions from the schedule, not arrivals at
        ``receivers``. With a slow sink the relay may already hold the next
        emission of a name, so that name can arrive twice back to back.

        Args:
            ctx: Cancellation context shared with the schedule loop.
            receivers: Queue the records are put into.
            frequency: Resend interval; defaults to the queue's frequency.

        Raises:
            Cancelled: The context's own error, as soon as it is observed.
            InvalidFrequencyError: If ``frequency`` is negative.
        """
        frequency = self._frequency if frequency is None else as_timedelta(frequency)
        relay: asyncio.Queue[object] = asyncio.Queue(maxsize=self._relay_buffer)

        async def _pump() -> Exception | None:
            try:
                await self._queue.send(ctx, relay, frequency)
            except Exception as exc:
                error: Exception | None = exc
            else:
                error = None
            await relay.put(_CLOSED)
            return error

        pump = asyncio.create_task(_pump(), name=f"{self.name}-relay")
        sent = 0
        try:
            while True:
                who = await relay.get()
                if who is _CLOSED:
                    break
                if not await ctx.guard(self._forward(receivers, who)):
                    logger.debug("stale_name_skipped", queue=self.name, name=who)
                    continue
                sent += 1
            error = await pump
        except BaseException as exc:
            logger.debug(
                "send_stopped",
                queue=self.name,
                sent=sent,
                reason=type(exc).__name__,
            )
            raise
        finally:
            if not pump.done():
                pump.cancel()
                await asyncio.wait({pump})

        if error is not None:
            logger.debug(
                "send_cancelled" if is_cancellation(error) else "send_failed",
                queue=self.name,
                sent=sent,
                reason=type(error).__name__,
            )
            raise error
        logger.debug("send_finished", queue=self.name, sent=sent)

    async def _forward(self, receivers: asyncio.Queue[R], who: str) -> bool:
        """Put the current record for ``who`` into ``receivers``.

        Returns False if ``who`` has no record. A put still waiting when
        ``init()`` runs is abandoned and retried with the new mapping, so a
        record is only delivered while it belongs to the current generation.
        """
        while True:
            with self._lock.read_locked():
                record = self._records.get(who)
                epoch = self._epoch
            if record is None:
                return False
            try:
                await epoch.guard(receivers.put(record))
            except Cancelled as exc:
                if exc is not epoch.error:
                    raise
                continue
            return True


__all__ = ["KeyedQueue"]
