"""Heap-backed ready-time queue.

┌──────────────────────────────────────────────────────────────────────────────┐
│  READY QUEUE                                                                  │
│                                                                               │
│   _heap:  [(when, seq) entry, ...]   min-heap, lazily pruned                 │
│   _index: name -> [live entries]     (a name may be scheduled twice)         │
│                                                                               │
│   send() loop                                                                 │
│   ┌───────────────────────────────────────────────────────────────────┐      │
│   │  _claim()  ── under lock ──► due entry?  ── no ──► sleep until     │      │
│   │     │                                              due / woken /   │      │
│   │    yes (entry removed from schedule)               cancelled       │      │
│   │     ▼                                                              │      │
│   │  ctx.guard(out.put(name))                                          │      │
│   │     │ ok                         │ cancelled                       │      │
│   │     ▼                            ▼                                 │      │
│   │  frequency > 0 ? push now+freq   _restore(entry); raise            │      │
│   └───────────────────────────────────────────────────────────────────┘      │
│                                                                               │
│   init() / fix() / fix_all() wake every sleeping send() loop through         │
│   loop.call_soon_threadsafe, so they may run on any thread.                  │
└──────────────────────────────────────────────────────────────────────────────┘

Claiming a due entry removes it from the schedule before it is emitted, so two
concurrent ``send()`` loops never emit the same entry. An entry claimed under
one generation is not rescheduled (or restored) into a later one.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import threading
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from refresh_queue.core.errors import UnknownNameError
from refresh_queue.core.logging import get_logger
from refresh_queue.core.timestamps import as_timedelta, utc_now
from refresh_queue.scheduling.context import DispatchContext

logger = get_logger(__name__)


@dataclass(order=True)
class _Entry:
    when: datetime
    seq: int
    name: str = field(compare=False)
    generation: int = field(compare=False)
    removed: bool = field(default=False, compare=False)


class ReadyQueue:
    """Names ordered by the time they become ready.

    Ties are broken by insertion order. Exported methods are safe to call
    concurrently from any thread; ``send`` runs on an asyncio loop.

    Example:
        >>> queue = ReadyQueue()
        >>> queue.init(["a", "b"], utc_now())
        >>> queue.status()[0]
        2
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._heap: list[_Entry] = []
        self._index: dict[str, list[_Entry]] = {}
        self._depth = 0
        self._generation = 0
        self._seq = itertools.count()
        self._wakeups: list[tuple[asyncio.AbstractEventLoop, asyncio.Event]] = []

    # ── Schedule mutation ────────────────────────────────────────

    def init(self, names: Iterable[str], when: datetime) -> None:
        """Replace the schedule with ``names``, all ready at ``when``."""
        with self._lock:
            self._generation += 1
            self._heap = []
            self._index = {}
            for name in names:
                self._push(name, when)
            self._depth = len(self._heap)
            heapq.heapify(self._heap)
            depth = self._depth
        logger.debug("schedule_initialized", depth=depth, ready_at=when.isoformat())
        self._wake()

    def fix(self, name: str, when: datetime, later: bool = False) -> None:
        """Move every entry for ``name`` to ``when``.

        Unless ``later`` is set, entries are only ever moved earlier.

        Raises:
            UnknownNameError: If ``name`` is not scheduled.
        """
        with self._lock:
            entries = self._index.get(name)
            if not entries:
                raise UnknownNameError([name])
            moved = self._fix_locked(name, entries, when, later)
        if moved:
            self._wake()

    def fix_all(self, whens: Mapping[str, datetime], later: bool = False) -> None:
        """Apply ``fix`` to each name; unknown names are reported together.

        Known names are moved even when some names are unknown.

        Raises:
            UnknownNameError: Listing every name that is not scheduled.
        """
        missing: list[str] = []
        moved = False
        with self._lock:
            for name, when in whens.items():
                entries = self._index.get(name)
                if not entries:
                    missing.append(name)
                    continue
                moved = self._fix_locked(name, entries, when, later) or moved
        if moved:
            self._wake()
        if missing:
            raise UnknownNameError(missing)

    def _fix_locked(
        self, name: str, entries: list[_Entry], when: datetime, later: bool
    ) -> bool:
        moved = False
        for entry in list(entries):
            if entry.when == when or (not later and when > entry.when):
                continue
            entry.removed = True
            entries.remove(entry)
            self._push(name, when, heap=True)
            moved = True
        return moved

    def _push(self, name: str, when: datetime, heap: bool = False) -> _Entry:
        entry = _Entry(when, next(self._seq), name, self._generation)
        self._index.setdefault(name, []).append(entry)
        if heap:
            heapq.heappush(self._heap, entry)
        else:
            self._heap.append(entry)
        return entry

    # ── Inspection ───────────────────────────────────────────────

    def status(self) -> tuple[int, str | None, datetime | None]:
        """Return (depth, next-ready name, its ready time)."""
        with self._lock:
            entry = self._peek()
            if entry is None:
                return self._depth, None, None
            return self._depth, entry.name, entry.when

    def __len__(self) -> int:
        return self._depth

    def _peek(self) -> _Entry | None:
        while self._heap and self._heap[0].removed:
            heapq.heappop(self._heap)
        return self._heap[0] if self._heap else None

    # ── Dispatch ─────────────────────────────────────────────────

    def _claim(self) -> tuple[_Entry | None, float | None]:
        """Take the earliest entry if it is due.

        Returns (entry, None) when something is due, (None, delay) when the
        earliest entry is ``delay`` seconds away and (None, None) when the
        schedule is empty.
        """
        with self._lock:
            entry = self._peek()
            if entry is None:
                return None, None
            delay = (entry.when - self._clock()).total_seconds()
            if delay > 0:
                return None, delay
            heapq.heappop(self._heap)
            self._unindex(entry)
            return entry, None

    def _unindex(self, entry: _Entry) -> None:
        entries = self._index.get(entry.name, [])
        if entry in entries:
            entries.remove(entry)
        if not entries:
            self._index.pop(entry.name, None)
        self._depth -= 1

    def _reschedule(self, entry: _Entry, when: datetime) -> None:
        """Put a claimed entry's name back at ``when`` (same generation only)."""
        with self._lock:
            if entry.generation != self._generation:
                return
            self._push(entry.name, when, heap=True)
            self._depth += 1

    def _restore(self, entry: _Entry) -> None:
        """Undo a claim whose emission was abandoned."""
        with self._lock:
            if entry.generation != self._generation:
                return
            entry.removed = False
            self._index.setdefault(entry.name, []).append(entry)
            heapq.heappush(self._heap, entry)
            self._depth += 1

    async def send(
        self,
        ctx: DispatchContext,
        out: asyncio.Queue[str],
        frequency: timedelta | float = timedelta(0),
    ) -> None:
        """Emit names into ``out`` as they become ready, until ``ctx`` fires.

        With a zero frequency each entry is emitted once and dropped; otherwise
        it is rescheduled ``frequency`` after its emission.

        Raises:
            Cancelled: The context's error once it is cancelled or expires.
            InvalidFrequencyError: If ``frequency`` is negative.
        """
        frequency = as_timedelta(frequency)
        loop = asyncio.get_running_loop()
        wakeup = asyncio.Event()
        registration = (loop, wakeup)
        with self._lock:
            self._wakeups.append(registration)

        try:
            while True:
                ctx.raise_if_cancelled()
                wakeup.clear()
                entry, delay = self._claim()
                if entry is None:
                    await self._sleep(ctx, wakeup, delay)
                    continue

                try:
                    await ctx.guard(out.put(entry.name))
                except BaseException:
                    self._restore(entry)
                    raise

                if frequency:
                    self._reschedule(entry, self._clock() + frequency)
                logger.debug(
                    "name_dispatched",
                    name=entry.name,
                    rescheduled=bool(frequency),
                )
        finally:
            with self._lock:
                self._wakeups.remove(registration)

    async def _sleep(
        self, ctx: DispatchContext, wakeup: asyncio.Event, delay: float | None
    ) -> None:
        logger.debug("queue_sleeping", seconds=delay)
        try:
            async with asyncio.timeout(delay):
                await ctx.guard(wakeup.wait())
        except TimeoutError:
            pass

    def _wake(self) -> None:
        with self._lock:
            wakeups = list(self._wakeups)
        for loop, event in wakeups:
            if not loop.is_closed():
                loop.call_soon_threadsafe(event.set)


__all__ = ["ReadyQueue"]
