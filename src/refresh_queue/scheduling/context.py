"""Cancellation contexts for dispatch loops.

A ``DispatchContext`` is handed to every long-running ``send()``. The loop
observes it at each suspension point and stops with the context's own error
object once it fires, so callers can tell *why* a send ended by looking at
what was raised.

Manifesto:
    Loops without a stop signal are a reliability anti-pattern. Cancelling
    the asyncio task works, but it cannot carry a reason, cannot be shared
    between several consumers, and cannot be requested from another thread.
    A context can do all three:

    - Explicit: ``ctx.cancel()``
    - Deadline: ``DispatchContext.with_timeout(30.0)``
    - Derived: ``ctx.child(timeout=5.0)`` fires with its parent

Architecture:
    ::

        ┌──────────────────────────────────────────────────────────────┐
        │                     DispatchContext                           │
        │                                                               │
        │   cancel(error) ──► _error set ──► wake waiters (any loop)   │
        │        │                                └──► cancel children  │
        │        ▼                                                      │
        │   await wait()          resolves when cancelled or expired    │
        │   await guard(aw)       aw vs. wait(); first one wins         │
        │   raise_if_cancelled()  cheap synchronous check               │
        └──────────────────────────────────────────────────────────────┘

Examples:
    >>> ctx = DispatchContext.with_timeout(0.5)
    >>> async def consume():
    ...     await ctx.guard(sink.put(record))  # raises DeadlineExceeded after 0.5s

Tags:
    cancellation, deadline, asyncio, refresh-queue
"""

from __future__ import annotations

import asyncio
import threading
import time
from collections.abc import Awaitable
from datetime import datetime
from typing import TypeVar

from refresh_queue.core.errors import Cancelled, DeadlineExceeded
from refresh_queue.core.timestamps import utc_now

T = TypeVar("T")


def _resolve(waiter: asyncio.Future[None]) -> None:
    if not waiter.done():
        waiter.set_result(None)


class DispatchContext:
    """Cancellation signal with an optional monotonic deadline.

    Thread-safe: ``cancel()`` may be called from any thread, and coroutines
    on any event loop may ``wait()`` on the same context.
    """

    def __init__(
        self,
        *,
        deadline: float | None = None,
        _parent: DispatchContext | None = None,
    ) -> None:
        self._deadline = deadline
        self._parent = _parent
        self._error: Cancelled | None = None
        self._waiters: list[tuple[asyncio.AbstractEventLoop, asyncio.Future[None]]] = []
        self._children: list[DispatchContext] = []
        self._lock = threading.Lock()

    @classmethod
    def with_timeout(cls, seconds: float) -> DispatchContext:
        """Context that expires ``seconds`` from now."""
        if seconds < 0:
            raise ValueError(f"Timeout must be non-negative, got {seconds}")
        return cls(deadline=time.monotonic() + seconds)

    @classmethod
    def with_deadline(cls, when: datetime) -> DispatchContext:
        """Context that expires at wall-clock time ``when``."""
        seconds = max(0.0, (when - utc_now()).total_seconds())
        return cls(deadline=time.monotonic() + seconds)

    def child(self, timeout: float | None = None) -> DispatchContext:
        """Derive a context cancelled together with this one.

        Cancelling the child never affects the parent. An optional timeout
        can only shorten the inherited deadline.
        """
        deadline = self._deadline
        if timeout is not None:
            own = time.monotonic() + timeout
            deadline = own if deadline is None else min(deadline, own)

        child = DispatchContext(deadline=deadline, _parent=self)
        with self._lock:
            error = self._error
            if error is None:
                self._children.append(child)
        if error is not None:
            child.cancel(error)
        return child

    # ── State ────────────────────────────────────────────────────

    @property
    def deadline(self) -> float | None:
        """Absolute deadline on the ``time.monotonic()`` clock, if any."""
        return self._deadline

    @property
    def remaining(self) -> float | None:
        """Seconds left before the deadline (None without a deadline)."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    @property
    def error(self) -> Cancelled | None:
        """Why the context ended, or None while it is still live."""
        if self._error is None and self._expired():
            self.cancel(DeadlineExceeded())
        return self._error

    @property
    def cancelled(self) -> bool:
        return self.error is not None

    def raise_if_cancelled(self) -> None:
        """Raise the context's error if it has fired."""
        error = self.error
        if error is not None:
            raise error

    def _expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    # ── Cancellation ─────────────────────────────────────────────

    def cancel(self, error: Cancelled | None = None) -> None:
        """Cancel the context and every child. Later calls are no-ops."""
        with self._lock:
            if self._error is not None:
                return
            self._error = error or Cancelled()
            waiters, self._waiters = self._waiters, []
            children, self._children = self._children, []

        for loop, waiter in waiters:
            if not loop.is_closed():
                loop.call_soon_threadsafe(_resolve, waiter)
        for child in children:
            child.cancel(self._error)

        if self._parent is not None:
            self._parent._forget(self)

    def _forget(self, child: DispatchContext) -> None:
        with self._lock:
            if child in self._children:
                self._children.remove(child)

    # ── Awaiting ─────────────────────────────────────────────────

    async def wait(self) -> Cancelled:
        """Suspend until the context is cancelled or its deadline passes."""
        loop = asyncio.get_running_loop()
        waiter: asyncio.Future[None] = loop.create_future()
        entry = (loop, waiter)
        with self._lock:
            if self._error is None:
                self._waiters.append(entry)
            else:
                waiter.set_result(None)

        try:
            async with asyncio.timeout(self.remaining):
                await waiter
        except TimeoutError:
            self.cancel(DeadlineExceeded())
        finally:
            with self._lock:
                if entry in self._waiters:
                    self._waiters.remove(entry)

        error = self._error
        if error is None:
            raise RuntimeError("context wait ended without an error")
        return error

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the context fires first.

        If the context wins, the awaitable is cancelled (never completed) and
        the context's error is raised. An already-cancelled context raises
        before the awaitable is started.
        """
        try:
            self.raise_if_cancelled()
        except Cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise

        task = asyncio.ensure_future(awaitable)
        stopper = asyncio.ensure_future(self.wait())
        try:
            await asyncio.wait({task, stopper}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            stopper.cancel()
            raise

        if task.done():
            stopper.cancel()
            return task.result()

        task.cancel()
        await asyncio.wait({task})
        raise stopper.result()

    def __repr__(self) -> str:
        state = "live" if self._error is None else type(self._error).__name__
        return f"DispatchContext({state}, remaining={self.remaining})"


__all__ = ["DispatchContext"]
