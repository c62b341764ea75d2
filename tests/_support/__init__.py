"""
Test support utilities for refresh-queue tests.

Helpers that don't fit as pytest fixtures but are shared across test files:
sample records, a manual clock and a scripted ready queue.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from refresh_queue.scheduling.context import DispatchContext


@dataclass(frozen=True)
class Group:
    """Minimal record: a named configuration entry."""

    name: str
    generation: int = 1
    options: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class ScriptedQueue:
    """Ready queue that emits a fixed list of names, then stops.

    Lets overlay tests feed names the mapping doesn't know, or end the
    schedule loop gracefully (``error=None``) or with a given error.
    """

    def __init__(self, script: Iterable[str] = (), error: Exception | None = None):
        self.script = list(script)
        self.error = error
        self.inits: list[tuple[list[str], datetime]] = []
        self.fixes: list[tuple[str, datetime, bool]] = []
        self.frequencies: list[timedelta] = []

    def init(self, names: Iterable[str], when: datetime) -> None:
        self.inits.append((list(names), when))

    def status(self) -> tuple[int, str | None, datetime | None]:
        if not self.script:
            return 0, None, None
        when = self.inits[-1][1] if self.inits else None
        return len(self.script), self.script[0], when

    def fix(self, name: str, when: datetime, later: bool = False) -> None:
        self.fixes.append((name, when, later))

    def fix_all(self, whens: Mapping[str, datetime], later: bool = False) -> None:
        for name, when in whens.items():
            self.fix(name, when, later)

    async def send(
        self,
        ctx: DispatchContext,
        out: asyncio.Queue[str],
        frequency: timedelta,
    ) -> None:
        self.frequencies.append(frequency)
        for name in self.script:
            await ctx.guard(out.put(name))
        if self.error is not None:
            raise self.error


async def drain(sink: asyncio.Queue, count: int, timeout: float = 2.0) -> list:
    """Take ``count`` items from ``sink`` or fail after ``timeout`` seconds."""
    items = []
    async with asyncio.timeout(timeout):
        for _ in range(count):
            items.append(await sink.get())
    return items
