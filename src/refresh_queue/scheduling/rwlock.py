"""Read-favoring reader/writer lock.

Guards the name -> record mapping of ``KeyedQueue``: lookups and status
queries are frequent and cheap, reinitialization is rare. Readers share the
lock whenever no writer holds it; a writer waits until the last reader leaves.

Example::

    lock = RWLock()
    with lock.read_locked():
        record = records.get(name)
    with lock.write_locked():
        records = fresh
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class RWLock:
    """Reader/writer lock built on ``threading.Condition``.

    Not reentrant: a thread holding the write lock must not take the read
    lock (or vice versa).
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False

    def acquire_read(self) -> None:
        with self._cond:
            while self._writer:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            if self._readers <= 0:
                raise RuntimeError("release_read() called without a reader")
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            while self._writer or self._readers:
                self._cond.wait()
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            if not self._writer:
                raise RuntimeError("release_write() called without a writer")
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()

    @property
    def readers(self) -> int:
        """Number of readers currently holding the lock."""
        return self._readers

    @property
    def write_held(self) -> bool:
        return self._writer


__all__ = ["RWLock"]
