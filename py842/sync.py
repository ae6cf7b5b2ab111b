"""Thread coordination primitives: a reusable interruptible barrier and a latch."""

from __future__ import annotations

import threading


class Barrier:
    """Blocks threads until ``num_threads`` have arrived; reusable across rounds.

    After :meth:`interrupt`, waiting threads are released and the barrier no
    longer blocks anyone.
    """

    def __init__(self, num_threads: int) -> None:
        if num_threads < 1:
            raise ValueError("num_threads must be at least 1")
        self._cond = threading.Condition()
        self._num_threads = num_threads
        self._count = 0
        self._generation = 0
        self._interrupted = False

    def arrive_and_wait(self) -> None:
        with self._cond:
            self._count += 1
            if self._count == self._num_threads:
                self._generation += 1
                self._count = 0
                self._cond.notify_all()
                return
            generation = self._generation
            self._cond.wait_for(
                lambda: self._generation != generation or self._interrupted
            )

    def interrupt(self) -> None:
        with self._cond:
            self._interrupted = True
            self._cond.notify_all()


class Latch:
    """A single-use countdown; :meth:`wait` blocks until the count reaches zero."""

    def __init__(self, value: int) -> None:
        if value < 0:
            raise ValueError("latch value must not be negative")
        self._cond = threading.Condition()
        self._value = value

    def count_down(self) -> None:
        with self._cond:
            if self._value <= 0:
                raise ValueError("latch already reached zero")
            self._value -= 1
            self._cond.notify_all()

    def wait(self) -> None:
        with self._cond:
            self._cond.wait_for(lambda: self._value == 0)