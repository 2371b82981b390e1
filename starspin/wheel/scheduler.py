"""Cancellable delayed callbacks used to time the wheel animation."""

from __future__ import annotations

import heapq
import itertools
import logging
import threading
from typing import Callable, Optional, Protocol

logger = logging.getLogger(__name__)


class ScheduledTask:
    """Handle for a callback scheduled to run once after a delay."""

    def __init__(self, callback: Callable[[], None], delay_ms: float) -> None:
        self.delay_ms = delay_ms
        self._callback = callback
        self._lock = threading.Lock()
        self._cancelled = False
        self._done = False
        self._timer: Optional[threading.Timer] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def done(self) -> bool:
        return self._done

    def cancel(self) -> bool:
        """Prevent the callback from running.

        Returns ``False`` when the callback already ran or was cancelled.
        """
        with self._lock:
            if self._done or self._cancelled:
                return False
            self._cancelled = True
        if self._timer is not None:
            self._timer.cancel()
        return True

    def run(self) -> None:
        """Invoke the callback unless the task was cancelled or already ran."""
        with self._lock:
            if self._done or self._cancelled:
                return
            self._done = True
        self._callback()

    def __repr__(self) -> str:
        return (
            f"<ScheduledTask(delay_ms={self.delay_ms}, "
            f"cancelled={self._cancelled}, done={self._done})>"
        )


class Scheduler(Protocol):
    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> ScheduledTask:
        ...


class ThreadingScheduler:
    """Run callbacks on :class:`threading.Timer` threads in real time."""

    def __init__(self, *, daemon: bool = True) -> None:
        self.daemon = daemon

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> ScheduledTask:
        if delay_ms < 0:
            raise ValueError("delay_ms must not be negative")
        task = ScheduledTask(callback, delay_ms)
        timer = threading.Timer(delay_ms / 1000.0, task.run)
        timer.daemon = self.daemon
        task._timer = timer
        timer.start()
        return task


class ManualScheduler:
    """Scheduler driven by an explicit clock.

    Time only moves when :meth:`advance` is called, which makes the animation
    timing reproducible in tests and simulations.
    """

    def __init__(self) -> None:
        self.now_ms: float = 0.0
        self._queue: list[tuple[float, int, ScheduledTask]] = []
        self._counter = itertools.count()

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> ScheduledTask:
        if delay_ms < 0:
            raise ValueError("delay_ms must not be negative")
        task = ScheduledTask(callback, delay_ms)
        heapq.heappush(self._queue, (self.now_ms + delay_ms, next(self._counter), task))
        return task

    @property
    def pending(self) -> int:
        """Number of scheduled tasks that are neither cancelled nor run."""
        return sum(
            1 for _, _, task in self._queue if not (task.cancelled or task.done)
        )

    def advance(self, delay_ms: float) -> int:
        """Move the clock forward and run every task that falls due.

        Returns the number of callbacks that ran.
        """
        if delay_ms < 0:
            raise ValueError("delay_ms must not be negative")
        deadline = self.now_ms + delay_ms
        ran = 0
        while self._queue and self._queue[0][0] <= deadline:
            due_at, _, task = heapq.heappop(self._queue)
            self.now_ms = max(self.now_ms, due_at)
            if task.cancelled:
                continue
            task.run()
            ran += 1
        self.now_ms = max(self.now_ms, deadline)
        logger.debug(f"Manual clock advanced to {self.now_ms}ms, ran {ran} task(s)")
        return ran


__all__ = ["ManualScheduler", "ScheduledTask", "Scheduler", "ThreadingScheduler"]
