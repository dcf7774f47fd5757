"""
Periodic task scheduling for the session engine.

Every timer-driven loop of a session (clock tick, face sampling, screen
sampling) is registered through a Scheduler instead of raw threads, so that
tests can drive time deterministically with ManualScheduler while the live
front-end uses ThreadScheduler.

All callbacks of one scheduler run under ``scheduler.lock``; session API
calls take the same lock, so callbacks never interleave with each other or
with candidate interaction.
"""

import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, List, Optional


class TaskHandle:
    """Cancellation handle for a periodic task."""

    def __init__(self, interval: float, callback: Callable[[], None]):
        if interval <= 0:
            raise ValueError(f"Interval must be positive, got {interval}")
        self.interval = interval
        self.callback = callback
        self._cancelled = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """Stop the task. A tick that has not yet entered its callback will not fire."""
        self._cancelled.set()


class Scheduler(ABC):
    """Abstract periodic scheduler with a monotonic time source."""

    def __init__(self):
        self.lock = threading.RLock()

    @abstractmethod
    def now(self) -> float:
        """Monotonic time in seconds."""
        pass

    @abstractmethod
    def every(self, interval: float, callback: Callable[[], None]) -> TaskHandle:
        """Run ``callback`` every ``interval`` seconds until the handle is cancelled."""
        pass

    def shutdown(self) -> None:
        """Release scheduler resources. Default: nothing to release."""
        pass


class _ManualTask(TaskHandle):
    def __init__(self, interval, callback, next_due: float, seq: int):
        super().__init__(interval, callback)
        self.next_due = next_due
        self.seq = seq


class ManualScheduler(Scheduler):
    """
    Virtual-time scheduler.

    Time only moves when ``advance`` is called. Tasks due at the same instant
    run in registration order; a task cancelled by an earlier callback of the
    same instant does not run.
    """

    def __init__(self, start: float = 0.0):
        super().__init__()
        self._now = start
        self._seq = 0
        self._tasks: List[_ManualTask] = []

    def now(self) -> float:
        return self._now

    def every(self, interval: float, callback: Callable[[], None]) -> TaskHandle:
        task = _ManualTask(interval, callback, self._now + interval, self._seq)
        self._seq += 1
        self._tasks.append(task)
        return task

    def advance(self, seconds: float) -> None:
        """Move virtual time forward, firing every callback that falls due."""
        if seconds < 0:
            raise ValueError("Cannot move time backwards")
        target = self._now + seconds
        while True:
            due = [t for t in self._tasks if not t.cancelled and t.next_due <= target]
            if not due:
                break
            task = min(due, key=lambda t: (t.next_due, t.seq))
            self._now = task.next_due
            task.next_due += task.interval
            with self.lock:
                if not task.cancelled:
                    task.callback()
        self._now = target
        self._tasks = [t for t in self._tasks if not t.cancelled]

    @property
    def pending_tasks(self) -> int:
        return sum(1 for t in self._tasks if not t.cancelled)


class _ThreadTask(TaskHandle):
    def __init__(self, scheduler: 'ThreadScheduler', interval, callback):
        super().__init__(interval, callback)
        self._scheduler = scheduler
        self.thread = threading.Thread(target=self._run, daemon=True)

    def _run(self):
        while not self._cancelled.wait(self.interval):
            with self._scheduler.lock:
                # Re-check under the lock: cancel() may have run while we waited for it
                if self._cancelled.is_set():
                    break
                try:
                    self.callback()
                except Exception as e:
                    self._scheduler.report_error(e)


class ThreadScheduler(Scheduler):
    """
    Wall-clock scheduler running each periodic task on a daemon thread.

    Exceptions raised by callbacks are passed to ``error_handler`` (when set)
    and the task keeps running.
    """

    def __init__(self, error_handler: Optional[Callable[[Exception], None]] = None):
        super().__init__()
        self.error_handler = error_handler
        self._tasks: List[_ThreadTask] = []

    def now(self) -> float:
        return time.monotonic()

    def every(self, interval: float, callback: Callable[[], None]) -> TaskHandle:
        task = _ThreadTask(self, interval, callback)
        self._tasks.append(task)
        task.thread.start()
        return task

    def report_error(self, error: Exception) -> None:
        if self.error_handler:
            self.error_handler(error)

    def shutdown(self, timeout: float = 2.0) -> None:
        """Cancel all tasks and wait for their threads (not from inside a callback)."""
        for task in self._tasks:
            task.cancel()
        current = threading.current_thread()
        for task in self._tasks:
            if task.thread is not current and task.thread.is_alive():
                task.thread.join(timeout=timeout)
        self._tasks = []
