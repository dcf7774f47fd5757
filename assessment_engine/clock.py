"""
Session countdown clock.

One-second resolution countdown that fires a one-shot expiry callback when
the remaining time reaches zero.
"""

from typing import Callable, List, Optional

from .errors import ClockMisuse
from .scheduler import Scheduler, TaskHandle


class SessionClock:
    """Countdown timer for one assessment session."""

    TICK_SECONDS = 1.0

    def __init__(self, scheduler: Scheduler, session_logger=None):
        self.scheduler = scheduler
        self.session_logger = session_logger
        self.duration_seconds: Optional[int] = None
        self._started_at: Optional[float] = None
        self._remaining: int = 0
        self._task: Optional[TaskHandle] = None
        self._stopped = False
        self._expired = False
        self._expire_callbacks: List[Callable[[], None]] = []

    @property
    def running(self) -> bool:
        return self._task is not None and not self._stopped and not self._expired

    @property
    def expired(self) -> bool:
        return self._expired

    def start(self, duration_seconds: int) -> None:
        """Begin the countdown. Starting twice is a programming error."""
        if self._task is not None:
            raise ClockMisuse("Session clock already started")
        if self._stopped:
            raise ClockMisuse("Session clock was stopped and cannot be restarted")
        if duration_seconds <= 0:
            raise ClockMisuse(f"Duration must be positive, got {duration_seconds}")

        self.duration_seconds = int(duration_seconds)
        self._remaining = self.duration_seconds
        self._started_at = self.scheduler.now()
        self._task = self.scheduler.every(self.TICK_SECONDS, self._tick)

        if self.session_logger:
            self.session_logger("CLOCK_START", f"Countdown started: {self.format_remaining()}")

    def on_expire(self, callback: Callable[[], None]) -> None:
        """Register a handler invoked exactly once when the countdown reaches zero."""
        self._expire_callbacks.append(callback)

    def stop(self) -> None:
        """Cancel the countdown; no expiry fires after this returns."""
        if self._stopped:
            return
        self._stopped = True
        if self._task is not None:
            self._task.cancel()
        if self.session_logger and self._task is not None and not self._expired:
            self.session_logger("CLOCK_STOP", f"Countdown stopped with {self.format_remaining()} left")

    def remaining(self) -> int:
        """Seconds left."""
        return self._remaining

    def elapsed(self) -> int:
        """Whole seconds since start, capped at the duration."""
        if self._started_at is None:
            return 0
        return self.duration_seconds - self._remaining

    def format_remaining(self) -> str:
        """Format remaining time as MM:SS."""
        minutes, seconds = divmod(self._remaining, 60)
        return f"{minutes:02d}:{seconds:02d}"

    def _tick(self):
        # A tick queued before stop() must not count down or fire expiry
        if self._stopped or self._expired:
            return

        self._remaining = max(0, self._remaining - 1)
        if self._remaining > 0:
            return

        self._expired = True
        self._task.cancel()
        if self.session_logger:
            self.session_logger("CLOCK_EXPIRED", "Countdown reached zero")

        callbacks, self._expire_callbacks = self._expire_callbacks, []
        for callback in callbacks:
            callback()
