"""
Environment Guard

Translates tamper signals from the environment (tab hide, fullscreen exit,
blocked shortcuts, context menu, leaving the page) into red flags on the
integrity monitor's channel.
"""

from typing import Callable, Optional

from .environment import (
    BeforeUnload, ContextMenu, EnvironmentEvent, EnvironmentSignalSource,
    FullscreenChange, KeyDown, VisibilityChange
)
from .models import Severity
from .monitor import IntegrityMonitor, NOT_FULLSCREEN, TAB_SWITCH


BLOCKED_CTRL_KEYS = ('c', 'v', 'a', 'f')
DEVTOOLS = "Attempted to open developer tools"
CONTEXT_MENU = "Right-click context menu attempted"
LEAVE_MESSAGE = "Are you sure you want to leave the assessment?"


def describe_shortcut(key: str) -> str:
    return f"Attempted keyboard shortcut: Ctrl+{key.upper()}"


class EnvironmentGuard:
    """Watches one environment for the lifetime of one session."""

    def __init__(
        self,
        environment: EnvironmentSignalSource,
        monitor: IntegrityMonitor,
        is_in_progress: Callable[[], bool],
        session_logger=None
    ):
        self.environment = environment
        self.monitor = monitor
        self.is_in_progress = is_in_progress
        self.session_logger = session_logger
        self.session_flag_count = 0
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def installed(self) -> bool:
        return self._unsubscribe is not None

    def install(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self.environment.subscribe(self.handle_event)

    def uninstall(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def handle_event(self, event: EnvironmentEvent) -> None:
        """
        Dispatch one environment event.

        Runs under the scheduler lock, like every sampler callback.
        """
        with self.monitor.scheduler.lock:
            if not self.is_in_progress():
                return

            if isinstance(event, VisibilityChange):
                if event.hidden:
                    self._flag(TAB_SWITCH, Severity.WARNING)
            elif isinstance(event, FullscreenChange):
                if not event.fullscreen:
                    self._flag(NOT_FULLSCREEN, Severity.INFO)
            elif isinstance(event, KeyDown):
                self._handle_key(event)
            elif isinstance(event, ContextMenu):
                event.prevent_default()
                self._flag(CONTEXT_MENU, Severity.WARNING)
            elif isinstance(event, BeforeUnload):
                self.before_unload(event)

    def _handle_key(self, event: KeyDown):
        key = event.key.lower()
        if event.ctrl and key in BLOCKED_CTRL_KEYS:
            event.prevent_default()
            self._flag(describe_shortcut(key), Severity.WARNING)

        if event.key == 'F12' or (event.ctrl and event.shift and key == 'i'):
            event.prevent_default()
            self._flag(DEVTOOLS, Severity.WARNING)

    def before_unload(self, event: BeforeUnload) -> bool:
        """
        Navigation guard: ask for confirmation while the session runs.

        Returns True when leaving was intercepted.
        """
        if not self.is_in_progress():
            return False
        event.prevent_default()
        event.return_value = LEAVE_MESSAGE
        if self.session_logger:
            self.session_logger("LEAVE_ATTEMPT", "Navigation away from the assessment intercepted")
        return True

    def _flag(self, description: str, severity: Severity):
        flag = self.monitor.report_flag(description, severity)
        if flag is not None and severity.is_score_bearing:
            self.session_flag_count += 1
