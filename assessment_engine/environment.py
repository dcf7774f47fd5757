"""
Environment signal source: page visibility, fullscreen state and the input
events the environment guard intercepts.

EnvironmentSignalSource abstracts the browser globals (document.hidden,
document.fullscreenElement, DOM event listeners) so sessions can run and be
tested without a browser. SimulatedEnvironment is the in-process
implementation used by the console front-end and the tests.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, List, Optional


class EnvironmentEvent:
    """Base class for events dispatched by an environment signal source."""

    default_prevented = False

    def prevent_default(self) -> None:
        """Suppress the platform's default action for this event."""
        self.default_prevented = True


@dataclass
class VisibilityChange(EnvironmentEvent):
    hidden: bool


@dataclass
class FullscreenChange(EnvironmentEvent):
    fullscreen: bool


@dataclass
class KeyDown(EnvironmentEvent):
    key: str
    ctrl: bool = False
    shift: bool = False


@dataclass
class ContextMenu(EnvironmentEvent):
    pass


@dataclass
class BeforeUnload(EnvironmentEvent):
    return_value: Optional[str] = None


Listener = Callable[[EnvironmentEvent], None]


class EnvironmentSignalSource(ABC):
    """Read access to visibility/fullscreen state plus an event subscription."""

    @abstractmethod
    def is_hidden(self) -> bool:
        pass

    @abstractmethod
    def is_fullscreen(self) -> bool:
        pass

    @abstractmethod
    def request_fullscreen(self) -> None:
        pass

    @abstractmethod
    def exit_fullscreen(self) -> None:
        pass

    @abstractmethod
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; returns a function that unsubscribes it."""
        pass


class SimulatedEnvironment(EnvironmentSignalSource):
    """
    In-process environment.

    ``emit`` updates the tracked state for visibility and fullscreen events
    and dispatches the event to every listener in subscription order.
    """

    def __init__(self, hidden: bool = False, fullscreen: bool = True):
        self.hidden = hidden
        self.fullscreen = fullscreen
        self.exit_fullscreen_calls = 0
        self._listeners: List[Listener] = []

    def is_hidden(self) -> bool:
        return self.hidden

    def is_fullscreen(self) -> bool:
        return self.fullscreen

    def request_fullscreen(self) -> None:
        if not self.fullscreen:
            self.emit(FullscreenChange(fullscreen=True))

    def exit_fullscreen(self) -> None:
        self.exit_fullscreen_calls += 1
        if self.fullscreen:
            self.emit(FullscreenChange(fullscreen=False))

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def emit(self, event: EnvironmentEvent) -> EnvironmentEvent:
        """Apply and dispatch ``event``; returns it so callers can inspect default_prevented."""
        if isinstance(event, VisibilityChange):
            self.hidden = event.hidden
        elif isinstance(event, FullscreenChange):
            self.fullscreen = event.fullscreen

        for listener in list(self._listeners):
            listener(event)
        return event
