# ==============================================================================
# Signal Host Abstract Base Class
# ==============================================================================
"""
Abstract interface for the environment the collector observes.

In a browser this is the document/window pair: it delivers DOM-level signals
(click, scroll, visibilitychange, pagehide) to listeners and lets code
schedule callbacks. The collector only ever talks to a host through this
interface, so it can be driven by a real bridge, a replay file or a test.

Signal payloads:
    click:            {"element": ElementInfo, "x": float, "y": float}
    scroll:           {"scroll_top": float, "document_height": float,
                       "viewport_height": float}
    visibilitychange: {"hidden": bool}
    pagehide:         {}
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any, Protocol

SIGNAL_CLICK = "click"
SIGNAL_SCROLL = "scroll"
SIGNAL_VISIBILITY = "visibilitychange"
SIGNAL_PAGEHIDE = "pagehide"

SignalHandler = Callable[[dict[str, Any]], None]


class TimerHandle(Protocol):
    """Handle returned by call_later."""

    def cancel(self) -> None: ...


class SignalHost(ABC):
    """Delivers signals to subscribed handlers and schedules callbacks."""

    @abstractmethod
    def subscribe(self, signal: str, handler: SignalHandler, capture: bool = False) -> None:
        """
        Register a handler for a signal.

        Args:
            signal: Signal name (see module constants)
            handler: Callable receiving the signal payload dict
            capture: Run before non-capture handlers, which may stop propagation
        """
        ...

    @abstractmethod
    def call_later(self, delay_seconds: float, callback: Callable[[], None]) -> TimerHandle:
        """
        Schedule a callback.

        Args:
            delay_seconds: Delay before the callback runs
            callback: Zero-argument callable

        Returns:
            Handle whose cancel() prevents the callback if it has not run
        """
        ...

    @property
    @abstractmethod
    def user_agent(self) -> str:
        """User agent string of the host."""
        ...

    @property
    def referrer(self) -> str:
        """Referring URL, empty when the visit is direct."""
        return ""

    @property
    def url(self) -> str:
        """Current page URL."""
        return ""

    @property
    def title(self) -> str:
        """Current page title."""
        return ""
