# ==============================================================================
# Local Signal Host
# ==============================================================================
"""
In-process SignalHost used to drive a collector outside a browser.

Signals are dispatched synchronously on the caller's thread: capture-phase
handlers first, then the rest, each group in subscription order. Delayed
callbacks run on ``threading.Timer`` threads.

Used by ``sitepulse replay`` to feed recorded signals through a collector.
"""

import logging
import threading
from collections import defaultdict
from collections.abc import Callable
from typing import Any

from sitepulse.base import SignalHandler, SignalHost, TimerHandle

logger = logging.getLogger(__name__)


class LocalSignalHost(SignalHost):
    """
    Dispatches signals to subscribers in the current process.

    Args:
        user_agent: Reported user agent string
        referrer: Reported referrer URL
        url: Initial page URL
        title: Initial page title
    """

    def __init__(self, user_agent: str = "", referrer: str = "", url: str = "", title: str = ""):
        self._user_agent = user_agent
        self._referrer = referrer
        self._url = url
        self._title = title
        self._handlers: dict[str, list[tuple[bool, SignalHandler]]] = defaultdict(list)
        self._timers: list[threading.Timer] = []

    @property
    def user_agent(self) -> str:
        return self._user_agent

    @property
    def referrer(self) -> str:
        return self._referrer

    @property
    def url(self) -> str:
        return self._url

    @property
    def title(self) -> str:
        return self._title

    def set_page(self, url: str, title: str = "") -> None:
        self._url = url
        self._title = title

    def subscribe(self, signal: str, handler: SignalHandler, capture: bool = False) -> None:
        self._handlers[signal].append((capture, handler))

    def dispatch(self, signal: str, payload: dict[str, Any] | None = None) -> int:
        """
        Deliver a signal to its handlers.

        A failing handler is logged and does not stop delivery to the others.

        Returns:
            Number of handlers invoked
        """
        payload = payload or {}
        handlers = self._handlers.get(signal, [])
        ordered = [h for capture, h in handlers if capture] + [
            h for capture, h in handlers if not capture
        ]
        for handler in ordered:
            try:
                handler(payload)
            except Exception:
                logger.exception("Handler for %s signal failed", signal)
        return len(ordered)

    def call_later(self, delay_seconds: float, callback: Callable[[], None]) -> TimerHandle:
        timer = threading.Timer(delay_seconds, callback)
        timer.daemon = True
        timer.start()
        self._timers = [t for t in self._timers if t.is_alive()] + [timer]
        return timer

    def wait_idle(self, timeout: float | None = None) -> None:
        """Block until scheduled callbacks have run (or were cancelled)."""
        for timer in list(self._timers):
            timer.join(timeout)
