# ==============================================================================
# Signal Replay
# ==============================================================================
"""
Feeds a recorded visit through a collector.

A recording is JSON lines, one step per line:

    {"signal": "click", "payload": {"element": {"tag": "button", "text": "Get Started"}}}
    {"signal": "scroll", "payload": {"scroll_top": 900, "document_height": 2000, "viewport_height": 800}}
    {"track": "page_view", "args": {"page": "/pricing"}}
    {"track": "conversion", "args": {"email": "a@example.com", "source": "footer"}}

``signal`` steps are dispatched on the host; ``track`` steps call the
matching ``track_*`` method on the collector. Blank lines are skipped.
"""

import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass

from sitepulse.collector.hosts import LocalSignalHost
from sitepulse.collector.tracker import EventCollector

logger = logging.getLogger(__name__)

TRACK_METHODS = {
    "page_view": "track_page_view",
    "form_start": "track_form_start",
    "form_submit": "track_form_submit",
    "error": "track_error",
    "conversion": "track_conversion",
    "event": "track_event",
}


class ReplayError(ValueError):
    """A recording line could not be applied."""


@dataclass
class ReplayStats:
    signals: int = 0
    calls: int = 0


def apply_step(collector: EventCollector, host: LocalSignalHost, step: dict) -> str:
    """
    Apply one recorded step. Returns "signal" or "track".

    Raises:
        ReplayError: If the step is malformed
    """
    if "signal" in step:
        host.dispatch(step["signal"], step.get("payload") or {})
        return "signal"
    if "track" in step:
        method = TRACK_METHODS.get(step["track"])
        if method is None:
            raise ReplayError(f"Unknown track call: {step['track']}")
        try:
            getattr(collector, method)(**(step.get("args") or {}))
        except TypeError as e:
            raise ReplayError(f"Bad arguments for {step['track']}: {e}") from e
        return "track"
    raise ReplayError("Step needs a 'signal' or 'track' key")


def replay_lines(
    collector: EventCollector, host: LocalSignalHost, lines: Iterable[str]
) -> ReplayStats:
    """Apply every step of a JSON-lines recording."""
    stats = ReplayStats()
    for number, line in enumerate(lines, start=1):
        line = line.strip()
        if not line:
            continue
        try:
            step = json.loads(line)
        except json.JSONDecodeError as e:
            raise ReplayError(f"Line {number}: invalid JSON ({e.msg})") from e
        if not isinstance(step, dict):
            raise ReplayError(f"Line {number}: expected an object")
        try:
            kind = apply_step(collector, host, step)
        except ReplayError as e:
            raise ReplayError(f"Line {number}: {e}") from e
        if kind == "signal":
            stats.signals += 1
        else:
            stats.calls += 1
    logger.info("Replayed %d signals and %d calls", stats.signals, stats.calls)
    return stats
