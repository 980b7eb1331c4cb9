# ==============================================================================
# Analytics Store - In-Memory Session Table and Event Log
# ==============================================================================
"""
Explicitly owned in-memory state for the analytics server.

Holds:
- the session table (insertion ordered, keyed by session id)
- the event log (bounded by count and by age)
- the incremental aggregate counters (page views, button clicks)

All access goes through one re-entrant lock. Writers group their changes in
``transaction()`` so a batch is committed in a single critical section;
readers take ``snapshot()`` copies so aggregation never races ingestion.

Lifecycle: ``init()`` at process start, ``teardown()`` on shutdown. Nothing is
persisted; a restart loses all state.
"""

import logging
import threading
from collections import deque
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sitepulse.core.models import Clock, Event, EventType, Session, utc_now
from sitepulse.core.session_processor import AggregateCounters
from sitepulse.utils.config import StoreSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoggedEvent:
    """An event plus the time the server accepted it (drives age eviction)."""

    event: Event
    received_at: datetime


@dataclass(frozen=True)
class StoreSnapshot:
    """Consistent point-in-time copy of the store for read-only queries."""

    sessions: list[Session]
    events: list[Event]
    counters: AggregateCounters
    taken_at: datetime


class AnalyticsStore:
    """
    In-memory analytics state with explicit locking.

    Args:
        max_events: Event log capacity; the oldest events are dropped beyond it
        retention: Events accepted longer ago than this are evicted
        session_retention: Sessions idle longer than this are pruned on
                           ingestion. None keeps every session.
        clock: Source of "now"
    """

    def __init__(
        self,
        max_events: int = 100_000,
        retention: timedelta = timedelta(hours=48),
        session_retention: Optional[timedelta] = None,
        clock: Clock = utc_now,
    ):
        self._lock = threading.RLock()
        self._sessions: dict[str, Session] = {}
        self._events: deque[LoggedEvent] = deque(maxlen=max_events)
        self._counters = AggregateCounters()
        self._retention = retention
        self._session_retention = session_retention
        self._clock = clock
        self._open = False

    @classmethod
    def from_settings(cls, settings: StoreSettings, clock: Clock = utc_now) -> "AnalyticsStore":
        session_retention = (
            timedelta(hours=settings.session_retention_hours)
            if settings.session_retention_hours
            else None
        )
        return cls(
            max_events=settings.max_events,
            retention=timedelta(hours=settings.retention_hours),
            session_retention=session_retention,
            clock=clock,
        )

    # ==========================================================================
    # Lifecycle
    # ==========================================================================

    def init(self) -> None:
        with self._lock:
            self._open = True
        logger.info(
            "Analytics store ready (max_events=%d, retention=%s)",
            self._events.maxlen,
            self._retention,
        )

    def teardown(self) -> None:
        with self._lock:
            logger.info(
                "Analytics store shutting down: %d sessions, %d events discarded",
                len(self._sessions),
                len(self._events),
            )
            self._sessions.clear()
            self._events.clear()
            self._counters = AggregateCounters()
            self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    # ==========================================================================
    # Writes (call inside transaction())
    # ==========================================================================

    @contextmanager
    def transaction(self) -> Iterator["AnalyticsStore"]:
        """Hold the store lock for a group of writes."""
        with self._lock:
            yield self

    @property
    def counters(self) -> AggregateCounters:
        """Live aggregate counters; mutate only inside transaction()."""
        return self._counters

    def get_session(self, session_id: str) -> Optional[Session]:
        """Live session record; mutate only inside transaction()."""
        with self._lock:
            return self._sessions.get(session_id)

    def put_session(self, session: Session) -> None:
        with self._lock:
            self._sessions[session.session_id] = session

    def append_event(self, event: Event, received_at: datetime) -> None:
        with self._lock:
            self._events.append(LoggedEvent(event, received_at))
            self._evict_expired(received_at)

    def _evict_expired(self, now: datetime) -> None:
        cutoff = now - self._retention
        evicted = 0
        while self._events and self._events[0].received_at < cutoff:
            self._events.popleft()
            evicted += 1
        if evicted:
            logger.debug("Evicted %d events older than %s", evicted, cutoff.isoformat())

    def prune_sessions(self, now: datetime) -> int:
        """Drop sessions idle longer than the session retention. Returns count pruned."""
        if self._session_retention is None:
            return 0
        cutoff = now - self._session_retention
        with self._lock:
            stale = [sid for sid, s in self._sessions.items() if s.last_activity < cutoff]
            for sid in stale:
                del self._sessions[sid]
        if stale:
            logger.info("Pruned %d idle sessions", len(stale))
        return len(stale)

    # ==========================================================================
    # Reads (copies, safe outside the lock)
    # ==========================================================================

    def snapshot(self) -> StoreSnapshot:
        with self._lock:
            return StoreSnapshot(
                sessions=[s.model_copy(deep=True) for s in self._sessions.values()],
                events=[logged.event for logged in self._events],
                counters=self._counters.copy(),
                taken_at=self._clock(),
            )

    def list_sessions(self, limit: int, offset: int) -> tuple[int, list[Session]]:
        """Return (total, page) of sessions in first-seen order."""
        with self._lock:
            sessions = list(self._sessions.values())
            page = [s.model_copy(deep=True) for s in sessions[offset : offset + limit]]
            return len(sessions), page

    def find_session(self, session_id: str) -> Optional[tuple[Session, list[Event]]]:
        """Return a session copy and its logged events, or None if unknown."""
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            events = [e.event for e in self._events if e.event.session_id == session_id]
            return session.model_copy(deep=True), events

    def events_of_type(self, event_type: EventType) -> list[Event]:
        with self._lock:
            return [e.event for e in self._events if e.event.type == event_type.value]

    @property
    def session_count(self) -> int:
        with self._lock:
            return len(self._sessions)

    @property
    def event_count(self) -> int:
        with self._lock:
            return len(self._events)
