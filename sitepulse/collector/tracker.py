# ==============================================================================
# Event Collector - Signals to Events
# ==============================================================================
"""
Turns page signals and explicit calls into typed analytics events.

The collector installs itself on a SignalHost and listens for:
- click (capture phase): click event, per-button counters for buttons
- scroll: scroll event per newly crossed 25% milestone, debounced 500 ms
- visibilitychange: engagement event ("blur"/"focus")
- pagehide: final flush of the buffer

Applications add navigation, form, error and conversion events through the
``track_*`` methods. Every emitted event passes a sampling coin flip; the
client-side session record (pages, interaction counters) is updated and
persisted regardless of sampling so it always reflects the real visit.
"""

import logging
import random
import threading
from datetime import datetime
from typing import Any, Optional

from sitepulse.base import (
    SIGNAL_CLICK,
    SIGNAL_PAGEHIDE,
    SIGNAL_SCROLL,
    SIGNAL_VISIBILITY,
    BatchTransport,
    Cache,
    SignalHost,
    TimerHandle,
)
from sitepulse.collector.buffer import EventBuffer
from sitepulse.collector.elements import (
    ElementInfo,
    button_key,
    button_label,
    element_identifier,
    truncate_text,
)
from sitepulse.collector.outbox import Outbox
from sitepulse.core.identity import SessionManager, classify_device
from sitepulse.core.models import (
    EVENT_ADAPTER,
    Clock,
    Event,
    EventType,
    Interactions,
    SessionData,
    utc_now,
)
from sitepulse.utils.config import Settings, get_settings

logger = logging.getLogger(__name__)

SCROLL_MILESTONE = 25
SCROLL_DEBOUNCE_SECONDS = 0.5
LEAD_CAPTURED = "lead_captured"


def compute_scroll_depth(
    scroll_top: float, document_height: float, viewport_height: float
) -> float:
    """Scroll depth in percent, clamped to [0, 100]; 0 when the page cannot scroll."""
    scrollable = document_height - viewport_height
    if scrollable <= 0:
        return 0.0
    return max(0.0, min(100.0, scroll_top / scrollable * 100))


def _elapsed_ms(start: datetime, end: datetime) -> int:
    return max(0, int((end - start).total_seconds() * 1000))


class EventCollector:
    """
    Client-side collector for one browsing session.

    Args:
        session_manager: Persists the client-side session record
        buffer: Receives emitted events; its session/device ids are used
        sampling_rate: Fraction of events kept (1.0 keeps all)
        clock: Source of "now"
        rng: Random source for the sampling coin flip
        scroll_debounce: Seconds a scroll milestone must settle before emitting
    """

    def __init__(
        self,
        session_manager: SessionManager,
        buffer: EventBuffer,
        sampling_rate: float = 1.0,
        clock: Clock = utc_now,
        rng: Optional[random.Random] = None,
        scroll_debounce: float = SCROLL_DEBOUNCE_SECONDS,
    ):
        self._manager = session_manager
        self._buffer = buffer
        self._sampling_rate = sampling_rate
        self._clock = clock
        self._rng = rng or random.Random()
        self._scroll_debounce = scroll_debounce

        self._lock = threading.RLock()
        self._host: Optional[SignalHost] = None
        self._session_id = buffer.session_id
        self._device_id = buffer.device_id

        now = clock()
        self._record = session_manager.load_session_record(self._session_id) or SessionData(
            start_time=now,
            page_views=[],
        )
        if self._record.interactions is None:
            self._record.interactions = Interactions()
        if self._record.page_views is None:
            self._record.page_views = []
        if self._record.start_time is None:
            self._record.start_time = now

        self._current_page: Optional[str] = None
        self._page_start = now
        self._max_scroll_depth = 0.0
        self._last_milestone = 0
        self._scroll_timer: Optional[TimerHandle] = None
        self._form_starts: dict[str, datetime] = {}

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def device_id(self) -> Optional[str]:
        return self._device_id

    @property
    def buffer(self) -> EventBuffer:
        return self._buffer

    # ==========================================================================
    # Installation
    # ==========================================================================

    def install(self, host: SignalHost) -> None:
        """Attach to a host's signals and emit the initial view event."""
        self._host = host
        with self._lock:
            user_agent = host.user_agent
            if user_agent:
                self._record.user_agent = user_agent
                self._record.device = classify_device(user_agent)
            if self._record.referrer is None:
                self._record.referrer = host.referrer or "direct"

        host.subscribe(SIGNAL_CLICK, self._on_click, capture=True)
        host.subscribe(SIGNAL_SCROLL, self._on_scroll)
        host.subscribe(SIGNAL_VISIBILITY, self._on_visibility)
        host.subscribe(SIGNAL_PAGEHIDE, self._on_pagehide)

        self._emit(
            EventType.VIEW,
            "page",
            {"url": host.url, "referrer": host.referrer, "title": host.title},
        )
        self._persist()
        logger.info("Collector installed for session %s", self._session_id)

    # ==========================================================================
    # Emission
    # ==========================================================================

    def _emit(
        self, event_type: EventType, target: str, metadata: Optional[dict[str, Any]] = None
    ) -> Optional[Event]:
        if self._rng.random() > self._sampling_rate:
            return None
        event = EVENT_ADAPTER.validate_python(
            {
                "type": event_type.value,
                "target": target,
                "timestamp": self._clock(),
                "session_id": self._session_id,
                "device_id": self._device_id,
                "metadata": metadata or {},
            }
        )
        self._buffer.enqueue(event)
        return event

    def _persist(self) -> None:
        with self._lock:
            self._record.last_activity_time = self._clock()
            record = self._record.model_copy(deep=True)
        try:
            self._manager.save_session_record(self._session_id, record)
        except Exception as e:
            # Session record storage is best-effort; collection continues
            logger.warning("Could not persist session record: %s", e)

    # ==========================================================================
    # Signal Handlers
    # ==========================================================================

    def _on_click(self, payload: dict) -> None:
        element = payload.get("element")
        if isinstance(element, dict):
            element = ElementInfo.from_dict(element)
        if element is None:
            return

        metadata: dict[str, Any] = {
            "x": payload.get("x"),
            "y": payload.get("y"),
            "element_type": element.tag.upper(),
            "element_id": element.id,
            "text": truncate_text(element.text),
        }
        with self._lock:
            interactions = self._record.interactions
            interactions.clicks += 1
            if element.is_button:
                label = button_label(element)
                key = button_key(label)
                interactions.button_clicks[key] = interactions.button_clicks.get(key, 0) + 1
                metadata["button_text"] = label

        self._emit(EventType.CLICK, element_identifier(element), metadata)
        self._persist()

    def _on_scroll(self, payload: dict) -> None:
        depth = compute_scroll_depth(
            payload.get("scroll_top", 0.0),
            payload.get("document_height", 0.0),
            payload.get("viewport_height", 0.0),
        )
        with self._lock:
            if depth <= self._max_scroll_depth:
                return
            self._max_scroll_depth = depth
            self._record.interactions.scrolls += 1
            milestone = int(depth // SCROLL_MILESTONE) * SCROLL_MILESTONE
            if milestone <= self._last_milestone or self._host is None:
                return
            if self._scroll_timer is not None:
                self._scroll_timer.cancel()
            self._scroll_timer = self._host.call_later(
                self._scroll_debounce, self._emit_scroll_milestone
            )

    def _emit_scroll_milestone(self) -> None:
        with self._lock:
            self._scroll_timer = None
            depth = self._max_scroll_depth
            milestone = int(depth // SCROLL_MILESTONE) * SCROLL_MILESTONE
            if milestone <= self._last_milestone:
                return
            self._last_milestone = milestone
        self._emit(EventType.SCROLL, "page", {"depth": round(depth, 2), "milestone": milestone})
        self._persist()

    def _on_visibility(self, payload: dict) -> None:
        hidden = bool(payload.get("hidden"))
        self._emit(
            EventType.ENGAGEMENT,
            "blur" if hidden else "focus",
            {
                "visible": not hidden,
                "time_on_page_ms": _elapsed_ms(self._page_start, self._clock()),
            },
        )

    def _on_pagehide(self, payload: dict) -> None:
        self.close()

    # ==========================================================================
    # Explicit Tracking API
    # ==========================================================================

    def track_page_view(self, page: str) -> Optional[Event]:
        """
        Record a navigation to ``page``.

        Emits a closing navigation event for the previous page (time on page
        and max scroll depth, no ``page`` field) followed by the navigation
        event for the new page. Resets scroll tracking.
        """
        now = self._clock()
        with self._lock:
            previous = self._current_page
            time_on_page = _elapsed_ms(self._page_start, now)
            scroll_depth = self._max_scroll_depth
            self._current_page = page
            self._page_start = now
            self._max_scroll_depth = 0.0
            self._last_milestone = 0
            if self._scroll_timer is not None:
                self._scroll_timer.cancel()
                self._scroll_timer = None
            self._record.page_views.append(page)

        if previous is not None:
            self._emit(
                EventType.NAVIGATION,
                previous,
                {"time_on_page_ms": time_on_page, "scroll_depth": round(scroll_depth, 2)},
            )
        event = self._emit(EventType.NAVIGATION, page, {"page": page})
        self._persist()
        return event

    def track_form_start(self, form_name: str) -> Optional[Event]:
        with self._lock:
            self._form_starts[form_name] = self._clock()
        return self._emit(EventType.FORM_START, form_name, {"form_name": form_name})

    def track_form_submit(self, form_name: str, success: bool = True) -> Optional[Event]:
        """Record a form submission; time spent counts from form start (or page start)."""
        now = self._clock()
        with self._lock:
            started = self._form_starts.pop(form_name, self._page_start)
            self._record.interactions.form_submissions += 1
        event = self._emit(
            EventType.FORM_SUBMIT,
            form_name,
            {
                "form_name": form_name,
                "success": success,
                "time_spent_ms": _elapsed_ms(started, now),
            },
        )
        self._persist()
        return event

    def track_error(
        self, message: str, context: Optional[dict[str, Any]] = None
    ) -> Optional[Event]:
        context = {str(k): str(v) for k, v in (context or {}).items()}
        return self._emit(EventType.ERROR, "error", {"message": message, "context": context})

    def track_conversion(
        self,
        name: str = LEAD_CAPTURED,
        email: Optional[str] = None,
        source: Optional[str] = None,
    ) -> Optional[Event]:
        """Record a conversion; ``lead_captured`` feeds the conversion rate."""
        return self._emit(EventType.CONVERSION, name, {"email": email, "source": source})

    def track_event(
        self,
        event_type: EventType | str,
        target: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> Optional[Event]:
        """
        Record an arbitrary event.

        Raises:
            ValueError: If the type is unknown or the metadata is invalid
        """
        return self._emit(EventType(event_type), target, metadata)

    # ==========================================================================
    # Session State
    # ==========================================================================

    def session_data(self) -> SessionData:
        """Snapshot of the client-side session record, shipped with each batch."""
        with self._lock:
            return self._record.model_copy(
                deep=True, update={"last_activity_time": self._clock()}
            )

    def get_session_summary(self) -> dict[str, Any]:
        now = self._clock()
        with self._lock:
            return {
                "session_id": self._session_id,
                "device_id": self._device_id,
                "duration_ms": _elapsed_ms(self._record.start_time, now),
                "time_on_page_ms": _elapsed_ms(self._page_start, now),
                "current_page": self._current_page,
                "page_views": list(self._record.page_views),
                "interactions": self._record.interactions.model_dump(),
                "max_scroll_depth": self._max_scroll_depth,
                "queued_events": len(self._buffer),
            }

    def close(self) -> None:
        """Flush everything; called on page teardown."""
        with self._lock:
            if self._scroll_timer is not None:
                self._scroll_timer.cancel()
                self._scroll_timer = None
        self._persist()
        self._buffer.close()


# ==============================================================================
# Factory
# ==============================================================================


def create_collector(
    transport: BatchTransport,
    transient: Cache,
    persistent: Optional[Cache] = None,
    settings: Optional[Settings] = None,
    clock: Clock = utc_now,
    rng: Optional[random.Random] = None,
) -> EventCollector:
    """
    Wire a session manager, outbox, buffer and collector from settings.

    The outbox lives in persistent storage when available, otherwise in the
    transient storage.
    """
    settings = settings or get_settings()
    manager = SessionManager(
        transient,
        persistent,
        device_id_enabled=settings.collector.device_id_enabled,
        clock=clock,
        rng=rng,
    )
    session_id = manager.get_or_create_session_id()
    device_id = manager.get_or_create_device_id()
    outbox = Outbox(
        persistent or transient,
        key_prefix=settings.outbox.key_prefix,
        max_batches=settings.outbox.max_batches,
        clock=clock,
    )

    collector: Optional[EventCollector] = None

    def _session_data() -> SessionData:
        return collector.session_data() if collector else SessionData()

    buffer = EventBuffer(
        transport,
        outbox,
        session_id,
        device_id=device_id,
        session_data_provider=_session_data,
        batch_size=settings.collector.batch_size,
        flush_interval=settings.collector.flush_interval_seconds,
        clock=clock,
    )
    collector = EventCollector(
        manager,
        buffer,
        sampling_rate=settings.collector.sampling_rate,
        clock=clock,
        rng=rng,
    )
    return collector
