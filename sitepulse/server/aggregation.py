# ==============================================================================
# Aggregation Engine - Real-Time Metrics
# ==============================================================================
"""
Computes dashboard metrics from a consistent snapshot of the analytics store.

Metrics are derived fresh on every call; nothing is cached between queries.
Windowed metrics look at the last 24 hours of events, and a session counts as
active while its last activity is within the activity window (30 minutes by
default).

The hourly histogram uses 24 half-open ``[start, start + 1h)`` buckets aligned
to the UTC hour, oldest first, with the last bucket containing "now".
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from sitepulse.core.models import (
    ClickEvent,
    Clock,
    ConversionEvent,
    DeviceClass,
    Event,
    utc_now,
)
from sitepulse.server.store import AnalyticsStore

logger = logging.getLogger(__name__)

TOP_N = 5
HISTOGRAM_HOURS = 24
METRICS_WINDOW = timedelta(hours=24)
LEAD_CAPTURED = "lead_captured"


# ==============================================================================
# Response Models
# ==============================================================================


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TopPage(_CamelModel):
    page: str
    views: int


class TopButton(_CamelModel):
    name: str
    clicks: int


class HourlyBucket(_CamelModel):
    """Event count for one hour; ``hour`` is the "HH:00" label of ``start``."""

    hour: str
    start: datetime
    events: int


class DeviceBreakdown(_CamelModel):
    mobile: int = 0
    tablet: int = 0
    desktop: int = 0


class MetricsSnapshot(_CamelModel):
    """
    Point-in-time dashboard metrics.

    Attributes:
        total_visitors: Number of known sessions
        active_visitors: Sessions active within the activity window
        total_page_views: Sum of per-page view counters
        avg_session_duration: Mean session duration in milliseconds
        avg_clicks_per_session: Clicks in the last 24 h per visitor
        conversion_rate: Lead captures in the last 24 h per visitor
        top_pages: Five most viewed pages
        top_buttons: Five most clicked buttons
        device_breakdown: Sessions per device class
        hourly_data: Events per hour over the last 24 hours
        last_updated: When the snapshot was computed
    """

    total_visitors: int = 0
    active_visitors: int = 0
    total_page_views: int = 0
    avg_session_duration: float = 0.0
    avg_clicks_per_session: float = 0.0
    conversion_rate: float = 0.0
    top_pages: list[TopPage] = Field(default_factory=list)
    top_buttons: list[TopButton] = Field(default_factory=list)
    device_breakdown: DeviceBreakdown = Field(default_factory=DeviceBreakdown)
    hourly_data: list[HourlyBucket] = Field(default_factory=list)
    last_updated: datetime


class ConversionRecord(_CamelModel):
    timestamp: datetime
    type: str
    email: Optional[str] = None
    source: Optional[str] = None
    session_id: str


# ==============================================================================
# Pure Helpers
# ==============================================================================


def top_entries(counts: dict[str, int], n: int = TOP_N) -> list[tuple[str, int]]:
    """
    Highest counts first; equal counts keep first-seen order.

    ``sorted`` is stable even with ``reverse=True``, which gives the tie-break.
    """
    return sorted(counts.items(), key=lambda item: item[1], reverse=True)[:n]


def hourly_histogram(
    events: list[Event], now: datetime, hours: int = HISTOGRAM_HOURS
) -> list[HourlyBucket]:
    """Count events into hour buckets ending with the bucket that contains ``now``."""
    now = now.astimezone(timezone.utc)
    one_hour = timedelta(hours=1)
    current = now.replace(minute=0, second=0, microsecond=0)
    first = current - one_hour * (hours - 1)
    end = current + one_hour

    counts = [0] * hours
    for event in events:
        ts = event.timestamp
        if first <= ts < end:
            counts[int((ts - first) // one_hour)] += 1

    return [
        HourlyBucket(
            hour=(first + one_hour * i).strftime("%H:00"),
            start=first + one_hour * i,
            events=counts[i],
        )
        for i in range(hours)
    ]


def conversion_records(events: list[Event]) -> list[ConversionRecord]:
    return [
        ConversionRecord(
            timestamp=event.timestamp,
            type=event.target,
            email=event.metadata.email,
            source=event.metadata.source,
            session_id=event.session_id,
        )
        for event in events
        if isinstance(event, ConversionEvent)
    ]


# ==============================================================================
# Engine
# ==============================================================================


class AggregationEngine:
    """
    Computes MetricsSnapshot values from an AnalyticsStore.

    Args:
        store: Source of sessions, events and counters
        clock: Source of "now"
        activity_window_minutes: Recency window for active visitors
    """

    def __init__(
        self,
        store: AnalyticsStore,
        clock: Clock = utc_now,
        activity_window_minutes: int = 30,
    ):
        self._store = store
        self._clock = clock
        self._activity_window_minutes = activity_window_minutes

    def compute(self, now: Optional[datetime] = None) -> MetricsSnapshot:
        now = now or self._clock()
        snapshot = self._store.snapshot()
        sessions = snapshot.sessions
        total_visitors = len(sessions)

        active = sum(1 for s in sessions if s.is_active(now, self._activity_window_minutes))

        devices = DeviceBreakdown()
        total_duration = 0.0
        for session in sessions:
            total_duration += session.duration_ms
            if session.device == DeviceClass.MOBILE:
                devices.mobile += 1
            elif session.device == DeviceClass.TABLET:
                devices.tablet += 1
            elif session.device == DeviceClass.DESKTOP:
                devices.desktop += 1

        cutoff = now - METRICS_WINDOW
        recent = [e for e in snapshot.events if e.timestamp > cutoff]
        clicks = sum(
            (e.metadata.clicks if e.metadata.clicks is not None else 1)
            for e in recent
            if isinstance(e, ClickEvent)
        )
        leads = sum(1 for e in recent if e.target == LEAD_CAPTURED)

        def per_visitor(value: float) -> float:
            return value / total_visitors if total_visitors else 0.0

        metrics = MetricsSnapshot(
            total_visitors=total_visitors,
            active_visitors=active,
            total_page_views=sum(snapshot.counters.page_views.values()),
            avg_session_duration=per_visitor(total_duration),
            avg_clicks_per_session=per_visitor(clicks),
            conversion_rate=per_visitor(leads),
            top_pages=[
                TopPage(page=page, views=views)
                for page, views in top_entries(snapshot.counters.page_views)
            ],
            top_buttons=[
                TopButton(name=name, clicks=count)
                for name, count in top_entries(snapshot.counters.button_clicks)
            ],
            device_breakdown=devices,
            hourly_data=hourly_histogram(snapshot.events, now),
            last_updated=now,
        )
        logger.debug(
            "Computed metrics: %d visitors, %d active, %d recent events",
            total_visitors,
            active,
            len(recent),
        )
        return metrics
