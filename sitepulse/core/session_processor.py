# ==============================================================================
# Session Processor - Pure Domain Logic
# ==============================================================================
"""
Pure session and aggregate bookkeeping with no external dependencies.

This module contains the domain logic applied during ingestion:
- Merging client-reported session data into the server-side session record
- Applying a single event to the incremental aggregate counters

Nothing here touches locks, HTTP or storage. The ingestion service calls
these functions inside the store's critical section, which keeps them:
- Unit testable without mocks
- The only place where session/aggregate fields are written
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sitepulse.core.identity import classify_device
from sitepulse.core.models import (
    ClickEvent,
    Event,
    Interactions,
    NavigationEvent,
    Session,
    SessionData,
)


@dataclass
class AggregateCounters:
    """
    Incrementally maintained counters.

    Both maps preserve first-seen insertion order, which is the tie-break
    order for top-N rankings.
    """

    page_views: dict[str, int] = field(default_factory=dict)
    button_clicks: dict[str, int] = field(default_factory=dict)

    def copy(self) -> "AggregateCounters":
        return AggregateCounters(dict(self.page_views), dict(self.button_clicks))


def apply_event_to_aggregates(counters: AggregateCounters, event: Event) -> None:
    """
    Apply one event to the aggregate counters.

    Must be called exactly once per ingested event.

    - navigation events with a page bump that page's view count
    - click events with button text bump that button's click count

    Args:
        counters: Counters to mutate in place
        event: The event being ingested
    """
    if isinstance(event, NavigationEvent) and event.metadata.page:
        page = event.metadata.page
        counters.page_views[page] = counters.page_views.get(page, 0) + 1
    elif isinstance(event, ClickEvent) and event.metadata.button_text:
        button = event.metadata.button_text
        counters.button_clicks[button] = counters.button_clicks.get(button, 0) + 1


def merge_session(
    existing: Optional[Session],
    session_id: str,
    data: SessionData,
    now: datetime,
    device_id: Optional[str] = None,
) -> Session:
    """
    Merge client-reported session data into a session record.

    Creates the session when ``existing`` is None. Fields present in ``data``
    replace the stored ones; absent fields are kept. ``last_activity`` is
    always refreshed to ``now``, and ``start_time`` is clamped so that
    ``last_activity >= start_time`` holds even with client clock skew.

    Args:
        existing: Current session record, or None
        session_id: Session id from the batch
        data: Client-reported session data
        now: Ingestion time
        device_id: Device id from the batch, if any

    Returns:
        The merged session (a new object when created, else ``existing``)
    """
    if existing is None:
        session = Session(
            session_id=session_id,
            start_time=data.start_time or now,
            last_activity=now,
            referrer=data.referrer,
        )
    else:
        session = existing
        if data.start_time is not None:
            session.start_time = data.start_time
        if data.referrer is not None:
            session.referrer = data.referrer

    if data.user_agent is not None:
        session.user_agent = data.user_agent
    if data.page_views is not None:
        session.page_views = list(data.page_views)
    if data.interactions is not None:
        session.interactions = Interactions.model_validate(data.interactions.model_dump())
    if device_id:
        session.device_id = device_id

    if data.device is not None:
        session.device = data.device
    elif session.device is None and session.user_agent:
        session.device = classify_device(session.user_agent)

    session.last_activity = max(now, session.last_activity)
    if session.start_time > session.last_activity:
        session.start_time = session.last_activity

    return session
