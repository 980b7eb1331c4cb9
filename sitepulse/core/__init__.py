# ==============================================================================
# Core Domain Logic
# ==============================================================================
"""
Pure domain logic with no framework dependencies.

This module contains:
- Domain models (Event variants, Session, SessionData, TrackRequest)
- Session and device identity (SessionManager, classify_device)
- Ingestion bookkeeping (merge_session, apply_event_to_aggregates)

All code here is framework-agnostic and easily unit-testable.
"""

from sitepulse.core.identity import SessionManager, classify_device, generate_id
from sitepulse.core.models import (
    DeviceClass,
    Event,
    EventType,
    Session,
    SessionData,
    TrackRequest,
    parse_event,
)
from sitepulse.core.session_processor import (
    AggregateCounters,
    apply_event_to_aggregates,
    merge_session,
)

__all__ = [
    "AggregateCounters",
    "DeviceClass",
    "Event",
    "EventType",
    "Session",
    "SessionData",
    "SessionManager",
    "TrackRequest",
    "apply_event_to_aggregates",
    "classify_device",
    "generate_id",
    "merge_session",
    "parse_event",
]
