# ==============================================================================
# Tests for Domain Models: core/models.py
# ==============================================================================
"""
Tests for event parsing, metadata bounds, legacy wire names and the batch
request model.
"""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from sitepulse.core.models import (
    MAX_ERROR_CONTEXT_KEYS,
    MAX_METADATA_STRING,
    ClickEvent,
    ConversionEvent,
    DeviceClass,
    EngagementEvent,
    NavigationEvent,
    Session,
    SessionData,
    TrackRequest,
    from_millis,
    parse_event,
    to_millis,
)

MS = 1_773_489_600_000  # 2026-03-14T12:00:00Z


# ==============================================================================
# parse_event
# ==============================================================================


class TestParseEvent:
    """Tests for parsing raw event dicts into typed variants."""

    def test_click_variant(self):
        event = parse_event(
            {
                "type": "click",
                "target": "#signup",
                "timestamp": MS,
                "sessionId": "s1",
                "metadata": {"x": 10, "y": 20, "buttonText": "Sign up"},
            }
        )
        assert isinstance(event, ClickEvent)
        assert event.metadata.button_text == "Sign up"
        assert event.timestamp == datetime(2026, 3, 14, 12, 0, tzinfo=timezone.utc)

    def test_legacy_interaction_maps_to_click(self):
        event = parse_event(
            {"eventType": "interaction", "eventName": "button_click", "timestamp": MS},
            session_id="s1",
        )
        assert isinstance(event, ClickEvent)
        assert event.target == "button_click"
        assert event.session_id == "s1"

    def test_legacy_payment_maps_to_conversion(self):
        event = parse_event({"type": "payment", "timestamp": MS, "sessionId": "s1"})
        assert isinstance(event, ConversionEvent)

    def test_legacy_product_maps_to_engagement(self):
        event = parse_event(
            {"type": "product", "target": "launch_clicked", "timestamp": MS, "sessionId": "s1"}
        )
        assert isinstance(event, EngagementEvent)
        assert event.target == "launch_clicked"

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            parse_event({"type": "teleport", "timestamp": MS, "sessionId": "s1"})

    def test_missing_session_rejected(self):
        with pytest.raises(ValidationError):
            parse_event({"type": "click", "timestamp": MS})

    def test_iso_timestamp_accepted(self):
        event = parse_event(
            {"type": "view", "timestamp": "2026-03-14T12:00:00Z", "sessionId": "s1"}
        )
        assert to_millis(event.timestamp) == MS

    def test_naive_datetime_treated_as_utc(self):
        event = parse_event(
            {"type": "view", "timestamp": datetime(2026, 3, 14, 12, 0), "sessionId": "s1"}
        )
        assert event.timestamp.tzinfo is not None
        assert to_millis(event.timestamp) == MS

    def test_null_metadata_gets_defaults(self):
        event = parse_event(
            {"type": "navigation", "timestamp": MS, "sessionId": "s1", "metadata": None}
        )
        assert isinstance(event, NavigationEvent)
        assert event.metadata.page is None

    def test_events_are_immutable(self):
        event = parse_event({"type": "click", "timestamp": MS, "sessionId": "s1"})
        with pytest.raises(ValidationError):
            event.target = "changed"


# ==============================================================================
# Metadata bounds
# ==============================================================================


class TestMetadataBounds:
    """Tests for truncation and key limits on metadata."""

    def test_unknown_keys_dropped(self):
        event = parse_event(
            {
                "type": "click",
                "timestamp": MS,
                "sessionId": "s1",
                "metadata": {"x": 1, "secret": "nope"},
            }
        )
        assert "secret" not in event.metadata.model_dump()

    def test_long_strings_truncated(self):
        event = parse_event(
            {
                "type": "click",
                "timestamp": MS,
                "sessionId": "s1",
                "metadata": {"text": "a" * 1000},
            }
        )
        assert len(event.metadata.text) == MAX_METADATA_STRING

    def test_error_context_bounded(self):
        context = {f"k{i}": i for i in range(50)}
        event = parse_event(
            {
                "type": "error",
                "timestamp": MS,
                "sessionId": "s1",
                "metadata": {"message": "boom", "context": context},
            }
        )
        assert len(event.metadata.context) == MAX_ERROR_CONTEXT_KEYS
        assert event.metadata.context["k0"] == "0"

    def test_scroll_depth_range_enforced(self):
        with pytest.raises(ValidationError):
            parse_event(
                {
                    "type": "scroll",
                    "timestamp": MS,
                    "sessionId": "s1",
                    "metadata": {"depth": 150, "milestone": 100},
                }
            )

    def test_legacy_time_keys(self):
        event = parse_event(
            {
                "type": "form_submit",
                "timestamp": MS,
                "sessionId": "s1",
                "metadata": {"formName": "contact", "timeSpent": 4200},
            }
        )
        assert event.metadata.time_spent_ms == 4200


# ==============================================================================
# Session and SessionData
# ==============================================================================


class TestSession:
    """Tests for session duration and activity."""

    def _session(self, minutes_idle: float) -> Session:
        last = datetime(2026, 3, 14, 12, 0, tzinfo=timezone.utc)
        return Session(
            session_id="s1",
            start_time=last - timedelta(minutes=5),
            last_activity=last - timedelta(minutes=minutes_idle),
        )

    def test_active_at_window_boundary(self):
        session = self._session(30)
        assert session.is_active(datetime(2026, 3, 14, 12, 0, tzinfo=timezone.utc))

    def test_inactive_after_window(self):
        session = self._session(45)
        assert not session.is_active(datetime(2026, 3, 14, 12, 0, tzinfo=timezone.utc))

    def test_duration_ms(self):
        start = datetime(2026, 3, 14, 12, 0, tzinfo=timezone.utc)
        session = Session(
            session_id="s1", start_time=start, last_activity=start + timedelta(seconds=90)
        )
        assert session.duration_ms == 90_000

    def test_session_data_unknown_device_dropped(self):
        data = SessionData.model_validate({"device": "smart-fridge"})
        assert data.device is None

    def test_session_data_wire_uses_millis(self):
        data = SessionData(start_time=from_millis(MS), device=DeviceClass.MOBILE)
        wire = data.to_wire()
        assert wire["startTime"] == MS
        assert wire["device"] == "mobile"


# ==============================================================================
# TrackRequest
# ==============================================================================


class TestTrackRequest:
    """Tests for the batch request model."""

    def test_events_inherit_batch_session(self):
        request = TrackRequest.model_validate(
            {"sessionId": "s1", "events": [{"type": "view", "timestamp": MS}]}
        )
        assert request.events[0].session_id == "s1"

    def test_null_session_data_allowed(self):
        request = TrackRequest.model_validate(
            {"sessionId": "s1", "events": [], "sessionData": None}
        )
        assert request.session_data == SessionData()

    def test_empty_session_id_rejected(self):
        with pytest.raises(ValidationError):
            TrackRequest.model_validate({"sessionId": "", "events": []})

    def test_wire_shape(self):
        request = TrackRequest.model_validate(
            {
                "sessionId": "s1",
                "deviceId": "d1",
                "events": [{"type": "click", "target": "#a", "timestamp": MS}],
            }
        )
        wire = request.to_wire()
        assert wire["sessionId"] == "s1"
        assert wire["deviceId"] == "d1"
        assert wire["events"][0]["timestamp"] == MS
        assert wire["events"][0]["sessionId"] == "s1"
        assert wire["sessionData"] == {}
