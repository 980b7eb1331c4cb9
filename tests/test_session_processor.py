# ==============================================================================
# Tests for Session Processor: core/session_processor.py
# ==============================================================================
"""
Tests for session merging and the single aggregate bookkeeping function.
"""

from datetime import timedelta

from sitepulse.core.models import DeviceClass, Interactions, SessionData, parse_event, to_millis
from sitepulse.core.session_processor import (
    AggregateCounters,
    apply_event_to_aggregates,
    merge_session,
)

from conftest import T0


def _event(event_type: str, **metadata):
    return parse_event(
        {"type": event_type, "timestamp": to_millis(T0), "sessionId": "s1", "metadata": metadata}
    )


# ==============================================================================
# apply_event_to_aggregates
# ==============================================================================


class TestApplyEventToAggregates:
    """Tests for incremental page/button counters."""

    def test_navigation_with_page_counts(self):
        counters = AggregateCounters()
        apply_event_to_aggregates(counters, _event("navigation", page="/pricing"))
        apply_event_to_aggregates(counters, _event("navigation", page="/pricing"))
        assert counters.page_views == {"/pricing": 2}

    def test_navigation_without_page_ignored(self):
        counters = AggregateCounters()
        apply_event_to_aggregates(counters, _event("navigation", timeOnPage=1000))
        assert counters.page_views == {}

    def test_click_with_button_text_counts(self):
        counters = AggregateCounters()
        apply_event_to_aggregates(counters, _event("click", buttonText="Get Started"))
        assert counters.button_clicks == {"Get Started": 1}

    def test_other_events_ignored(self):
        counters = AggregateCounters()
        apply_event_to_aggregates(counters, _event("view", url="/"))
        apply_event_to_aggregates(counters, _event("click", x=1, y=2))
        assert counters.page_views == {}
        assert counters.button_clicks == {}

    def test_copy_is_independent(self):
        counters = AggregateCounters(page_views={"/": 1})
        copied = counters.copy()
        copied.page_views["/"] = 5
        assert counters.page_views["/"] == 1


# ==============================================================================
# merge_session
# ==============================================================================


class TestMergeSession:
    """Tests for creating and updating server-side sessions."""

    def test_creates_session(self):
        data = SessionData(start_time=T0 - timedelta(minutes=2), referrer="https://google.com")
        session = merge_session(None, "s1", data, T0)
        assert session.session_id == "s1"
        assert session.start_time == T0 - timedelta(minutes=2)
        assert session.last_activity == T0
        assert session.referrer == "https://google.com"

    def test_start_time_defaults_to_now(self):
        session = merge_session(None, "s1", SessionData(), T0)
        assert session.start_time == T0

    def test_future_start_time_clamped(self):
        """A client clock ahead of the server never breaks last_activity >= start_time."""
        data = SessionData(start_time=T0 + timedelta(hours=1))
        session = merge_session(None, "s1", data, T0)
        assert session.start_time == session.last_activity == T0

    def test_merge_keeps_absent_fields(self):
        session = merge_session(None, "s1", SessionData(referrer="direct", page_views=["/"]), T0)
        later = T0 + timedelta(minutes=5)
        merged = merge_session(session, "s1", SessionData(), later)
        assert merged.referrer == "direct"
        assert merged.page_views == ["/"]
        assert merged.last_activity == later

    def test_merge_replaces_present_fields(self):
        session = merge_session(None, "s1", SessionData(page_views=["/"]), T0)
        merged = merge_session(
            session,
            "s1",
            SessionData(page_views=["/", "/pricing"], interactions=Interactions(clicks=4)),
            T0 + timedelta(minutes=1),
        )
        assert merged.page_views == ["/", "/pricing"]
        assert merged.interactions.clicks == 4

    def test_device_derived_from_user_agent(self):
        data = SessionData(user_agent="Mozilla/5.0 (iPhone; CPU iPhone OS 17_0)")
        assert merge_session(None, "s1", data, T0).device == DeviceClass.MOBILE

    def test_reported_device_wins(self):
        data = SessionData(user_agent="iPhone", device=DeviceClass.TABLET)
        assert merge_session(None, "s1", data, T0).device == DeviceClass.TABLET

    def test_device_id_recorded(self):
        session = merge_session(None, "s1", SessionData(), T0, device_id="device_abc")
        assert session.device_id == "device_abc"

    def test_last_activity_never_moves_backwards(self):
        session = merge_session(None, "s1", SessionData(), T0)
        merged = merge_session(session, "s1", SessionData(), T0 - timedelta(minutes=1))
        assert merged.last_activity == T0
