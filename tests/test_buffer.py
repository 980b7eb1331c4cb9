# ==============================================================================
# Tests for EventBuffer: collector/buffer.py
# ==============================================================================
"""
Tests for batching, the size and time triggers, failure handling through the
outbox, and teardown delivery.
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock

from sitepulse.base import BatchTransport, RetryableTransportError, TransportError
from sitepulse.collector.buffer import EventBuffer
from sitepulse.collector.outbox import Outbox
from sitepulse.core.models import SessionData, parse_event, to_millis, utc_now
from sitepulse.infrastructure.cache import MemoryCache

from conftest import ImmediateExecutor, RecordingTransport

# ==============================================================================
# Helpers
# ==============================================================================


def _event(n: int, clock):
    return parse_event(
        {
            "type": "click",
            "target": f"#e{n}",
            "timestamp": to_millis(clock()),
            "sessionId": "s1",
        }
    )


def _make_buffer(transport, clock, outbox=None, executor=None, **kwargs) -> EventBuffer:
    return EventBuffer(
        transport,
        outbox if outbox is not None else Outbox(MemoryCache(), clock=clock),
        "s1",
        clock=clock,
        executor=executor or ImmediateExecutor(),
        **kwargs,
    )


class FlakyTransport(BatchTransport):
    """Fails every other call."""

    def __init__(self):
        self.calls = 0
        self.payloads: list[dict] = []

    def send(self, payload, keepalive=False):
        self.calls += 1
        if self.calls % 2 == 0:
            raise RetryableTransportError("flaky")
        self.payloads.append(payload)


# ==============================================================================
# Triggers
# ==============================================================================


class TestFlushTriggers:
    """Tests for the size and time triggers."""

    def test_size_trigger(self, transport, clock):
        buffer = _make_buffer(transport, clock, batch_size=3)
        for n in range(3):
            buffer.enqueue(_event(n, clock))
        assert len(transport.payloads) == 1
        assert [e["target"] for e in transport.payloads[0]["events"]] == ["#e0", "#e1", "#e2"]
        assert len(buffer) == 0

    def test_below_size_waits(self, transport, clock):
        buffer = _make_buffer(transport, clock, batch_size=3)
        buffer.enqueue(_event(0, clock))
        buffer.enqueue(_event(1, clock))
        assert transport.payloads == []
        assert len(buffer) == 2

    def test_time_trigger(self, transport, clock):
        buffer = _make_buffer(transport, clock, batch_size=10, flush_interval=30)
        buffer.enqueue(_event(0, clock))

        clock.advance(seconds=29)
        assert buffer.tick() is None
        assert transport.payloads == []

        clock.advance(seconds=1)
        assert buffer.tick() is not None
        assert len(transport.payloads) == 1

    def test_size_flush_resets_timer(self, transport, clock):
        buffer = _make_buffer(transport, clock, batch_size=2, flush_interval=30)
        clock.advance(seconds=20)
        buffer.enqueue(_event(0, clock))
        buffer.enqueue(_event(1, clock))
        buffer.enqueue(_event(2, clock))

        clock.advance(seconds=15)
        buffer.tick()
        assert len(transport.payloads) == 1

    def test_empty_flush_sends_nothing(self, transport, clock):
        buffer = _make_buffer(transport, clock)
        assert buffer.flush() is None
        assert transport.payloads == []

    def test_batch_count_matches_size_trigger(self, transport, clock):
        """N events with batch size B produce ceil(N / B) batches once closed."""
        buffer = _make_buffer(transport, clock, batch_size=4)
        for n in range(10):
            buffer.enqueue(_event(n, clock))
        buffer.close()
        assert [len(p["events"]) for p in transport.payloads] == [4, 4, 2]


# ==============================================================================
# Payload
# ==============================================================================


class TestPayload:
    """Tests for the batch wire shape."""

    def test_payload_shape(self, transport, clock):
        provider = MagicMock(return_value=SessionData(page_views=["/"], referrer="direct"))
        buffer = _make_buffer(
            transport, clock, batch_size=1, device_id="device_1", session_data_provider=provider
        )
        buffer.enqueue(_event(0, clock))

        payload = transport.payloads[0]
        assert payload["sessionId"] == "s1"
        assert payload["deviceId"] == "device_1"
        assert payload["sessionData"] == {"pageViews": ["/"], "referrer": "direct"}
        assert payload["events"][0]["timestamp"] == to_millis(clock())
        provider.assert_called_once()

    def test_no_device_id_omitted(self, transport, clock):
        buffer = _make_buffer(transport, clock, batch_size=1)
        buffer.enqueue(_event(0, clock))
        assert "deviceId" not in transport.payloads[0]


# ==============================================================================
# Failures
# ==============================================================================


class TestDeliveryFailures:
    """Tests for outbox fallback on failed delivery."""

    def test_failure_goes_to_outbox_without_retry(self, clock):
        transport = MagicMock(spec=BatchTransport)
        transport.send.side_effect = TransportError("bad request", 400)
        outbox = Outbox(MemoryCache(), clock=clock)
        buffer = _make_buffer(transport, clock, outbox=outbox, batch_size=2)

        buffer.enqueue(_event(0, clock))
        future = buffer.enqueue(_event(1, clock))

        assert future.result() is False
        assert transport.send.call_count == 1
        entries = outbox.entries()
        assert len(entries) == 1
        assert entries[0].event_count == 2

    def test_every_event_delivered_or_stored_once(self, clock):
        transport = FlakyTransport()
        outbox = Outbox(MemoryCache(), clock=clock)
        buffer = _make_buffer(transport, clock, outbox=outbox, batch_size=3)

        for n in range(20):
            buffer.enqueue(_event(n, clock))
        buffer.close()

        delivered = [e["target"] for p in transport.payloads for e in p["events"]]
        stored = [e["target"] for entry in outbox.entries() for e in entry.payload["events"]]
        assert sorted(delivered + stored) == sorted(f"#e{n}" for n in range(20))
        assert stored

    def test_outbox_failure_does_not_raise(self, clock):
        transport = RecordingTransport(error=RetryableTransportError("offline"))
        outbox = MagicMock(spec=Outbox)
        outbox.store.side_effect = ConnectionError("valkey down")
        buffer = _make_buffer(transport, clock, outbox=outbox, batch_size=1)

        future = buffer.enqueue(_event(0, clock))

        assert future.result() is False


# ==============================================================================
# Concurrency and Teardown
# ==============================================================================


class TestConcurrencyAndClose:
    """Tests for swap-before-send and final delivery."""

    def test_events_during_delivery_go_to_next_batch(self, clock):
        release = threading.Event()
        started = threading.Event()
        transport = RecordingTransport()
        original_send = transport.send

        def blocking_send(payload, keepalive=False):
            if not keepalive:
                started.set()
                release.wait(5)
            original_send(payload, keepalive)

        transport.send = blocking_send
        executor = ThreadPoolExecutor(max_workers=1)
        buffer = _make_buffer(transport, clock, executor=executor, batch_size=2)

        buffer.enqueue(_event(0, clock))
        buffer.enqueue(_event(1, clock))
        assert started.wait(5)
        buffer.enqueue(_event(2, clock))
        release.set()
        buffer.close()
        executor.shutdown()

        assert [[e["target"] for e in p["events"]] for p in transport.payloads] == [
            ["#e0", "#e1"],
            ["#e2"],
        ]
        assert transport.keepalive == [False, True]

    def test_close_sends_remainder_with_keepalive(self, transport, clock):
        buffer = _make_buffer(transport, clock, batch_size=10)
        buffer.enqueue(_event(0, clock))
        buffer.close()
        assert len(transport.payloads) == 1
        assert transport.keepalive == [True]

    def test_close_failure_goes_to_outbox(self, clock):
        transport = RecordingTransport(error=RetryableTransportError("offline"))
        outbox = Outbox(MemoryCache(), clock=clock)
        buffer = _make_buffer(transport, clock, outbox=outbox)
        buffer.enqueue(_event(0, clock))
        buffer.close()
        assert len(outbox) == 1

    def test_close_idempotent_and_drops_late_events(self, transport, clock):
        buffer = _make_buffer(transport, clock)
        buffer.enqueue(_event(0, clock))
        buffer.close()
        buffer.close()
        assert buffer.enqueue(_event(1, clock)) is None
        assert len(transport.payloads) == 1
        assert buffer.closed
        assert len(buffer) == 0

    def test_enqueue_racing_close_never_strands_events(self, clock):
        transport = RecordingTransport()
        buffer = _make_buffer(transport, clock, batch_size=7)
        for n in range(5):
            buffer.enqueue(_event(n, clock))

        batches = [[_event(t * 1000 + n, clock) for n in range(200)] for t in range(1, 9)]
        go = threading.Event()

        def producer(events):
            go.wait(5)
            for event in events:
                buffer.enqueue(event)

        threads = [threading.Thread(target=producer, args=(events,)) for events in batches]
        for thread in threads:
            thread.start()
        go.set()
        buffer.close()
        for thread in threads:
            thread.join(5)

        delivered = [e["target"] for e in transport.events]
        assert len(buffer) == 0
        assert len(delivered) == len(set(delivered))
        assert {f"#e{n}" for n in range(5)} <= set(delivered)

    def test_flush_after_executor_shutdown_delivers_inline(self, transport, clock):
        executor = MagicMock(spec=ThreadPoolExecutor)
        executor.submit.side_effect = RuntimeError("cannot schedule new futures after shutdown")
        buffer = _make_buffer(transport, clock, executor=executor, batch_size=10)
        buffer.enqueue(_event(0, clock))

        future = buffer.flush()

        assert future.result() is True
        assert len(transport.payloads) == 1
        assert transport.keepalive == [True]

    def test_background_flusher(self, transport):
        buffer = EventBuffer(
            transport,
            Outbox(MemoryCache()),
            "s1",
            flush_interval=0.05,
            executor=ImmediateExecutor(),
        )
        buffer.start()
        buffer.enqueue(_event(0, utc_now))
        for _ in range(200):
            if transport.payloads:
                break
            time.sleep(0.01)
        buffer.close()

        assert len(transport.payloads) == 1
        assert transport.keepalive == [False]
