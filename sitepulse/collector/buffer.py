# ==============================================================================
# Event Buffer - Batching and Delivery
# ==============================================================================
"""
Client-side event queue with size- and time-triggered flushing.

A flush happens when either:
- the queue reaches ``batch_size`` events, or
- ``flush_interval`` seconds have passed since the previous flush

whichever comes first. Flushing swaps the queue for an empty one under a lock
and hands the swapped batch to a single-worker executor, so the caller never
blocks on the network and events enqueued during delivery land in the next
batch.

A batch that fails delivery (network error or non-2xx) is stored in the
Outbox. The buffer never retries by itself; wrap the transport in a
RetryingTransport for that.

On teardown ``close()`` stops the background flusher, waits for in-flight
deliveries and sends whatever is left synchronously with ``keepalive=True``.
"""

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_futures
from datetime import datetime
from typing import Optional

from sitepulse.base import BatchTransport, TransportError
from sitepulse.collector.outbox import Outbox
from sitepulse.core.models import Clock, Event, SessionData, TrackRequest, utc_now

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10
DEFAULT_FLUSH_INTERVAL = 30.0

SessionDataProvider = Callable[[], SessionData]


class EventBuffer:
    """
    Batches events and delivers them through a transport.

    Args:
        transport: Delivers one batch payload per call
        outbox: Durable store for batches that fail delivery
        session_id: Session the batches belong to
        device_id: Long-lived device id, if any
        session_data_provider: Returns the current client-side session record;
                               called once per batch
        batch_size: Size trigger
        flush_interval: Time trigger in seconds
        clock: Source of "now"
        executor: Runs deliveries. Defaults to a private single-worker pool.
    """

    def __init__(
        self,
        transport: BatchTransport,
        outbox: Outbox,
        session_id: str,
        device_id: Optional[str] = None,
        session_data_provider: Optional[SessionDataProvider] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        flush_interval: float = DEFAULT_FLUSH_INTERVAL,
        clock: Clock = utc_now,
        executor: Optional[Executor] = None,
    ):
        self._transport = transport
        self._outbox = outbox
        self._session_id = session_id
        self._device_id = device_id
        self._session_data_provider = session_data_provider
        self._batch_size = batch_size
        self._flush_interval = flush_interval
        self._clock = clock

        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="sitepulse-delivery"
        )

        self._lock = threading.Lock()
        self._queue: list[Event] = []
        self._last_flush = clock()
        self._pending: set[Future] = set()

        self._stop = threading.Event()
        self._flusher: Optional[threading.Thread] = None
        self._closed = False

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def device_id(self) -> Optional[str]:
        return self._device_id

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        with self._lock:
            return len(self._queue)

    # ==========================================================================
    # Enqueue and Flush
    # ==========================================================================

    def enqueue(self, event: Event) -> Optional[Future]:
        """
        Add an event; flushes when the size trigger is reached.

        Returns:
            The delivery future when this call triggered a flush, else None
        """
        with self._lock:
            if self._closed:
                logger.debug("Buffer closed, dropping %s event", event.type)
                return None
            self._queue.append(event)
            full = len(self._queue) >= self._batch_size
        if full:
            return self.flush()
        return None

    def tick(self, now: Optional[datetime] = None) -> Optional[Future]:
        """Flush if the flush interval has elapsed since the last flush."""
        now = now or self._clock()
        with self._lock:
            due = (now - self._last_flush).total_seconds() >= self._flush_interval
        if due:
            return self.flush(now)
        return None

    def _swap(self, now: datetime) -> list[Event]:
        with self._lock:
            batch, self._queue = self._queue, []
            self._last_flush = now
        return batch

    def _build_payload(self, batch: list[Event]) -> dict:
        session_data = (
            self._session_data_provider() if self._session_data_provider else SessionData()
        )
        request = TrackRequest(
            session_id=self._session_id,
            device_id=self._device_id,
            events=batch,
            session_data=session_data,
        )
        return request.to_wire()

    def flush(self, now: Optional[datetime] = None) -> Optional[Future]:
        """
        Swap out the queued events and deliver them in the background.

        Returns:
            Future resolving to True on delivery, False when the batch went to
            the outbox; None when there was nothing to send
        """
        batch = self._swap(now or self._clock())
        if not batch:
            return None

        payload = self._build_payload(batch)
        try:
            future = self._executor.submit(self._deliver, payload, False)
        except RuntimeError:
            # Executor already shut down by close(); deliver on this thread
            delivered = self._deliver(payload, True)
            future = Future()
            future.set_result(delivered)
            return future
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)
        logger.debug("Flushing batch of %d events", len(batch))
        return future

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def _deliver(self, payload: dict, keepalive: bool) -> bool:
        count = len(payload["events"])
        try:
            self._transport.send(payload, keepalive=keepalive)
        except TransportError as e:
            logger.warning("Batch delivery failed (%s), keeping %d events in outbox", e, count)
            try:
                self._outbox.store(payload)
            except Exception:
                logger.exception("Outbox unavailable, dropped batch of %d events", count)
            return False
        logger.info("Delivered batch of %d events", count)
        return True

    def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for in-flight deliveries to finish."""
        with self._lock:
            pending = list(self._pending)
        if pending:
            wait_futures(pending, timeout=timeout)

    # ==========================================================================
    # Background Flusher and Teardown
    # ==========================================================================

    def start(self) -> None:
        """Start the background thread that drives the time trigger."""
        if self._flusher is not None:
            return
        poll = min(self._flush_interval, 1.0)

        def _run() -> None:
            while not self._stop.wait(poll):
                self.tick()

        self._flusher = threading.Thread(target=_run, name="sitepulse-flusher", daemon=True)
        self._flusher.start()
        logger.debug("Background flusher started (interval=%.1fs)", self._flush_interval)

    def close(self, timeout: Optional[float] = 10.0) -> None:
        """
        Stop flushing and send the final batch synchronously.

        Safe to call more than once; later calls do nothing.
        """
        # Events accepted before this point are picked up by the final swap
        with self._lock:
            if self._closed:
                return
            self._closed = True

        self._stop.set()
        if self._flusher is not None:
            self._flusher.join(timeout)
            self._flusher = None

        self.drain(timeout)

        batch = self._swap(self._clock())
        if batch:
            self._deliver(self._build_payload(batch), keepalive=True)

        if self._owns_executor:
            self._executor.shutdown(wait=True)
        logger.debug("Event buffer closed")
