# ==============================================================================
# Outbox - Durable Storage for Undelivered Batches
# ==============================================================================
"""
Keeps batches that failed delivery so they survive the page (or process).

Each batch is stored under a timestamp-derived key:

    sitepulse:outbox:<epoch-ms, zero padded>-<sequence>-<instance token>

Zero padding makes lexical key order equal to storage order, so the oldest
batch is always the first key. The random per-instance token keeps keys
distinct when several collectors share one backend and fail in the same
millisecond. Only the most recent ``max_batches`` entries are kept; older
ones are evicted on store.

Nothing retries automatically. ``replay()`` resends stored batches on request
(see ``sitepulse outbox replay``).
"""

import itertools
import logging
import uuid
from dataclasses import dataclass

from sitepulse.base import BatchTransport, Cache, TransportError
from sitepulse.core.models import Clock, to_millis, utc_now

logger = logging.getLogger(__name__)

DEFAULT_KEY_PREFIX = "sitepulse:outbox:"
DEFAULT_MAX_BATCHES = 100


@dataclass(frozen=True)
class OutboxEntry:
    """A stored batch and the key it lives under."""

    key: str
    payload: dict

    @property
    def event_count(self) -> int:
        return len(self.payload.get("events", []))

    @property
    def session_id(self) -> str:
        return self.payload.get("sessionId", "")


@dataclass(frozen=True)
class ReplayResult:
    sent: int
    failed: int


class Outbox:
    """
    Bounded durable store of undelivered batch payloads.

    Args:
        cache: Long-lived storage backend
        key_prefix: Prefix for all outbox keys
        max_batches: Most recent batches kept
        clock: Source of "now" for key timestamps
    """

    def __init__(
        self,
        cache: Cache,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        max_batches: int = DEFAULT_MAX_BATCHES,
        clock: Clock = utc_now,
    ):
        self._cache = cache
        self._prefix = key_prefix
        self._max_batches = max_batches
        self._clock = clock
        self._sequence = itertools.count()
        self._token = uuid.uuid4().hex[:12]

    def _keys(self) -> list[str]:
        return sorted(self._cache.keys(f"{self._prefix}*"))

    def store(self, payload: dict) -> str:
        """Store a batch payload, evicting the oldest beyond the cap. Returns its key."""
        millis = to_millis(self._clock())
        key = f"{self._prefix}{millis:013d}-{next(self._sequence):06d}-{self._token}"
        self._cache.set(key, payload)

        keys = self._keys()
        overflow = len(keys) - self._max_batches
        for old_key in keys[: max(overflow, 0)]:
            self._cache.delete(old_key)
        if overflow > 0:
            logger.info("Outbox full, evicted %d oldest batches", overflow)

        logger.debug("Stored batch of %d events as %s", len(payload.get("events", [])), key)
        return key

    def entries(self) -> list[OutboxEntry]:
        """Stored batches, oldest first."""
        entries = []
        for key in self._keys():
            payload = self._cache.get(key)
            if payload is not None:
                entries.append(OutboxEntry(key, payload))
        return entries

    def __len__(self) -> int:
        return len(self._keys())

    def replay(self, transport: BatchTransport) -> ReplayResult:
        """
        Resend stored batches oldest first.

        Delivered batches are deleted; failed ones stay for a later replay.
        """
        sent = failed = 0
        for entry in self.entries():
            try:
                transport.send(entry.payload)
            except TransportError as e:
                failed += 1
                logger.warning("Replay of %s failed: %s", entry.key, e)
                continue
            self._cache.delete(entry.key)
            sent += 1
        logger.info("Outbox replay: %d sent, %d failed", sent, failed)
        return ReplayResult(sent=sent, failed=failed)

    def clear(self) -> int:
        """Delete every stored batch. Returns the number removed."""
        return self._cache.delete_pattern(f"{self._prefix}*")
