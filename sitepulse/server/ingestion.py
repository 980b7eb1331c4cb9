# ==============================================================================
# Ingestion Service - Batch Validation and Commit
# ==============================================================================
"""
Accepts event batches posted by collectors.

Processing happens in two phases:

1. Validation: the whole request is parsed into a TrackRequest. Any problem
   (missing sessionId/events, unknown event type, bad metadata) raises
   BatchValidationError before anything is touched.
2. Commit: inside one store transaction the session is upserted, every event
   is appended to the log and applied to the aggregate counters exactly once.

A rejected batch therefore never leaves partial state behind.
"""

import logging
from typing import Any

from pydantic import ValidationError

from sitepulse.core.models import Clock, TrackRequest, to_millis, utc_now
from sitepulse.core.session_processor import apply_event_to_aggregates, merge_session
from sitepulse.server.store import AnalyticsStore

logger = logging.getLogger(__name__)


class BatchValidationError(ValueError):
    """The request body is not a valid event batch."""


def _describe(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first["loc"])
    if error.error_count() > 1:
        return f"Invalid batch at {location}: {first['msg']} (and {error.error_count() - 1} more)"
    return f"Invalid batch at {location}: {first['msg']}"


class IngestionService:
    """
    Validates batches and commits them to the analytics store.

    Args:
        store: Store that receives sessions, events and counter updates
        clock: Source of ingestion time
    """

    def __init__(self, store: AnalyticsStore, clock: Clock = utc_now):
        self._store = store
        self._clock = clock

    def validate(self, payload: Any, received_at_ms: int | None = None) -> TrackRequest:
        """
        Parse a raw request body into a TrackRequest.

        Events without a timestamp get ``received_at_ms``.

        Raises:
            BatchValidationError: If the body is not a valid batch
        """
        if not isinstance(payload, dict):
            raise BatchValidationError("Request body must be a JSON object")
        if not payload.get("sessionId") or payload.get("events") is None:
            raise BatchValidationError("Missing required fields: sessionId, events")
        if not isinstance(payload["events"], list):
            raise BatchValidationError("Field 'events' must be a list")

        if received_at_ms is not None:
            payload = dict(payload)
            payload["events"] = [
                {**event, "timestamp": received_at_ms}
                if isinstance(event, dict) and event.get("timestamp") is None
                else event
                for event in payload["events"]
            ]

        try:
            request = TrackRequest.model_validate(payload)
        except ValidationError as e:
            raise BatchValidationError(_describe(e)) from e

        # Events may only belong to the batch's own session
        for index, event in enumerate(request.events):
            if event.session_id != request.session_id:
                raise BatchValidationError(
                    f"Invalid batch at events.{index}: session {event.session_id!r} "
                    f"does not match batch session {request.session_id!r}"
                )
        return request

    def ingest(self, payload: Any) -> int:
        """
        Validate and commit one batch.

        Returns:
            Number of events processed

        Raises:
            BatchValidationError: If the body is not a valid batch
        """
        now = self._clock()
        request = self.validate(payload, received_at_ms=to_millis(now))

        with self._store.transaction() as tx:
            session = merge_session(
                tx.get_session(request.session_id),
                request.session_id,
                request.session_data,
                now,
                device_id=request.device_id,
            )
            tx.put_session(session)
            for event in request.events:
                tx.append_event(event, now)
                apply_event_to_aggregates(tx.counters, event)
            tx.prune_sessions(now)

        logger.info(
            "Ingested %d events for session %s", len(request.events), request.session_id
        )
        return len(request.events)
