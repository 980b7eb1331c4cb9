# ==============================================================================
# Analytics Routes
# ==============================================================================
"""
HTTP endpoints under ``/analytics``.

    POST /analytics/track                 ingest one batch
    GET  /analytics/metrics               dashboard metrics snapshot
    GET  /analytics/sessions              paginated session list
    GET  /analytics/sessions/{sessionId}  one session and its events
    GET  /analytics/conversions           conversion events

Handlers are plain ``def`` functions, so FastAPI runs them in its threadpool;
the store's lock keeps concurrent requests consistent.
"""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, Query
from fastapi.responses import JSONResponse

from sitepulse.core.models import EventType
from sitepulse.server.aggregation import AggregationEngine, MetricsSnapshot, conversion_records
from sitepulse.server.deps import get_aggregation, get_app_settings, get_ingestion, get_store
from sitepulse.server.ingestion import BatchValidationError, IngestionService
from sitepulse.server.store import AnalyticsStore
from sitepulse.utils.config import Settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analytics", tags=["Analytics"])


def error_response(status_code: int, message: str, detail: str | None = None) -> JSONResponse:
    """Build the ``{error}`` body shared by every failure response."""
    body = {"error": message}
    if detail:
        body["detail"] = detail
    return JSONResponse(status_code=status_code, content=body)


@router.post("/track")
def track(
    payload: Annotated[Any, Body()],
    ingestion: Annotated[IngestionService, Depends(get_ingestion)],
    settings: Annotated[Settings, Depends(get_app_settings)],
):
    """Validate and ingest a batch of events."""
    try:
        processed = ingestion.ingest(payload)
    except BatchValidationError as e:
        logger.info("Rejected batch: %s", e)
        return error_response(400, str(e))
    except Exception as e:
        logger.exception("Failed to process analytics batch")
        detail = f"{type(e).__name__}: {e}" if settings.debug else None
        return error_response(500, "Failed to process analytics", detail)
    return {"success": True, "message": "Analytics tracked", "eventsProcessed": processed}


@router.get("/metrics", response_model=MetricsSnapshot)
def metrics(aggregation: Annotated[AggregationEngine, Depends(get_aggregation)]):
    """Compute the current metrics snapshot."""
    return aggregation.compute()


@router.get("/sessions")
def list_sessions(
    store: Annotated[AnalyticsStore, Depends(get_store)],
    limit: Annotated[int, Query(ge=1, le=1000)] = 100,
    offset: Annotated[int, Query(ge=0)] = 0,
):
    total, sessions = store.list_sessions(limit, offset)
    return {
        "total": total,
        "limit": limit,
        "offset": offset,
        "sessions": [s.model_dump(mode="json", by_alias=True) for s in sessions],
    }


@router.get("/sessions/{session_id}")
def get_session(session_id: str, store: Annotated[AnalyticsStore, Depends(get_store)]):
    found = store.find_session(session_id)
    if found is None:
        return error_response(404, "Session not found")
    session, events = found
    return {
        "session": session.model_dump(mode="json", by_alias=True),
        "events": [e.model_dump(mode="json", by_alias=True, exclude_none=True) for e in events],
    }


@router.get("/conversions")
def list_conversions(store: Annotated[AnalyticsStore, Depends(get_store)]):
    records = conversion_records(store.events_of_type(EventType.CONVERSION))
    return {
        "total": len(records),
        "conversions": [r.model_dump(mode="json", by_alias=True) for r in records],
    }
