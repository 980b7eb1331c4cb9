# ==============================================================================
# Analytics Server
# ==============================================================================
"""
Server-side half of the pipeline.

- AnalyticsStore: in-memory sessions, bounded event log, aggregate counters
- IngestionService: validates and commits event batches
- AggregationEngine: computes real-time metrics snapshots
- create_app: FastAPI application wiring them together
"""

from sitepulse.server.aggregation import AggregationEngine, MetricsSnapshot
from sitepulse.server.ingestion import BatchValidationError, IngestionService
from sitepulse.server.main import create_app
from sitepulse.server.store import AnalyticsStore, StoreSnapshot

__all__ = [
    "AggregationEngine",
    "AnalyticsStore",
    "BatchValidationError",
    "IngestionService",
    "MetricsSnapshot",
    "StoreSnapshot",
    "create_app",
]
