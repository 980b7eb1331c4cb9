# ==============================================================================
# Request Dependencies
# ==============================================================================
"""
FastAPI dependencies that hand route handlers the objects owned by the app.

The store and the services built on it are created once in ``create_app``
and kept on ``app.state``; routes never reach for module-level singletons.
"""

from fastapi import Request

from sitepulse.server.aggregation import AggregationEngine
from sitepulse.server.ingestion import IngestionService
from sitepulse.server.store import AnalyticsStore
from sitepulse.utils.config import Settings


def get_store(request: Request) -> AnalyticsStore:
    return request.app.state.store


def get_ingestion(request: Request) -> IngestionService:
    return request.app.state.ingestion


def get_aggregation(request: Request) -> AggregationEngine:
    return request.app.state.aggregation


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings
