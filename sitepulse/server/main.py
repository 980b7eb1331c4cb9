# ==============================================================================
# SitePulse API Application
# ==============================================================================
"""
FastAPI application factory for the analytics server.

The app owns exactly one AnalyticsStore: it is created (or injected) in
``create_app``, initialised when the lifespan starts and torn down when it
ends. Ingestion and aggregation services share that store through
``app.state``.

Run with:
    sitepulse serve
    uvicorn sitepulse.server.main:create_app --factory
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sitepulse.core.models import Clock, utc_now
from sitepulse.server.aggregation import AggregationEngine
from sitepulse.server.ingestion import IngestionService
from sitepulse.server.routes import error_response, router
from sitepulse.server.store import AnalyticsStore
from sitepulse.utils.config import Settings, get_settings
from sitepulse.utils.versions import get_sitepulse_version

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[AnalyticsStore] = None,
    clock: Clock = utc_now,
) -> FastAPI:
    """
    Build the API application.

    Args:
        settings: Application settings (defaults to the cached settings)
        store: Store to serve from (defaults to one built from settings)
        clock: Source of "now" for ingestion and metrics

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()
    store = store or AnalyticsStore.from_settings(settings.store, clock)
    version = get_sitepulse_version()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        store.init()
        logger.info("SitePulse API v%s starting up", version)
        yield
        store.teardown()
        logger.info("SitePulse API shutdown complete")

    app = FastAPI(
        title="SitePulse API",
        version=version,
        description="Behavioral analytics ingestion and real-time metrics",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.ingestion = IngestionService(store, clock)
    app.state.aggregation = AggregationEngine(
        store, clock, activity_window_minutes=settings.store.activity_window_minutes
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.server.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    # ==========================================================================
    # Exception Handlers
    # ==========================================================================

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Malformed bodies and query parameters share the 400 ``{error}`` shape."""
        first = exc.errors()[0] if exc.errors() else {}
        field = ".".join(str(loc) for loc in first.get("loc", ()) if loc != "body")
        message = first.get("msg", "Invalid request")
        return error_response(400, f"{field}: {message}" if field else message)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled exception on %s %s",
            request.method,
            request.url.path,
            exc_info=True,
        )
        detail = f"{type(exc).__name__}: {exc}" if settings.debug else None
        return error_response(500, "Internal server error", detail)

    # ==========================================================================
    # Routes
    # ==========================================================================

    @app.get("/health", tags=["System"])
    def health() -> dict:
        return {
            "status": "ok",
            "version": version,
            "sessions": store.session_count,
            "events": store.event_count,
        }

    app.include_router(router)
    return app
