# ==============================================================================
# SitePulse Utilities
# ==============================================================================
"""
Shared utilities for the analytics pipeline.

This module exports configuration and retry helpers for use throughout the pipeline.
"""

from sitepulse.utils.config import (
    CollectorSettings,
    OutboxSettings,
    ServerSettings,
    Settings,
    StoreSettings,
    ValkeySettings,
    get_settings,
)
from sitepulse.utils.retry import (
    HTTP_RETRY_EXCEPTIONS,
    REDIS_RETRY_EXCEPTIONS,
    retry_light,
)
from sitepulse.utils.versions import get_sitepulse_version

__all__ = [
    # Config
    "CollectorSettings",
    "OutboxSettings",
    "ServerSettings",
    "Settings",
    "StoreSettings",
    "ValkeySettings",
    "get_settings",
    # Retry
    "HTTP_RETRY_EXCEPTIONS",
    "REDIS_RETRY_EXCEPTIONS",
    "retry_light",
    # Versions
    "get_sitepulse_version",
]
