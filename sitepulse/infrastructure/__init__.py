# ==============================================================================
# Infrastructure Adapters
# ==============================================================================
"""
Adapters for external services (ports-and-adapters architecture).

This module contains concrete implementations of the base interfaces:
- cache/ - Cache adapters (in-memory, Valkey/Redis)
- http.py - Batch transports (HTTP, retrying wrapper)
"""

from sitepulse.infrastructure.cache import MemoryCache, ValkeyCache
from sitepulse.infrastructure.http import HttpTransport, RetryingTransport

__all__ = [
    # Cache
    "MemoryCache",
    "ValkeyCache",
    # Transport
    "HttpTransport",
    "RetryingTransport",
]
