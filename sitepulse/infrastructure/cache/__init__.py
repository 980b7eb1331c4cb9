# ==============================================================================
# Cache Infrastructure
# ==============================================================================
"""
Cache implementations for the ports-and-adapters architecture.

Available implementations:
- MemoryCache: process-local storage (tab-scoped state)
- ValkeyCache: Valkey/Redis-based storage with JSON serialization (long-lived state)
"""

from sitepulse.infrastructure.cache.memory import MemoryCache
from sitepulse.infrastructure.cache.valkey import ValkeyCache

__all__ = [
    "MemoryCache",
    "ValkeyCache",
]
