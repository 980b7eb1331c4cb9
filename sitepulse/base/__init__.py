# ==============================================================================
# Base Abstract Classes
# ==============================================================================
"""
Abstract base classes defining loose contracts for the ports-and-adapters architecture.

- Cache: key-value storage for collector state and the outbox
- BatchTransport: delivery of event batches to the ingestion endpoint
- SignalHost: the page environment the collector observes
"""

from sitepulse.base.cache import Cache
from sitepulse.base.host import (
    SIGNAL_CLICK,
    SIGNAL_PAGEHIDE,
    SIGNAL_SCROLL,
    SIGNAL_VISIBILITY,
    SignalHandler,
    SignalHost,
    TimerHandle,
)
from sitepulse.base.transport import (
    BatchTransport,
    RetryableTransportError,
    TransportError,
    error_for_status,
)

__all__ = [
    "BatchTransport",
    "Cache",
    "SIGNAL_CLICK",
    "SIGNAL_PAGEHIDE",
    "SIGNAL_SCROLL",
    "SIGNAL_VISIBILITY",
    "SignalHandler",
    "SignalHost",
    "RetryableTransportError",
    "TimerHandle",
    "TransportError",
    "error_for_status",
]
