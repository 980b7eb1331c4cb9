# ==============================================================================
# Transport Abstract Base Class
# ==============================================================================
"""
Abstract interface for delivering event batches to the ingestion endpoint.

The only contract the collector relies on is "send JSON, get 2xx/4xx/5xx":
a transport either returns normally (2xx) or raises TransportError.
"""

from abc import ABC, abstractmethod


class TransportError(Exception):
    """Raised when a batch could not be delivered (non-2xx response or request failure)."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RetryableTransportError(TransportError):
    """Delivery failed in a way a later attempt may fix (network error or 5xx)."""


def error_for_status(status_code: int, message: str) -> TransportError:
    """Build the TransportError subclass matching an HTTP status code."""
    if status_code >= 500:
        return RetryableTransportError(message, status_code)
    return TransportError(message, status_code)


class BatchTransport(ABC):
    """Delivers one batch payload per call."""

    @abstractmethod
    def send(self, payload: dict, keepalive: bool = False) -> None:
        """
        Deliver a batch payload.

        Args:
            payload: JSON-serializable batch ({sessionId, events, sessionData})
            keepalive: True when called during page teardown; the request must
                       complete even though the host is going away

        Raises:
            TransportError: If delivery failed
        """
        ...

    def close(self) -> None:
        """Release transport resources. Optional override."""
        pass
