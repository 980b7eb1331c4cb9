# ==============================================================================
# HTTP Batch Transport
# ==============================================================================
"""
HTTP implementations of the BatchTransport interface.

- HttpTransport: POSTs each batch as JSON with requests; any non-2xx status
  or request failure becomes a TransportError. Connection errors and
  timeouts are retryable, other request failures are not.
- RetryingTransport: wraps another transport with light retry logic
  (tenacity, exponential backoff) for network errors and 5xx responses.
  4xx responses are never retried since resending the same batch cannot fix
  them.
"""

import logging
from typing import Optional

import requests

from sitepulse.base import BatchTransport, RetryableTransportError, TransportError, error_for_status
from sitepulse.utils.retry import (
    HTTP_RETRY_EXCEPTIONS,
    RETRY_ATTEMPTS_LIGHT,
    RETRY_WAIT_MIN,
    retry_light,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10  # seconds


class HttpTransport(BatchTransport):
    """
    Delivers batches to the ingestion endpoint over HTTP.

    Args:
        endpoint: Full URL of the track endpoint
        timeout: Request timeout in seconds
        session: requests session to reuse (created if omitted)
    """

    def __init__(
        self,
        endpoint: str,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self._endpoint = endpoint
        self._timeout = timeout
        self._session = session or requests.Session()

    @property
    def endpoint(self) -> str:
        return self._endpoint

    def send(self, payload: dict, keepalive: bool = False) -> None:
        # keepalive sends are already synchronous here; the request simply
        # runs to completion before close() returns
        try:
            response = self._session.post(
                self._endpoint,
                json=payload,
                timeout=self._timeout,
            )
        except HTTP_RETRY_EXCEPTIONS as e:
            raise RetryableTransportError(f"Request to {self._endpoint} failed: {e}") from e
        except requests.exceptions.RequestException as e:
            # Bad URL, too many redirects and the like; resending cannot help
            raise TransportError(f"Request to {self._endpoint} failed: {e}") from e

        if not response.ok:
            raise error_for_status(
                response.status_code,
                f"Analytics endpoint returned {response.status_code}",
            )
        logger.debug("POST %s -> %d", self._endpoint, response.status_code)

    def close(self) -> None:
        self._session.close()


class RetryingTransport(BatchTransport):
    """
    Retries retryable failures of an inner transport.

    Teardown sends (``keepalive=True``) get a single attempt so shutdown is
    never held up by backoff sleeps.

    Args:
        inner: Transport to wrap
        attempts: Maximum attempts per batch
        wait_min: Minimum backoff in seconds
    """

    def __init__(
        self,
        inner: BatchTransport,
        attempts: int = RETRY_ATTEMPTS_LIGHT,
        wait_min: float = RETRY_WAIT_MIN,
    ):
        self._inner = inner
        self._send_with_retry = retry_light(
            (RetryableTransportError,), logger, attempts=attempts, wait_min=wait_min
        )(inner.send)

    def send(self, payload: dict, keepalive: bool = False) -> None:
        if keepalive:
            self._inner.send(payload, keepalive=True)
            return
        self._send_with_retry(payload)

    def close(self) -> None:
        self._inner.close()
