# ==============================================================================
# Tests for HTTP Transports: infrastructure/http.py
# ==============================================================================
"""
Tests for posting batches with requests and for retrying only the failures
that a resend can fix.
"""

from unittest.mock import MagicMock

import pytest
import requests

from sitepulse.base import RetryableTransportError, TransportError
from sitepulse.infrastructure.http import HttpTransport, RetryingTransport

ENDPOINT = "http://analytics.test/analytics/track"
PAYLOAD = {"sessionId": "s1", "events": [], "sessionData": {}}


def _response(status_code: int) -> MagicMock:
    response = MagicMock(spec=requests.Response)
    response.status_code = status_code
    response.ok = status_code < 400
    return response


def _session(*outcomes) -> MagicMock:
    session = MagicMock(spec=requests.Session)
    session.post.side_effect = list(outcomes)
    return session


# ==============================================================================
# HttpTransport
# ==============================================================================


class TestHttpTransport:
    """Tests for the plain HTTP transport."""

    def test_posts_json(self):
        session = _session(_response(200))
        HttpTransport(ENDPOINT, timeout=5, session=session).send(PAYLOAD)
        session.post.assert_called_once_with(ENDPOINT, json=PAYLOAD, timeout=5)

    def test_client_error_not_retryable(self):
        transport = HttpTransport(ENDPOINT, session=_session(_response(400)))
        with pytest.raises(TransportError) as excinfo:
            transport.send(PAYLOAD)
        assert not isinstance(excinfo.value, RetryableTransportError)
        assert excinfo.value.status_code == 400

    def test_server_error_retryable(self):
        transport = HttpTransport(ENDPOINT, session=_session(_response(503)))
        with pytest.raises(RetryableTransportError) as excinfo:
            transport.send(PAYLOAD)
        assert excinfo.value.status_code == 503

    def test_network_error_retryable(self):
        session = _session(requests.exceptions.ConnectionError("refused"))
        with pytest.raises(RetryableTransportError):
            HttpTransport(ENDPOINT, session=session).send(PAYLOAD)

    def test_timeout_retryable(self):
        session = _session(requests.exceptions.ReadTimeout("slow"))
        with pytest.raises(RetryableTransportError):
            HttpTransport(ENDPOINT, session=session).send(PAYLOAD)

    def test_invalid_url_not_retryable(self):
        session = _session(requests.exceptions.InvalidURL("no host"))
        with pytest.raises(TransportError) as excinfo:
            HttpTransport(ENDPOINT, session=session).send(PAYLOAD)
        assert not isinstance(excinfo.value, RetryableTransportError)

    def test_close_closes_session(self):
        session = _session()
        HttpTransport(ENDPOINT, session=session).close()
        session.close.assert_called_once()


# ==============================================================================
# RetryingTransport
# ==============================================================================


class TestRetryingTransport:
    """Tests for retry with backoff around another transport."""

    def test_retries_server_errors_then_succeeds(self):
        session = _session(_response(502), requests.exceptions.Timeout("slow"), _response(200))
        transport = RetryingTransport(HttpTransport(ENDPOINT, session=session), wait_min=0)
        transport.send(PAYLOAD)
        assert session.post.call_count == 3

    def test_gives_up_after_attempts(self):
        session = _session(*[_response(500)] * 3)
        transport = RetryingTransport(
            HttpTransport(ENDPOINT, session=session), attempts=3, wait_min=0
        )
        with pytest.raises(RetryableTransportError):
            transport.send(PAYLOAD)
        assert session.post.call_count == 3

    def test_client_error_not_retried(self):
        session = _session(_response(422), _response(200))
        transport = RetryingTransport(HttpTransport(ENDPOINT, session=session), wait_min=0)
        with pytest.raises(TransportError):
            transport.send(PAYLOAD)
        assert session.post.call_count == 1

    def test_keepalive_single_attempt(self):
        session = _session(_response(503), _response(200))
        transport = RetryingTransport(HttpTransport(ENDPOINT, session=session), wait_min=0)
        with pytest.raises(RetryableTransportError):
            transport.send(PAYLOAD, keepalive=True)
        assert session.post.call_count == 1
