# ==============================================================================
# Shared Test Fixtures
# ==============================================================================
"""
Pytest fixtures shared across all test modules.

Provides:
- fakeredis-backed ValkeyCache instances (clean state per test)
- A controllable clock
- A fake signal host whose timers fire only when the test advances time
- A recording transport and a synchronous executor for deterministic delivery
"""

from concurrent.futures import Executor, Future
from datetime import datetime, timedelta, timezone

import fakeredis
import pytest

from sitepulse.base import BatchTransport, SignalHost
from sitepulse.infrastructure.cache import MemoryCache, ValkeyCache

T0 = datetime(2026, 3, 14, 12, 0, 0, tzinfo=timezone.utc)


# ==============================================================================
# Test Doubles
# ==============================================================================


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeTimer:
    def __init__(self, due: float, callback):
        self.due = due
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeHost(SignalHost):
    """SignalHost whose delayed callbacks run on ``advance()``."""

    def __init__(self, user_agent: str = "Mozilla/5.0 (X11; Linux x86_64)", referrer: str = ""):
        self._user_agent = user_agent
        self._referrer = referrer
        self.handlers: list[tuple[str, object, bool]] = []
        self.timers: list[FakeTimer] = []
        self.elapsed = 0.0

    @property
    def user_agent(self) -> str:
        return self._user_agent

    @property
    def referrer(self) -> str:
        return self._referrer

    @property
    def url(self) -> str:
        return "https://example.com/"

    @property
    def title(self) -> str:
        return "Home"

    def subscribe(self, signal, handler, capture=False):
        self.handlers.append((signal, handler, capture))

    def fire(self, signal: str, payload: dict | None = None) -> None:
        for name, handler, _ in self.handlers:
            if name == signal:
                handler(payload or {})

    def call_later(self, delay_seconds, callback):
        timer = FakeTimer(self.elapsed + delay_seconds, callback)
        self.timers.append(timer)
        return timer

    def advance(self, seconds: float) -> None:
        self.elapsed += seconds
        for timer in list(self.timers):
            if not timer.cancelled and not timer.fired and timer.due <= self.elapsed:
                timer.fired = True
                timer.callback()


class RecordingTransport(BatchTransport):
    """Records every payload; raises ``error`` instead when set."""

    def __init__(self, error: Exception | None = None):
        self.payloads: list[dict] = []
        self.keepalive: list[bool] = []
        self.error = error

    def send(self, payload, keepalive=False):
        if self.error is not None:
            raise self.error
        self.payloads.append(payload)
        self.keepalive.append(keepalive)

    @property
    def events(self) -> list[dict]:
        return [event for payload in self.payloads for event in payload["events"]]


class ImmediateExecutor(Executor):
    """Runs submitted work synchronously on the calling thread."""

    def submit(self, fn, *args, **kwargs):
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future


# ==============================================================================
# Fixtures
# ==============================================================================


@pytest.fixture()
def fake_redis():
    """A clean fakeredis instance for each test.

    Uses decode_responses=True to match the real ValkeyCache behavior.
    """
    server = fakeredis.FakeServer()
    client = fakeredis.FakeRedis(server=server, decode_responses=True)
    yield client
    client.flushall()
    client.close()


@pytest.fixture()
def fake_cache(fake_redis):
    """A ValkeyCache wrapping a fakeredis client.

    This avoids needing a real Valkey/Redis server for unit tests while
    exercising the full ValkeyCache API surface.
    """
    return ValkeyCache(client=fake_redis)


@pytest.fixture()
def memory_cache():
    return MemoryCache()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def host():
    return FakeHost()


@pytest.fixture()
def transport():
    return RecordingTransport()


@pytest.fixture()
def executor():
    return ImmediateExecutor()
