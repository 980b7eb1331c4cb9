# ==============================================================================
# Valkey Cache Implementation
# ==============================================================================
"""
Valkey/Redis implementation of the Cache interface.

The collector's long-lived storage: the device identifier and the outbox of
batches that failed delivery survive process restarts here. Values are JSON
strings; a value that no longer decodes is treated as missing so one corrupt
outbox entry cannot block replay of the others.
"""

import json
import logging

import redis
from redis.backoff import ExponentialBackoff
from redis.retry import Retry

from sitepulse.base import Cache
from sitepulse.utils.config import Settings, get_settings
from sitepulse.utils.retry import REDIS_RETRY_EXCEPTIONS, VALKEY_RETRIES

logger = logging.getLogger(__name__)

# Keys fetched per SCAN round trip and deleted per pipeline
SCAN_COUNT = 500


class ValkeyCache(Cache):
    """
    Valkey/Redis implementation of the Cache interface.

    Either connects from a URL (socket timeouts, exponential-backoff retries
    on connection and timeout errors, periodic health checks) or wraps an
    existing client.
    """

    def __init__(
        self,
        url: str | None = None,
        *,
        client: redis.Redis | None = None,
        socket_timeout: int = 10,
        retries: int | None = None,
        health_check_interval: int = 30,
    ):
        """
        Initialize Valkey cache.

        Args:
            url: Valkey/Redis connection URL. If None, uses settings.
            client: Ready-made client to use instead of connecting from a URL.
                Must be created with decode_responses=True.
            socket_timeout: Socket timeout in seconds (default: 10)
            retries: Number of retries for transient failures (default: VALKEY_RETRIES)
            health_check_interval: Health check interval in seconds (default: 30)
        """
        if client is not None:
            self._client = client
            return

        if url is None:
            url = get_settings().valkey.url

        retry_count = retries if retries is not None else VALKEY_RETRIES
        self._client = redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
            retry=Retry(ExponentialBackoff(cap=32, base=1), retries=retry_count),
            retry_on_error=list(REDIS_RETRY_EXCEPTIONS),
            health_check_interval=health_check_interval,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "ValkeyCache":
        """Connect using the `valkey` section of the given settings."""
        return cls(settings.valkey.url)

    @property
    def client(self) -> redis.Redis:
        """Get the underlying Redis client for advanced operations."""
        return self._client

    def get(self, key: str) -> dict | None:
        raw = self._client.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Discarding undecodable value at %s", key)
            return None

    def set(self, key: str, value: dict, ttl_seconds: int | None = None) -> None:
        self._client.set(key, json.dumps(value), ex=ttl_seconds)

    def delete(self, key: str) -> bool:
        return self._client.delete(key) > 0

    def keys(self, pattern: str) -> list[str]:
        return list(self._client.scan_iter(match=pattern, count=SCAN_COUNT))

    def delete_pattern(self, pattern: str) -> int:
        """Delete matching keys in pipelined chunks of SCAN_COUNT."""
        matched = self.keys(pattern)
        deleted = 0
        for start in range(0, len(matched), SCAN_COUNT):
            pipe = self._client.pipeline(transaction=False)
            for key in matched[start : start + SCAN_COUNT]:
                pipe.delete(key)
            deleted += sum(pipe.execute())
        if deleted:
            logger.debug("Deleted %d keys matching %s", deleted, pattern)
        return deleted

    def ping(self) -> bool:
        """True if the server answers PING."""
        try:
            return bool(self._client.ping())
        except redis.RedisError:
            return False

    def close(self) -> None:
        self._client.close()
