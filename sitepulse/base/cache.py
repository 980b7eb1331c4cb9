# ==============================================================================
# Cache Abstract Base Class
# ==============================================================================
"""
Abstract interface for key-value storage used on the client side.

The collector keeps two kinds of state outside the process' own objects:
- tab-scoped state (session id, current session record)
- long-lived state (device id, batches that failed delivery)

Both are plain key-value stores holding JSON-serializable dicts, so a single
interface covers them. Implementations: in-memory, Valkey/Redis.
"""

from abc import ABC, abstractmethod


class Cache(ABC):
    """
    Generic key-value storage interface with TTL support.

    All values are stored as dicts (JSON-serializable). Implementations
    handle serialization/deserialization internally.
    """

    @abstractmethod
    def get(self, key: str) -> dict | None:
        """
        Get a stored value.

        Args:
            key: Storage key

        Returns:
            Stored value as dict, or None if not found
        """
        ...

    @abstractmethod
    def set(self, key: str, value: dict, ttl_seconds: int | None = None) -> None:
        """
        Store a value with optional TTL.

        Args:
            key: Storage key
            value: Value to store (must be JSON-serializable dict)
            ttl_seconds: Optional time-to-live in seconds
        """
        ...

    @abstractmethod
    def delete(self, key: str) -> bool:
        """
        Delete a key.

        Args:
            key: Storage key to delete

        Returns:
            True if key was deleted, False if not found
        """
        ...

    @abstractmethod
    def keys(self, pattern: str) -> list[str]:
        """
        List keys matching a glob-style pattern.

        Args:
            pattern: Pattern to match (e.g., "sitepulse:outbox:*")

        Returns:
            Matching keys, in no particular order
        """
        ...

    @abstractmethod
    def delete_pattern(self, pattern: str) -> int:
        """
        Delete all keys matching a pattern.

        Args:
            pattern: Pattern to match (e.g., "sitepulse:outbox:*")

        Returns:
            Count of keys deleted
        """
        ...
