# ==============================================================================
# Application Configuration
# ==============================================================================
"""
Configuration management using pydantic-settings.

All configuration is loaded from environment variables, with support for
.env files via python-dotenv.
"""

from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file before any settings are instantiated
load_dotenv()


class CollectorSettings(BaseSettings):
    """Client-side collector and buffer settings."""

    model_config = SettingsConfigDict(env_prefix="COLLECTOR_")

    endpoint: str = Field(
        default="http://localhost:8000/analytics/track",
        description="Ingestion endpoint that receives event batches",
    )
    batch_size: int = Field(default=10, ge=1, description="Events per batch (size trigger)")
    flush_interval_seconds: float = Field(
        default=30.0, gt=0, description="Seconds between time-triggered flushes"
    )
    sampling_rate: float = Field(
        default=1.0, ge=0.0, le=1.0, description="Fraction of events kept (1.0 keeps all)"
    )
    device_id_enabled: bool = Field(
        default=True, description="Persist a long-lived device identifier"
    )
    request_timeout_seconds: float = Field(default=10.0, description="HTTP request timeout")
    retry_enabled: bool = Field(
        default=False, description="Wrap the HTTP transport with retry and backoff"
    )


class OutboxSettings(BaseSettings):
    """Durable local storage for batches that failed delivery."""

    model_config = SettingsConfigDict(env_prefix="OUTBOX_")

    max_batches: int = Field(default=100, ge=1, description="Most recent batches kept")
    key_prefix: str = Field(default="sitepulse:outbox:", description="Storage key prefix")


class StoreSettings(BaseSettings):
    """Server-side in-memory analytics store settings."""

    model_config = SettingsConfigDict(env_prefix="STORE_")

    max_events: int = Field(default=100_000, ge=1, description="Event log capacity")
    retention_hours: float = Field(
        default=48.0, gt=0, description="Events older than this are evicted from the log"
    )
    session_retention_hours: Optional[float] = Field(
        default=None,
        description="Prune sessions idle longer than this (unset keeps all sessions)",
    )
    activity_window_minutes: int = Field(
        default=30, description="Recency window for counting a session as active"
    )


class ServerSettings(BaseSettings):
    """HTTP server settings."""

    model_config = SettingsConfigDict(env_prefix="SERVER_")

    host: str = Field(default="127.0.0.1", description="Bind address")
    port: int = Field(default=8000, description="Bind port")
    cors_origins: list[str] = Field(
        default=["*"], description="Origins allowed to post events from a browser"
    )

    @property
    def base_url(self) -> str:
        """Base URL used by CLI commands to reach the server."""
        return f"http://{self.host}:{self.port}"


class ValkeySettings(BaseSettings):
    """Valkey (Redis-compatible) connection settings for durable client storage."""

    model_config = SettingsConfigDict(env_prefix="VALKEY_")

    host: str = Field(default="localhost", description="Valkey host")
    port: int = Field(default=6379, description="Valkey port")
    password: Optional[str] = Field(default=None, description="Valkey password")
    db: int = Field(default=0, description="Valkey database number")
    ssl: bool = Field(default=False, description="Use SSL/TLS connection")

    @property
    def url(self) -> str:
        """Build Valkey connection URL."""
        scheme = "rediss" if self.ssl else "redis"
        if self.password:
            return f"{scheme}://:{self.password}@{self.host}:{self.port}/{self.db}"
        return f"{scheme}://{self.host}:{self.port}/{self.db}"


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        extra="ignore",
    )

    # Nested settings
    collector: CollectorSettings = Field(default_factory=CollectorSettings)
    outbox: OutboxSettings = Field(default_factory=OutboxSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    valkey: ValkeySettings = Field(default_factory=ValkeySettings)

    # General settings
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Logging level")


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Settings are loaded once and cached for subsequent calls.
    """
    return Settings()
