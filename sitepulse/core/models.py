# ==============================================================================
# SitePulse Domain Models
# ==============================================================================
"""
Pydantic models for analytics events, sessions and ingestion batches.

These models are used for:
- Validating batches posted to the ingestion endpoint
- Serializing batches built by the client-side collector
- Type safety throughout the application

Events are a tagged variant: the ``type`` field selects one of nine event
classes, each with its own narrow metadata schema. Unknown metadata keys are
dropped and long strings are truncated so event payloads stay bounded.

This module is part of the core domain layer and has no external dependencies
beyond Pydantic.
"""

from collections.abc import Callable
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

MAX_METADATA_STRING = 256
MAX_ERROR_CONTEXT_KEYS = 20

# Wire names used by older trackers, mapped onto the current event types
LEGACY_EVENT_TYPES = {
    "interaction": "click",
    "product": "engagement",
    "session": "engagement",
    "payment": "conversion",
}

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_millis(value: datetime) -> int:
    """Convert a datetime to Unix epoch milliseconds."""
    return int(value.timestamp() * 1000)


def from_millis(value: float) -> datetime:
    """Convert Unix epoch milliseconds to a UTC datetime."""
    return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)


def _coerce_datetime(value: Any) -> Any:
    """Accept epoch milliseconds, ISO strings or datetimes; naive values are UTC."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return from_millis(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return from_millis(int(value))
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class EventType(str, Enum):
    """Event types emitted by the collector."""

    CLICK = "click"
    VIEW = "view"
    SCROLL = "scroll"
    FORM_START = "form_start"
    FORM_SUBMIT = "form_submit"
    ERROR = "error"
    ENGAGEMENT = "engagement"
    CONVERSION = "conversion"
    NAVIGATION = "navigation"


class DeviceClass(str, Enum):
    """Coarse device class derived from the user agent."""

    MOBILE = "mobile"
    TABLET = "tablet"
    DESKTOP = "desktop"


# ==============================================================================
# Event Metadata (one schema per event type)
# ==============================================================================


class _Metadata(BaseModel):
    """Base for per-type metadata: camelCase on the wire, bounded strings."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )

    @field_validator("*", mode="before")
    @classmethod
    def _truncate_strings(cls, value: Any) -> Any:
        if isinstance(value, str) and len(value) > MAX_METADATA_STRING:
            return value[:MAX_METADATA_STRING]
        return value


class ClickMetadata(_Metadata):
    x: Optional[float] = None
    y: Optional[float] = None
    element_type: Optional[str] = None
    element_id: Optional[str] = None
    text: Optional[str] = None
    button_text: Optional[str] = None
    clicks: Optional[int] = Field(default=None, ge=0)


class ViewMetadata(_Metadata):
    url: Optional[str] = None
    referrer: Optional[str] = None
    title: Optional[str] = None
    language: Optional[str] = None
    timezone: Optional[str] = None


class ScrollMetadata(_Metadata):
    depth: float = Field(default=0.0, ge=0, le=100)
    milestone: int = Field(default=0, ge=0, le=100)


class FormStartMetadata(_Metadata):
    form_name: Optional[str] = None


class FormSubmitMetadata(_Metadata):
    form_name: Optional[str] = None
    success: Optional[bool] = None
    time_spent_ms: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("time_spent_ms", "timeSpentMs", "timeSpent")
    )


class ErrorMetadata(_Metadata):
    message: str = ""
    context: dict[str, str] = Field(default_factory=dict)

    @field_validator("context", mode="before")
    @classmethod
    def _bound_context(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return value
        items = list(value.items())[:MAX_ERROR_CONTEXT_KEYS]
        return {str(k)[:MAX_METADATA_STRING]: str(v)[:MAX_METADATA_STRING] for k, v in items}


class EngagementMetadata(_Metadata):
    visible: Optional[bool] = None
    time_on_page_ms: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("time_on_page_ms", "timeOnPageMs", "timeOnPage"),
    )


class ConversionMetadata(_Metadata):
    email: Optional[str] = None
    source: Optional[str] = None


class NavigationMetadata(_Metadata):
    page: Optional[str] = None
    time_on_page_ms: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("time_on_page_ms", "timeOnPageMs", "timeOnPage"),
    )
    scroll_depth: Optional[float] = None


# ==============================================================================
# Events
# ==============================================================================


class _EventBase(BaseModel):
    """
    Fields shared by every event variant.

    Attributes:
        target: Best-effort DOM path or logical name of what the event is about
        timestamp: When the event occurred (UTC)
        session_id: Owning session
        device_id: Long-lived device identifier, when the collector has one
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )

    target: str = Field(default="", max_length=MAX_METADATA_STRING * 2)
    timestamp: datetime
    session_id: str = Field(..., min_length=1)
    device_id: Optional[str] = None

    @field_validator("timestamp", mode="before")
    @classmethod
    def _normalize_timestamp(cls, value: Any) -> Any:
        return _coerce_datetime(value)

    @field_validator("timestamp", mode="after")
    @classmethod
    def _ensure_utc(cls, value: datetime) -> datetime:
        return _utc(value)

    @property
    def event_type(self) -> EventType:
        return EventType(self.type)

    def to_wire(self) -> dict:
        """Serialize for the ingestion endpoint (camelCase, epoch-ms timestamp)."""
        data = self.model_dump(mode="json", by_alias=True, exclude_none=True)
        data["timestamp"] = to_millis(self.timestamp)
        return data


class ClickEvent(_EventBase):
    type: Literal["click"] = "click"
    metadata: ClickMetadata = Field(default_factory=ClickMetadata)


class ViewEvent(_EventBase):
    type: Literal["view"] = "view"
    metadata: ViewMetadata = Field(default_factory=ViewMetadata)


class ScrollEvent(_EventBase):
    type: Literal["scroll"] = "scroll"
    metadata: ScrollMetadata = Field(default_factory=ScrollMetadata)


class FormStartEvent(_EventBase):
    type: Literal["form_start"] = "form_start"
    metadata: FormStartMetadata = Field(default_factory=FormStartMetadata)


class FormSubmitEvent(_EventBase):
    type: Literal["form_submit"] = "form_submit"
    metadata: FormSubmitMetadata = Field(default_factory=FormSubmitMetadata)


class ErrorEvent(_EventBase):
    type: Literal["error"] = "error"
    metadata: ErrorMetadata = Field(default_factory=ErrorMetadata)


class EngagementEvent(_EventBase):
    type: Literal["engagement"] = "engagement"
    metadata: EngagementMetadata = Field(default_factory=EngagementMetadata)


class ConversionEvent(_EventBase):
    type: Literal["conversion"] = "conversion"
    metadata: ConversionMetadata = Field(default_factory=ConversionMetadata)


class NavigationEvent(_EventBase):
    type: Literal["navigation"] = "navigation"
    metadata: NavigationMetadata = Field(default_factory=NavigationMetadata)


Event = Annotated[
    Union[
        ClickEvent,
        ViewEvent,
        ScrollEvent,
        FormStartEvent,
        FormSubmitEvent,
        ErrorEvent,
        EngagementEvent,
        ConversionEvent,
        NavigationEvent,
    ],
    Field(discriminator="type"),
]

EVENT_ADAPTER: TypeAdapter[Event] = TypeAdapter(Event)


def normalize_event_payload(raw: Any, session_id: Optional[str] = None) -> Any:
    """
    Map a raw event dict onto the current wire shape.

    Accepts the legacy ``eventType``/``eventName`` keys and legacy type names,
    fills in the batch session id when the event has none, and drops a null
    metadata field. Non-dict values are returned unchanged so validation can
    reject them.
    """
    if not isinstance(raw, dict):
        return raw
    data = dict(raw)
    if "type" not in data and "eventType" in data:
        data["type"] = data.pop("eventType")
    if "target" not in data and "eventName" in data:
        data["target"] = data.pop("eventName")
    if isinstance(data.get("type"), str):
        data["type"] = LEGACY_EVENT_TYPES.get(data["type"], data["type"])
    if session_id and not (data.get("sessionId") or data.get("session_id")):
        data["sessionId"] = session_id
    if data.get("metadata") is None:
        data.pop("metadata", None)
    return data


def parse_event(raw: dict, session_id: Optional[str] = None) -> Event:
    """Validate a single raw event dict into its typed variant."""
    return EVENT_ADAPTER.validate_python(normalize_event_payload(raw, session_id))


# ==============================================================================
# Sessions
# ==============================================================================


class Interactions(BaseModel):
    """Per-session interaction counters."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    clicks: int = Field(default=0, ge=0)
    scrolls: int = Field(default=0, ge=0)
    form_submissions: int = Field(default=0, ge=0)
    button_clicks: dict[str, int] = Field(default_factory=dict)


class SessionData(BaseModel):
    """
    Client-side view of a session, shipped with every batch.

    The collector keeps one of these per browsing session and the ingestion
    endpoint merges it into the server-side Session record. Every field is
    optional so partial updates merge cleanly.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    start_time: Optional[datetime] = None
    last_activity_time: Optional[datetime] = None
    page_views: Optional[list[str]] = None
    referrer: Optional[str] = None
    user_agent: Optional[str] = None
    device: Optional[DeviceClass] = None
    interactions: Optional[Interactions] = None

    @field_validator("start_time", "last_activity_time", mode="before")
    @classmethod
    def _normalize_times(cls, value: Any) -> Any:
        return _coerce_datetime(value)

    @field_validator("start_time", "last_activity_time", mode="after")
    @classmethod
    def _ensure_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _utc(value)

    @field_validator("device", mode="before")
    @classmethod
    def _known_device(cls, value: Any) -> Any:
        # Unrecognized device labels are dropped rather than failing the batch
        if isinstance(value, str) and value not in {d.value for d in DeviceClass}:
            return None
        return value

    def to_wire(self) -> dict:
        data = self.model_dump(mode="json", by_alias=True, exclude_none=True)
        for field, key in (("start_time", "startTime"), ("last_activity_time", "lastActivityTime")):
            value = getattr(self, field)
            if value is not None:
                data[key] = to_millis(value)
        return data


class Session(BaseModel):
    """
    Server-side record of one continuous visit by one browser instance.

    Invariant: ``last_activity >= start_time``.

    Attributes:
        session_id: Opaque session token
        start_time: When the visit started
        last_activity: Last time a batch arrived for this session
        referrer: Referring URL, or "direct"
        user_agent: Raw user agent string, if reported
        device: Device class derived from the user agent
        device_id: Long-lived device identifier, if reported
        page_views: Ordered page identifiers visited
        interactions: Interaction counters reported by the client
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    session_id: str
    start_time: datetime
    last_activity: datetime
    referrer: Optional[str] = None
    user_agent: Optional[str] = None
    device: Optional[DeviceClass] = None
    device_id: Optional[str] = None
    page_views: list[str] = Field(default_factory=list)
    interactions: Interactions = Field(default_factory=Interactions)

    @property
    def duration_ms(self) -> float:
        """Session duration in milliseconds."""
        return (self.last_activity - self.start_time).total_seconds() * 1000

    def is_active(self, now: datetime, window_minutes: int = 30) -> bool:
        """True while the last activity is within the recency window."""
        return (now - self.last_activity).total_seconds() <= window_minutes * 60


# ==============================================================================
# Ingestion Batch
# ==============================================================================


class TrackRequest(BaseModel):
    """
    A batch of events posted to the ingestion endpoint.

    Wire shape: ``{sessionId, deviceId?, events[], sessionData?}``.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    session_id: str = Field(..., min_length=1)
    device_id: Optional[str] = None
    events: list[Event]
    session_data: SessionData = Field(default_factory=SessionData)

    @model_validator(mode="before")
    @classmethod
    def _normalize_events(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        session_id = data.get("sessionId") or data.get("session_id")
        events = data.get("events")
        if isinstance(events, list):
            data = dict(data)
            data["events"] = [normalize_event_payload(e, session_id) for e in events]
        if data.get("sessionData") is None and "sessionData" in data:
            data = dict(data)
            data.pop("sessionData")
        return data

    def to_wire(self) -> dict:
        """Serialize the batch as the collector posts it."""
        payload: dict[str, Any] = {
            "sessionId": self.session_id,
            "events": [event.to_wire() for event in self.events],
            "sessionData": self.session_data.to_wire(),
        }
        if self.device_id:
            payload["deviceId"] = self.device_id
        return payload
