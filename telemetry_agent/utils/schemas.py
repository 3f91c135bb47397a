"""Telemetry event schemas — shared across all layers."""

import math
from collections.abc import Mapping
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator
import uuid as _uuid


class EventType(str, Enum):
    CUSTOM = "custom_event"
    SCREEN_VIEW = "screen_view"
    SESSION_START = "session_start"
    SESSION_END = "session_end"
    APP_START = "app_start"
    APP_FOREGROUND = "app_foreground"
    APP_BACKGROUND = "app_background"
    ERROR = "error"
    IDENTIFY = "identify"


# Session lifecycle events never trigger a renewal check themselves.
LIFECYCLE_EVENTS = frozenset({EventType.SESSION_START, EventType.SESSION_END})


class DeviceType(str, Enum):
    MOBILE = "mobile"
    DESKTOP = "desktop"
    TABLET = "tablet"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(ts: datetime) -> str:
    """Render an instant as ISO-8601 UTC with millisecond precision and a Z suffix."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def elapsed_ms(start: datetime, end: datetime) -> int:
    """Whole milliseconds between two instants, without float rounding."""
    return (end - start) // timedelta(milliseconds=1)


def coerce_value(value: Any) -> Any:
    """Map an arbitrary property value onto the wire value types.

    Wire values are str, int, float, bool, nested maps and nested lists.
    Anything else degrades to its string form so a property map can always
    be encoded.
    """
    if isinstance(value, Enum):
        return coerce_value(value.value)
    if isinstance(value, (bool, str, int)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Mapping):
        return coerce_properties(value)
    if isinstance(value, (list, tuple, set, frozenset)):
        return [coerce_value(v) for v in value if v is not None]
    return str(value)


def coerce_properties(properties: Mapping) -> dict[str, Any]:
    """Coerce every value of a property map; keys become strings, None entries are dropped."""
    return {str(k): coerce_value(v) for k, v in properties.items() if v is not None}


class TelemetryEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    event_id: str = Field(default_factory=lambda: str(_uuid.uuid4()))
    event_type: EventType
    timestamp: datetime = Field(default_factory=utc_now, serialization_alias="timestamp_utc")
    data: dict[str, Any] = Field(default_factory=dict)

    @field_validator("data", mode="before")
    @classmethod
    def _coerce_data(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, Mapping):
            return coerce_properties(value)
        return value

    @field_serializer("timestamp")
    def _serialize_timestamp(self, ts: datetime) -> str:
        return format_timestamp(ts)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class DeviceInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    device_type: DeviceType
    device_name: str
    device_model: str
    os_name: str
    os_version: str
    platform: str
    app_version: str
    app_build: str
    is_device: bool
    is_connected: bool


class Batch(BaseModel):
    """Transport envelope for one delivery attempt."""

    model_config = ConfigDict(frozen=True)

    product_id: str = Field(serialization_alias="productId")
    session_id: str = Field(serialization_alias="sessionId")
    anonymous_id: str = Field(serialization_alias="anonymousId")
    user_id: str | None = Field(default=None, serialization_alias="userId")
    timestamp: datetime = Field(default_factory=utc_now, serialization_alias="timestamp_utc")
    device_info: DeviceInfo
    events: list[TelemetryEvent]

    @field_serializer("timestamp")
    def _serialize_timestamp(self, ts: datetime) -> str:
        return format_timestamp(ts)

    def to_request_body(self) -> bytes:
        return self.model_dump_json(by_alias=True).encode("utf-8")
