"""Event enricher — merges caller data with screen and user context."""

from collections import deque
from datetime import datetime
from typing import Any, Callable

from telemetry_agent.session.tracker import SessionTracker
from telemetry_agent.utils.schemas import EventType, TelemetryEvent, utc_now

SCREEN_HISTORY_LIMIT = 10

# Checked in order; first keyword found in the screen name wins.
SCREEN_TYPE_KEYWORDS = [
    ("home", ("Home", "Main")),
    ("product", ("Product", "Detail")),
    ("profile", ("Profile", "Account")),
    ("settings", ("Settings",)),
    ("auth", ("Login", "Auth")),
]


class ScreenContext:
    """Most recent screen plus a bounded history of screen names."""

    def __init__(self, history_limit: int = SCREEN_HISTORY_LIMIT):
        self.current: dict[str, Any] | None = None
        self.history: deque[str] = deque(maxlen=history_limit)

    def record(self, name: str, title: str | None = None, params: dict[str, Any] | None = None) -> dict[str, Any]:
        self.current = {
            "name": name,
            "title": title or name,
            "params": dict(params or {}),
        }
        self.history.append(name)
        return self.current

    @property
    def name(self) -> str:
        return self.current["name"] if self.current else ""

    @property
    def params(self) -> dict[str, Any]:
        return self.current["params"] if self.current else {}

    def screen_type(self) -> str:
        name = self.name
        for screen_type, keywords in SCREEN_TYPE_KEYWORDS:
            if any(k in name for k in keywords):
                return screen_type
        return "other"

    def section(self) -> str:
        segments = [s for s in self.name.split("/") if s]
        return segments[0] if segments else "root"

    def clear(self) -> None:
        self.current = None
        self.history.clear()


def engagement_level(event_count: int) -> str:
    if event_count > 20:
        return "high"
    if event_count > 10:
        return "medium"
    return "low"


class EventEnricher:
    def __init__(
        self,
        screens: ScreenContext,
        sessions: SessionTracker,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.screens = screens
        self.sessions = sessions
        self.user_id: str | None = None
        self._clock = clock

    def screen_context(self) -> dict[str, Any]:
        return {
            "screen_type": self.screens.screen_type(),
            "screen_section": self.screens.section(),
            "screen_params": self.screens.params,
            "screen_history_length": len(self.screens.history),
        }

    def user_context(self) -> dict[str, Any]:
        session = self.sessions.current
        return {
            "is_authenticated": self.user_id is not None,
            "user_id": self.user_id or "",
            "engagement_level": engagement_level(session.event_count if session else 0),
        }

    def enrich(self, event_type: EventType, data: dict[str, Any] | None = None) -> TelemetryEvent:
        # Later sources override earlier ones on key collision.
        merged = {**(data or {}), **self.screen_context(), **self.user_context()}
        return TelemetryEvent(event_type=event_type, timestamp=self._clock(), data=merged)
