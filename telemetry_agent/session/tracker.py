"""Session tracker — owns session identity and decides when a session renews."""

from datetime import datetime
from typing import Any, Callable

from pydantic import BaseModel, Field
import uuid as _uuid

from telemetry_agent.utils.schemas import EventType, elapsed_ms, format_timestamp, utc_now

LifecycleEmitter = Callable[[EventType, dict[str, Any]], None]
Clock = Callable[[], datetime]


class Session(BaseModel):
    session_id: str = Field(default_factory=lambda: str(_uuid.uuid4()))
    start_timestamp: datetime = Field(default_factory=utc_now)
    event_count: int = 0
    screen_views: int = 0
    interactions: int = 0

    def duration_ms(self, now: datetime) -> int:
        return elapsed_ms(self.start_timestamp, now)

    def snapshot(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "start_timestamp": format_timestamp(self.start_timestamp),
            "event_count": self.event_count,
            "screen_views": self.screen_views,
            "interactions": self.interactions,
        }


class SessionTracker:
    """
    Keeps exactly one live session and renews it on inactivity or age.

    Renewal reports ``session_end`` for the outgoing session and
    ``session_start`` for the new one through ``emit``. The receiver must not
    call back into ``check_and_renew`` for those two event types.
    """

    def __init__(
        self,
        session_timeout_ms: int,
        max_session_duration_ms: int,
        emit: LifecycleEmitter,
        clock: Clock = utc_now,
    ):
        self.session_timeout_ms = session_timeout_ms
        self.max_session_duration_ms = max_session_duration_ms
        self._emit = emit
        self._clock = clock
        self.current: Session | None = None
        self.last_activity: datetime = clock()

    @property
    def session_id(self) -> str | None:
        return self.current.session_id if self.current else None

    def check_and_renew(self, now: datetime | None = None) -> str:
        """Renew the session if needed, then record activity. Returns the live session id."""
        now = now or self._clock()
        if self._should_renew(now):
            self.start_new_session(now)

        self.last_activity = now
        self.current.event_count += 1
        return self.current.session_id

    def _should_renew(self, now: datetime) -> bool:
        if self.current is None:
            return True
        idle_ms = elapsed_ms(self.last_activity, now)
        if idle_ms > self.session_timeout_ms:
            return True
        return self.current.duration_ms(now) > self.max_session_duration_ms

    def start_new_session(self, now: datetime | None = None) -> Session:
        now = now or self._clock()
        if self.current is not None:
            self.end_current_session(now)

        self.last_activity = now
        self.current = Session(start_timestamp=now)
        self._emit(EventType.SESSION_START, {"session_id": self.current.session_id})
        return self.current

    def end_current_session(self, now: datetime | None = None) -> None:
        if self.current is None:
            return
        now = now or self._clock()
        self._emit(
            EventType.SESSION_END,
            {
                "session_duration_ms": self.current.duration_ms(now),
                "total_events": self.current.event_count,
            },
        )

    def record_screen_view(self) -> None:
        if self.current:
            self.current.screen_views += 1

    def record_interaction(self) -> None:
        if self.current:
            self.current.interactions += 1

    def reset(self) -> None:
        self.current = None
        self.last_activity = self._clock()
