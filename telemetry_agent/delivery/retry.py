"""Failed-event holding area and the fixed-delay retry coordinator."""

import asyncio
from typing import Callable, Iterable

from telemetry_agent.monitoring.metrics import EVENTS_RETRIED, HOLDING_AREA_SIZE
from telemetry_agent.utils.schemas import TelemetryEvent

RetryHandler = Callable[[list[TelemetryEvent]], None]


class HoldingArea:
    """Order-preserving, unbounded store for events whose delivery failed."""

    def __init__(self):
        self._events: list[TelemetryEvent] = []

    def __len__(self) -> int:
        return len(self._events)

    def __bool__(self) -> bool:
        return bool(self._events)

    def hold(self, events: Iterable[TelemetryEvent]) -> None:
        self._events.extend(events)
        HOLDING_AREA_SIZE.set(len(self._events))

    def release(self) -> list[TelemetryEvent]:
        events, self._events = self._events, []
        HOLDING_AREA_SIZE.set(0)
        return events

    def snapshot(self) -> list[TelemetryEvent]:
        return list(self._events)


class RetryCoordinator:
    """
    Re-submits held events after a constant delay.

    No backoff and no retry limit: events cycle until delivered or the
    process exits. Only one retry timer is pending at a time.
    """

    def __init__(self, holding_area: HoldingArea, delay: float, on_retry: RetryHandler):
        self.holding_area = holding_area
        self.delay = delay
        self._on_retry = on_retry
        self._timer: asyncio.TimerHandle | None = None

    @property
    def timer_pending(self) -> bool:
        return self._timer is not None

    def handle_failure(self, events: list[TelemetryEvent]) -> None:
        self.holding_area.hold(events)
        if self._timer is None:
            loop = asyncio.get_running_loop()
            self._timer = loop.call_later(self.delay, self._on_timer)

    def _on_timer(self) -> None:
        self._timer = None
        self.retry_now()

    def retry_now(self) -> list[TelemetryEvent]:
        events = self.holding_area.release()
        if events:
            EVENTS_RETRIED.inc(len(events))
            self._on_retry(events)
        return events

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
