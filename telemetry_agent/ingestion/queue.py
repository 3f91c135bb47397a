"""Ordered buffer of enriched events awaiting transmission."""

from typing import Iterable

from telemetry_agent.monitoring.metrics import QUEUE_DEPTH
from telemetry_agent.utils.schemas import TelemetryEvent


class EventQueue:
    def __init__(self):
        self._events: list[TelemetryEvent] = []

    def __len__(self) -> int:
        return len(self._events)

    def __bool__(self) -> bool:
        return bool(self._events)

    def append(self, event: TelemetryEvent) -> None:
        self._events.append(event)
        QUEUE_DEPTH.set(len(self._events))

    def prepend(self, events: Iterable[TelemetryEvent]) -> None:
        """Put events back at the head, keeping their relative order."""
        self._events[:0] = list(events)
        QUEUE_DEPTH.set(len(self._events))

    def drain(self) -> list[TelemetryEvent]:
        """Remove and return everything queued, in enqueue order."""
        events, self._events = self._events, []
        QUEUE_DEPTH.set(0)
        return events

    def snapshot(self) -> list[TelemetryEvent]:
        return list(self._events)

    def clear(self) -> None:
        self.drain()
