"""Batch scheduler — decides when the event queue is drained into a batch."""

import asyncio
from typing import Callable

from telemetry_agent.ingestion.queue import EventQueue
from telemetry_agent.utils.schemas import TelemetryEvent

BatchHandler = Callable[[list[TelemetryEvent]], None]


class BatchScheduler:
    """
    Size- and idle-triggered draining of an EventQueue.

    Must be driven from the event loop that owns the queue. At most one idle
    timer is pending; a size-triggered drain leaves it in place, and when it
    fires on an empty queue nothing happens.
    """

    def __init__(
        self,
        queue: EventQueue,
        batch_size: int,
        batch_interval: float,
        on_batch: BatchHandler,
    ):
        self.queue = queue
        self.batch_size = batch_size
        self.batch_interval = batch_interval
        self._on_batch = on_batch
        self._timer: asyncio.TimerHandle | None = None

    @property
    def timer_pending(self) -> bool:
        return self._timer is not None

    def enqueue(self, event: TelemetryEvent) -> None:
        self.queue.append(event)
        if len(self.queue) >= self.batch_size:
            self.drain()
        elif self._timer is None:
            loop = asyncio.get_running_loop()
            self._timer = loop.call_later(self.batch_interval, self._on_timer)

    def _on_timer(self) -> None:
        self._timer = None
        self.drain()

    def drain(self) -> list[TelemetryEvent]:
        events = self.queue.drain()
        if events:
            self._on_batch(events)
        return events

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
