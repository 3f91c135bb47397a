"""Telemetry engine — the context object that owns all mutable agent state.

Every method except the coroutines must run on the engine's event loop.
The loop is the only serialization point: enrichment, queueing, timer
callbacks and delivery completions all execute on it, so none of the state
below needs a lock.
"""

import asyncio
from datetime import datetime
from typing import Any, Callable

import httpx
import uuid as _uuid

from telemetry_agent.delivery.pipeline import DeliveryPipeline, DeliveryResult
from telemetry_agent.delivery.retry import HoldingArea, RetryCoordinator
from telemetry_agent.device.info import DeviceInfoProvider
from telemetry_agent.ingestion.enricher import EventEnricher, ScreenContext
from telemetry_agent.ingestion.queue import EventQueue
from telemetry_agent.ingestion.scheduler import BatchScheduler
from telemetry_agent.monitoring.metrics import EVENTS_ENQUEUED
from telemetry_agent.session.tracker import SessionTracker
from telemetry_agent.utils.config import AgentConfig
from telemetry_agent.utils.logging import setup_logging
from telemetry_agent.utils.schemas import (
    LIFECYCLE_EVENTS,
    Batch,
    EventType,
    TelemetryEvent,
    elapsed_ms,
    utc_now,
)

# Stable for the lifetime of the process, shared by every engine in it.
ANONYMOUS_ID = str(_uuid.uuid4())


class TelemetryEngine:
    def __init__(
        self,
        config: AgentConfig,
        client: httpx.AsyncClient,
        clock: Callable[[], datetime] = utc_now,
        device_info: DeviceInfoProvider | None = None,
        anonymous_id: str = ANONYMOUS_ID,
        started_at: datetime | None = None,
    ):
        self.config = config
        self.anonymous_id = anonymous_id
        self.logger = setup_logging(
            "telemetry-agent",
            json_output=config.environment.value == "production",
            product_id=config.product_id,
        )
        self._clock = clock
        self._started_at = started_at or clock()

        self.queue = EventQueue()
        self.holding_area = HoldingArea()
        self.sessions = SessionTracker(
            config.session_timeout_ms,
            config.max_session_duration_ms,
            emit=self._emit_lifecycle,
            clock=clock,
        )
        self.screens = ScreenContext()
        self.enricher = EventEnricher(self.screens, self.sessions, clock=clock)
        self.scheduler = BatchScheduler(
            self.queue, config.batch_size, config.batch_interval, on_batch=self._dispatch
        )
        self.retry = RetryCoordinator(self.holding_area, config.retry_delay, on_retry=self._requeue)
        self.pipeline = DeliveryPipeline(config.api_endpoint, client, headers=config.headers)
        self.device_info = device_info or DeviceInfoProvider(config.app_version, config.app_build)

        self.is_connected = True
        self._generation = 0
        self._inflight: set[asyncio.Task] = set()

    def _diag(self, event: str, **kw) -> None:
        if self.config.debug_mode:
            self.logger.info(event, **kw)

    # --- lifecycle -------------------------------------------------------

    def start(self) -> None:
        self._diag("agent_initialized", endpoint=self.config.api_endpoint)
        self.sessions.start_new_session()
        self.report(
            EventType.APP_START,
            {"app_start_time": elapsed_ms(self._started_at, self._clock())},
        )

    def reset(self) -> None:
        """Drop all buffered state and cancel timers; in-flight deliveries become no-ops."""
        self._generation += 1
        self.scheduler.cancel()
        self.retry.cancel()
        self.queue.clear()
        self.holding_area.release()
        self.screens.clear()
        self.enricher.user_id = None
        self.sessions.reset()
        self._diag("agent_reset", generation=self._generation)

    async def shutdown(self) -> None:
        """Last delivery attempt for queued and held events, then stop all timers."""
        self.queue.prepend(self.holding_area.release())
        await self.flush()
        if self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)
        self.scheduler.cancel()
        self.retry.cancel()

    # --- inbound ---------------------------------------------------------

    def report(self, event_type: EventType | str, data: dict[str, Any] | None = None) -> TelemetryEvent | None:
        """Single entry point for every event source."""
        try:
            event_type = EventType(event_type)
        except ValueError:
            self.logger.warning("unknown_event_type", event_type=str(event_type))
            return None

        if event_type not in LIFECYCLE_EVENTS:
            self.sessions.check_and_renew(self._clock())

        event = self.enricher.enrich(event_type, data)
        self.scheduler.enqueue(event)
        EVENTS_ENQUEUED.labels(event_type=event_type.value).inc()
        self._diag("event_queued", event_type=event_type.value, queue_depth=len(self.queue))
        return event

    def _emit_lifecycle(self, event_type: EventType, data: dict[str, Any]) -> None:
        self.report(event_type, data)
        if event_type is EventType.SESSION_END:
            # Ship the outgoing session's events under its own session id.
            self.scheduler.drain()
            self._diag("session_ended", session_id=self.sessions.session_id)
        else:
            self._diag("session_started", session_id=self.sessions.session_id)

    def track(self, name: str, properties: dict[str, Any] | None = None) -> None:
        self.report(
            EventType.CUSTOM,
            {"custom_event_name": name, "custom_properties": properties or {}},
        )
        self.sessions.record_interaction()

    def track_screen(self, name: str, title: str | None = None, params: dict[str, Any] | None = None) -> None:
        self.screens.record(name, title, params)
        self.report(
            EventType.SCREEN_VIEW,
            {
                "screen_name": name,
                "screen_title": title or name,
                "screen_params": params or {},
                "screen_history": list(self.screens.history),
            },
        )
        self.sessions.record_screen_view()

    def identify(self, user_id: str, traits: dict[str, Any] | None = None) -> None:
        self.enricher.user_id = user_id
        self.report(EventType.IDENTIFY, {"user_id": user_id, "user_traits": traits or {}})

    def app_foreground(self) -> None:
        background_ms = elapsed_ms(self.sessions.last_activity, self._clock())
        self.report(EventType.APP_FOREGROUND, {"time_in_background": background_ms})

    def app_background(self) -> None:
        foreground_ms = elapsed_ms(self.sessions.last_activity, self._clock())
        self.report(EventType.APP_BACKGROUND, {"time_in_foreground": foreground_ms})

    def report_error(self, message: str, stack: str | None = None, error_type: str = "Error") -> None:
        self.report(
            EventType.ERROR,
            {
                "message": message,
                "stack": stack or "",
                "type": error_type,
                "context": {"screen_name": self.screens.name},
            },
        )

    # --- queries ---------------------------------------------------------

    def get_session(self) -> dict[str, Any] | None:
        session = self.sessions.current
        return session.snapshot() if session else None

    def get_current_screen(self) -> dict[str, Any] | None:
        current = self.screens.current
        return dict(current) if current else None

    # --- outbound --------------------------------------------------------

    def _build_batch(self, events: list[TelemetryEvent]) -> Batch:
        return Batch(
            product_id=self.config.product_id,
            session_id=self.sessions.session_id or "",
            anonymous_id=self.anonymous_id,
            user_id=self.enricher.user_id,
            timestamp=self._clock(),
            device_info=self.device_info.collect(is_connected=self.is_connected),
            events=events,
        )

    def _dispatch(self, events: list[TelemetryEvent]) -> None:
        batch = self._build_batch(events)
        self._diag("sending_batch", events=len(events))
        task = asyncio.get_running_loop().create_task(self._deliver(batch, self._generation))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    def _requeue(self, events: list[TelemetryEvent]) -> None:
        self._diag("retrying_failed_events", events=len(events))
        self.queue.prepend(events)
        self.scheduler.drain()

    async def flush(self) -> DeliveryResult | None:
        """Drain the queue and await one delivery attempt; None when nothing was queued."""
        events = self.queue.drain()
        if not events:
            return None
        self._diag("sending_batch", events=len(events), forced=True)
        return await self._deliver(self._build_batch(events), self._generation)

    async def _deliver(self, batch: Batch, generation: int) -> DeliveryResult:
        try:
            result = await self.pipeline.deliver(batch)
        except Exception:
            self.logger.exception("delivery_crashed", events=len(batch.events))
            result = DeliveryResult(success=False, events=list(batch.events), error="unexpected error")

        if generation != self._generation:
            self._diag("stale_delivery_ignored", events=len(batch.events))
            return result

        self.is_connected = not result.transport_error
        if result.success:
            self._diag("batch_sent", events=len(batch.events))
            if self.holding_area:
                self.retry.retry_now()
        else:
            self.retry.handle_failure(result.events)
        return result
