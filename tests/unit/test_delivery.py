"""Tests for the delivery pipeline, holding area and retry coordinator."""

import asyncio

import pytest

from telemetry_agent.delivery.pipeline import DeliveryPipeline
from telemetry_agent.delivery.retry import HoldingArea, RetryCoordinator
from telemetry_agent.utils.schemas import Batch, EventType, TelemetryEvent

from conftest import RecordingSink, make_device_info


def make_events(n: int) -> list[TelemetryEvent]:
    return [TelemetryEvent(event_type=EventType.CUSTOM, data={"n": i}) for i in range(n)]


def make_batch(events) -> Batch:
    return Batch(
        product_id="prod-1",
        session_id="sess-1",
        anonymous_id="anon-1",
        device_info=make_device_info(),
        events=events,
    )


class TestDeliveryPipeline:
    @pytest.mark.asyncio
    async def test_success_on_200(self):
        sink = RecordingSink([200])
        pipeline = DeliveryPipeline("http://test:8001/track", sink.client(), headers={"X-Api-Key": "k"})
        events = make_events(2)

        result = await pipeline.deliver(make_batch(events))

        assert result.success
        assert result.status_code == 200
        request = sink.requests[0]
        assert request.method == "POST"
        assert str(request.url) == "http://test:8001/track"
        assert request.headers["content-type"] == "application/json"
        assert request.headers["x-api-key"] == "k"
        assert [e["event_id"] for e in sink.payloads[0]["events"]] == [e.event_id for e in events]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [201, 400, 500, 503])
    async def test_non_200_is_failure_with_original_events(self, status):
        sink = RecordingSink([status])
        pipeline = DeliveryPipeline("http://test:8001/track", sink.client())
        events = make_events(3)

        result = await pipeline.deliver(make_batch(events))

        assert not result.success
        assert result.status_code == status
        assert result.events == events
        assert not result.transport_error

    @pytest.mark.asyncio
    async def test_transport_error_is_failure(self):
        sink = RecordingSink(["error"])
        pipeline = DeliveryPipeline("http://test:8001/track", sink.client())
        events = make_events(1)

        result = await pipeline.deliver(make_batch(events))

        assert not result.success
        assert result.transport_error
        assert result.events == events
        assert "connection refused" in result.error

    @pytest.mark.asyncio
    async def test_single_attempt_per_call(self):
        sink = RecordingSink([500, 200])
        pipeline = DeliveryPipeline("http://test:8001/track", sink.client())
        await pipeline.deliver(make_batch(make_events(1)))
        assert len(sink.requests) == 1


class TestHoldingArea:
    def test_hold_and_release_preserve_order(self):
        area = HoldingArea()
        first, second = make_events(2), make_events(2)
        area.hold(first)
        area.hold(second)
        assert len(area) == 4
        assert area.release() == first + second
        assert len(area) == 0


class TestRetryCoordinator:
    def setup_method(self):
        self.retried = []
        self.area = HoldingArea()
        self.coordinator = RetryCoordinator(self.area, delay=0.05, on_retry=self.retried.append)

    @pytest.mark.asyncio
    async def test_failure_schedules_retry(self):
        events = make_events(3)
        self.coordinator.handle_failure(events)
        assert self.coordinator.timer_pending
        assert self.area.snapshot() == events

        await asyncio.sleep(0.15)
        assert self.retried == [events]
        assert len(self.area) == 0
        assert not self.coordinator.timer_pending

    @pytest.mark.asyncio
    async def test_one_timer_for_many_failures(self):
        first, second = make_events(2), make_events(1)
        self.coordinator.handle_failure(first)
        timer = self.coordinator._timer
        self.coordinator.handle_failure(second)
        assert self.coordinator._timer is timer

        await asyncio.sleep(0.15)
        assert self.retried == [first + second]

    def test_retry_now_with_nothing_held(self):
        assert self.coordinator.retry_now() == []
        assert self.retried == []

    @pytest.mark.asyncio
    async def test_cancel(self):
        self.coordinator.handle_failure(make_events(1))
        self.coordinator.cancel()
        await asyncio.sleep(0.1)
        assert self.retried == []
        assert len(self.area) == 1
