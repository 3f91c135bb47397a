"""Shared helpers: a recording HTTP sink and a controllable clock."""

import asyncio
import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from telemetry_agent.core.engine import TelemetryEngine
from telemetry_agent.utils.config import AgentConfig
from telemetry_agent.utils.schemas import DeviceInfo, DeviceType


class RecordingSink:
    """Ingestion endpoint double. ``outcomes`` is consumed per request: a status code or "error"."""

    def __init__(self, outcomes=None):
        self.outcomes = list(outcomes or [])
        self.requests: list[httpx.Request] = []
        self.payloads: list[dict] = []
        self.accepted: list[dict] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        payload = json.loads(request.content)
        self.payloads.append(payload)
        outcome = self.outcomes.pop(0) if self.outcomes else 200
        if outcome == "error":
            raise httpx.ConnectError("connection refused", request=request)
        if outcome == 200:
            self.accepted.append(payload)
        return httpx.Response(outcome)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport)

    def accepted_events(self) -> list[dict]:
        return [e for p in self.accepted for e in p["events"]]


class FakeClock:
    def __init__(self, start: datetime = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


def make_config(**overrides) -> AgentConfig:
    values = {
        "product_id": "test-product",
        "api_endpoint": "http://test:8001/track",
        "batch_size": 50,
        "batch_interval_ms": 10000,
        "retry_delay_ms": 50,
    }
    values.update(overrides)
    return AgentConfig(**values)


def make_engine(sink: RecordingSink, clock=None, **overrides) -> TelemetryEngine:
    kwargs = {"clock": clock} if clock else {}
    return TelemetryEngine(make_config(**overrides), sink.client(), anonymous_id="anon-test", **kwargs)


async def wait_for(predicate, timeout: float = 2.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.01)


def event_types(payload: dict) -> list[str]:
    return [e["event_type"] for e in payload["events"]]


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def make_device_info(**overrides) -> DeviceInfo:
    values = dict(
        device_type=DeviceType.DESKTOP,
        device_name="test-host",
        device_model="x86_64",
        os_name="Linux",
        os_version="6.1",
        platform="Python 3.12",
        app_version="2.4.1",
        app_build="42",
        is_device=True,
        is_connected=True,
    )
    values.update(overrides)
    return DeviceInfo(**values)
