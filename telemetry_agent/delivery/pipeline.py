"""Delivery pipeline — one HTTP attempt per batch, no internal retries."""

import time
from dataclasses import dataclass, field

import httpx

from telemetry_agent.monitoring.metrics import BATCHES_SENT, BATCH_FAILURES, DELIVERY_LATENCY
from telemetry_agent.utils.logging import setup_logging
from telemetry_agent.utils.schemas import Batch, TelemetryEvent

logger = setup_logging("telemetry-delivery")


@dataclass
class DeliveryResult:
    success: bool
    events: list[TelemetryEvent] = field(default_factory=list)
    status_code: int | None = None
    error: str | None = None

    @property
    def transport_error(self) -> bool:
        return not self.success and self.status_code is None


class DeliveryPipeline:
    """
    Serializes a batch and POSTs it to the ingestion endpoint.

    Only HTTP 200 counts as success. Every failure carries the batch's
    original events so the caller can recycle them.
    """

    def __init__(self, endpoint: str, client: httpx.AsyncClient, headers: dict[str, str] | None = None):
        self.endpoint = endpoint
        self.client = client
        self.headers = {"Content-Type": "application/json", **(headers or {})}

    async def deliver(self, batch: Batch) -> DeliveryResult:
        body = batch.to_request_body()
        started = time.monotonic()
        try:
            response = await self.client.post(self.endpoint, content=body, headers=self.headers)
        except httpx.HTTPError as e:
            BATCH_FAILURES.labels(reason="transport").inc()
            logger.error("network_error", error=str(e), events=len(batch.events))
            return DeliveryResult(success=False, events=list(batch.events), error=str(e))
        finally:
            DELIVERY_LATENCY.observe(time.monotonic() - started)

        if response.status_code != 200:
            BATCH_FAILURES.labels(reason="http_status").inc()
            logger.error("http_error", status_code=response.status_code, events=len(batch.events))
            return DeliveryResult(
                success=False,
                events=list(batch.events),
                status_code=response.status_code,
            )

        BATCHES_SENT.inc()
        return DeliveryResult(success=True, events=list(batch.events), status_code=response.status_code)
