"""Prometheus instruments for the agent pipeline."""

from prometheus_client import Counter, Gauge, Histogram

EVENTS_ENQUEUED = Counter(
    "telemetry_agent_events_enqueued_total",
    "Total events accepted into the event queue",
    ["event_type"],
)
BATCHES_SENT = Counter(
    "telemetry_agent_batches_sent_total",
    "Total batches accepted by the ingestion endpoint",
)
BATCH_FAILURES = Counter(
    "telemetry_agent_batch_failures_total",
    "Total batches that failed delivery",
    ["reason"],
)
EVENTS_RETRIED = Counter(
    "telemetry_agent_events_retried_total",
    "Total events moved from the holding area back to the queue",
)
DELIVERY_LATENCY = Histogram(
    "telemetry_agent_delivery_latency_seconds",
    "Time spent on a single delivery attempt",
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)
QUEUE_DEPTH = Gauge(
    "telemetry_agent_queue_depth",
    "Events waiting in the event queue",
)
HOLDING_AREA_SIZE = Gauge(
    "telemetry_agent_holding_area_size",
    "Failed events waiting for a retry",
)
