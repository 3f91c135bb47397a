"""Structured logging setup for the agent."""

import structlog


def setup_logging(service_name: str = "telemetry-agent", json_output: bool = False, **context):
    """Configure structlog and return a logger bound to the service.

    Console rendering is meant for development; production hosts usually
    ship their stdout to a collector, where JSON lines are easier to parse.
    """
    if json_output:
        renderers = [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        renderers = [structlog.dev.ConsoleRenderer()]
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            *renderers,
        ],
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
    return structlog.get_logger(service=service_name, **context)
