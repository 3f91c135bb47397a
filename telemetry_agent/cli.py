"""Command line entry points — traffic simulation and endpoint checks."""

import signal
import socket
import sys
import time
from urllib.parse import urlparse

import click
from prometheus_client import start_http_server

from telemetry_agent.core.agent import TelemetryAgent
from telemetry_agent.ingestion.generator import ActivityGenerator
from telemetry_agent.utils.config import get_agent_config, get_simulator_config
from telemetry_agent.utils.logging import setup_logging

logger = setup_logging("telemetry-cli")

_running = True


def _signal_handler(sig, frame):
    global _running
    logger.info("shutdown_signal_received", signal=sig)
    _running = False


def check_port(host: str, port: int, timeout: float = 2.0) -> bool:
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except (ConnectionRefusedError, TimeoutError, OSError):
        return False


def endpoint_address(url: str) -> tuple[str, int]:
    parsed = urlparse(url)
    port = parsed.port or (443 if parsed.scheme == "https" else 80)
    return parsed.hostname or "localhost", port


@click.group()
def main():
    """Telemetry agent tools."""


@main.command()
@click.option("--config", "config_path", default=None, help="Path to agent YAML config")
@click.option("--rate", default=10, help="Simulated user actions per second")
@click.option("--duration", default=30, help="Run duration in seconds (0 = infinite)")
@click.option("--metrics-port", default=0, help="Expose Prometheus metrics on this port (0 = off)")
@click.option("--seed", default=None, type=int, help="Random seed for reproducible traffic")
def simulate(config_path: str | None, rate: int, duration: int, metrics_port: int, seed: int | None):
    """Feed synthetic user activity through a live agent."""
    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    if metrics_port:
        start_http_server(metrics_port)
        logger.info("metrics_server_started", port=metrics_port)

    agent = TelemetryAgent()
    if not agent.initialize(get_agent_config(config_path)):
        sys.exit(1)
    generator = ActivityGenerator(get_simulator_config(config_path), seed=seed)

    logger.info("simulation_started", rate=rate, duration=duration, endpoint=agent.config.api_endpoint)

    interval = 1.0 / rate if rate > 0 else 0.1
    start_time = time.monotonic()
    total_actions = 0

    while _running:
        if duration > 0 and (time.monotonic() - start_time) >= duration:
            logger.info("duration_reached", duration=duration, total_actions=total_actions)
            break
        generator.next_action().apply(agent)
        total_actions += 1
        time.sleep(interval)

    session = agent.get_session()
    agent.shutdown()
    logger.info("simulation_finished", total_actions=total_actions, session=session)


@main.command("check-endpoint")
@click.option("--config", "config_path", default=None, help="Path to agent YAML config")
@click.option("--timeout", default=2.0, help="Connect timeout in seconds")
def check_endpoint(config_path: str | None, timeout: float):
    """Check that the ingestion endpoint accepts TCP connections."""
    config = get_agent_config(config_path)
    host, port = endpoint_address(config.api_endpoint)
    if check_port(host, port, timeout=timeout):
        click.echo(f"{config.api_endpoint} reachable at {host}:{port}")
    else:
        click.echo(f"{config.api_endpoint} unreachable at {host}:{port}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
