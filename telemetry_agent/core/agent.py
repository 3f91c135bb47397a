"""Thread-safe public facade over the telemetry engine.

The engine lives on a private asyncio loop running in a daemon thread. Host
code calls the methods below from any thread; each call is posted onto that
loop, which executes them one at a time. Tracking calls are fire-and-forget
and never raise into the host.
"""

import asyncio
import concurrent.futures
import threading
from collections.abc import Mapping
from datetime import datetime
from typing import Any, Callable

import httpx
from pydantic import ValidationError

from telemetry_agent.core.engine import TelemetryEngine
from telemetry_agent.utils.config import AgentConfig
from telemetry_agent.utils.logging import setup_logging
from telemetry_agent.utils.schemas import EventType, utc_now

logger = setup_logging("telemetry-agent")

DEFAULT_WAIT_SECONDS = 10.0


class TelemetryAgent:
    def __init__(
        self,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._transport = transport
        self._clock = clock
        self._created_at = clock()
        self.config: AgentConfig | None = None
        self._engine: TelemetryEngine | None = None
        self._client: httpx.AsyncClient | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None

    @property
    def is_initialized(self) -> bool:
        return self._engine is not None

    def initialize(self, config: AgentConfig | Mapping[str, Any]) -> bool:
        """Start the agent. Returns False, leaving the agent inert, on a bad config."""
        if self._engine is not None:
            if self.config.debug_mode:
                logger.info("already_initialized", product_id=self.config.product_id)
            return False

        if not isinstance(config, AgentConfig):
            try:
                config = AgentConfig(**config)
            except (ValidationError, TypeError) as e:
                logger.error("initialization_failed", reason="invalid configuration", error=str(e))
                return False

        loop = asyncio.new_event_loop()
        thread = threading.Thread(target=loop.run_forever, name="telemetry-agent", daemon=True)
        thread.start()

        future = asyncio.run_coroutine_threadsafe(self._bootstrap(config), loop)
        try:
            engine = future.result(timeout=DEFAULT_WAIT_SECONDS)
        except Exception:
            logger.exception("initialization_failed", reason="engine bootstrap")
            if self._client is not None:
                client, self._client = self._client, None
                try:
                    asyncio.run_coroutine_threadsafe(client.aclose(), loop).result(timeout=DEFAULT_WAIT_SECONDS)
                except Exception:
                    logger.exception("client_close_failed")
            loop.call_soon_threadsafe(loop.stop)
            thread.join(timeout=DEFAULT_WAIT_SECONDS)
            loop.close()
            return False

        self.config = config
        self._loop = loop
        self._thread = thread
        self._engine = engine
        return True

    async def _bootstrap(self, config: AgentConfig) -> TelemetryEngine:
        self._client = httpx.AsyncClient(transport=self._transport)
        engine = TelemetryEngine(config, self._client, clock=self._clock, started_at=self._created_at)
        engine.start()
        return engine

    # --- plumbing --------------------------------------------------------

    def _run_safely(self, fn: Callable, *args) -> None:
        try:
            fn(*args)
        except Exception:
            logger.exception("agent_call_failed", call=getattr(fn, "__name__", repr(fn)))

    def _post(self, fn_name: str, *args) -> None:
        engine = self._engine
        if engine is None:
            return
        try:
            self._loop.call_soon_threadsafe(self._run_safely, getattr(engine, fn_name), *args)
        except RuntimeError:
            logger.warning("agent_loop_closed", call=fn_name)

    def _wait(self, coro_fn: Callable, timeout: float | None):
        async def _run():
            result = coro_fn()
            if asyncio.iscoroutine(result):
                result = await result
            return result

        return asyncio.run_coroutine_threadsafe(_run(), self._loop).result(timeout=timeout)

    def _query(self, fn_name: str, timeout: float = DEFAULT_WAIT_SECONDS):
        engine = self._engine
        if engine is None:
            return None
        if threading.current_thread() is self._thread:
            return getattr(engine, fn_name)()
        try:
            return self._wait(getattr(engine, fn_name), timeout)
        except Exception:
            logger.exception("agent_query_failed", call=fn_name)
            return None

    # --- public API ------------------------------------------------------

    def report(self, event_type: EventType | str, data: Mapping[str, Any] | None = None) -> None:
        self._post("report", event_type, dict(data or {}))

    def track(self, event_name: str, properties: Mapping[str, Any] | None = None) -> None:
        self._post("track", event_name, dict(properties or {}))

    def track_screen(
        self,
        screen_name: str,
        screen_title: str | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> None:
        self._post("track_screen", screen_name, screen_title, dict(params or {}))

    def identify(self, user_id: str, traits: Mapping[str, Any] | None = None) -> None:
        self._post("identify", user_id, dict(traits or {}))

    def app_foreground(self) -> None:
        if self.config and self.config.enable_automatic_app_state_tracking:
            self._post("app_foreground")

    def app_background(self) -> None:
        if self.config and self.config.enable_automatic_app_state_tracking:
            self._post("app_background")

    def report_error(self, message: str, stack: str | None = None, error_type: str = "Error") -> None:
        self._post("report_error", message, stack, error_type)

    def flush(self, timeout: float | None = DEFAULT_WAIT_SECONDS) -> bool:
        """Deliver whatever is queued now. True when the batch was accepted or nothing was queued.

        Called from the agent's own loop thread, the delivery is only started
        and False is returned, since waiting there would block the loop.
        """
        if self._engine is None:
            return False
        if threading.current_thread() is self._thread:
            self._run_safely(self._engine.scheduler.drain)
            return False
        try:
            result = self._wait(self._engine.flush, timeout)
        except concurrent.futures.TimeoutError:
            logger.warning("flush_timed_out", timeout=timeout)
            return False
        except Exception:
            logger.exception("flush_failed")
            return False
        return result is None or result.success

    def reset(self) -> None:
        self._post("reset")

    def get_session(self) -> dict[str, Any] | None:
        return self._query("get_session")

    def get_current_screen(self) -> dict[str, Any] | None:
        return self._query("get_current_screen")

    def shutdown(self, timeout: float = DEFAULT_WAIT_SECONDS) -> None:
        """Flush, wait for in-flight deliveries, and stop the loop thread."""
        engine, loop = self._engine, self._loop
        if engine is None:
            return
        self._engine = None

        async def _teardown():
            await engine.shutdown()
            await self._client.aclose()

        try:
            asyncio.run_coroutine_threadsafe(_teardown(), loop).result(timeout=timeout)
        except Exception:
            logger.exception("shutdown_failed")
        finally:
            loop.call_soon_threadsafe(loop.stop)
            self._thread.join(timeout=timeout)
            loop.close()
