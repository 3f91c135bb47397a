"""Explicit hooks that feed automatic screen and error capture into an agent.

The host wires these in itself; nothing here patches host classes.
"""

import functools
import inspect
import sys
import threading
import traceback
from typing import Any, Callable

from telemetry_agent.core.agent import TelemetryAgent


def exception_details(exc_type: type[BaseException], exc: BaseException, tb) -> dict[str, Any]:
    return {
        "message": str(exc) or exc_type.__name__,
        "stack": "".join(traceback.format_exception(exc_type, exc, tb)),
        "error_type": exc_type.__name__,
    }


def install_error_hook(agent: TelemetryAgent) -> Callable[[], None] | None:
    """Report uncaught exceptions from the main and worker threads.

    Chains to the previously installed hooks. Returns a function restoring
    them, or None when automatic error tracking is disabled.
    """
    if not (agent.config and agent.config.enable_automatic_error_tracking):
        return None

    previous_sys_hook = sys.excepthook
    previous_thread_hook = threading.excepthook

    def _sys_hook(exc_type, exc, tb):
        if not issubclass(exc_type, KeyboardInterrupt):
            agent.report_error(**exception_details(exc_type, exc, tb))
        previous_sys_hook(exc_type, exc, tb)

    def _thread_hook(args):
        if args.exc_type is not SystemExit and args.exc_value is not None:
            agent.report_error(**exception_details(args.exc_type, args.exc_value, args.exc_traceback))
        previous_thread_hook(args)

    sys.excepthook = _sys_hook
    threading.excepthook = _thread_hook

    def uninstall() -> None:
        sys.excepthook = previous_sys_hook
        threading.excepthook = previous_thread_hook

    return uninstall


def track_screens(agent: TelemetryAgent, name: str | None = None, title: str | None = None):
    """Decorator reporting a screen view each time a view handler runs.

    Keyword arguments of the call become the screen params.
    """

    def decorator(func):
        screen_name = name or func.__name__

        def _report(kwargs):
            if agent.config and agent.config.enable_automatic_screen_tracking:
                agent.track_screen(screen_name, title, kwargs)

        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                _report(kwargs)
                return await func(*args, **kwargs)

            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            _report(kwargs)
            return func(*args, **kwargs)

        return wrapper

    return decorator
