"""Static host metadata merged into every batch envelope."""

import os
import platform

from telemetry_agent.utils.schemas import DeviceInfo, DeviceType

MOBILE_SYSTEMS = {"android", "ios", "ipados"}


def detect_device_type(system: str | None = None) -> DeviceType:
    system = (system or platform.system()).lower()
    if system == "ipados":
        return DeviceType.TABLET
    if system in MOBILE_SYSTEMS:
        return DeviceType.MOBILE
    return DeviceType.DESKTOP


def is_physical_device() -> bool:
    """False inside containers and CI runners, the usual 'simulated' hosts."""
    if os.getenv("CI"):
        return False
    return not os.path.exists("/.dockerenv")


class DeviceInfoProvider:
    """Collects host facts once; only connectivity changes between batches."""

    def __init__(self, app_version: str = "unknown", app_build: str = "unknown"):
        system = platform.system()
        self._static = {
            "device_type": detect_device_type(system),
            "device_name": platform.node() or "unknown",
            "device_model": platform.machine() or "unknown",
            "os_name": system or "unknown",
            "os_version": platform.release() or "unknown",
            "platform": f"Python {platform.python_version()}",
            "app_version": app_version,
            "app_build": app_build,
            "is_device": is_physical_device(),
        }

    def collect(self, is_connected: bool = True) -> DeviceInfo:
        return DeviceInfo(**self._static, is_connected=is_connected)
