"""Static session settings — what the publisher reports about itself.

Read once at construction; use SessionSettings.from_env() to pick values
up from WHIP_* environment variables.
"""

from __future__ import annotations

import os
import platform
from dataclasses import dataclass, field
from typing import Callable


def nominal_thermal_status() -> str:
    """Default thermal probe. Hosts with a sensor API should pass their own."""
    return "none"


@dataclass
class SessionSettings:
    display_name: str = "Demo_app_python"
    app: str = "demo"
    os_name: str = field(default_factory=platform.system)
    live_mode: str = "rtc"
    live_quality: str = "fhd"
    playout_delay_ms: int = 0
    stats_interval: float = 10.0
    request_timeout: float = 10.0
    thermal_status: Callable[[], str] = nominal_thermal_status

    @classmethod
    def from_env(cls) -> "SessionSettings":
        defaults = cls()
        return cls(
            display_name=os.getenv("WHIP_DISPLAY_NAME", defaults.display_name),
            app=os.getenv("WHIP_APP", defaults.app),
            os_name=os.getenv("WHIP_OS", defaults.os_name),
            live_mode=os.getenv("WHIP_LIVE_MODE", defaults.live_mode),
            live_quality=os.getenv("WHIP_LIVE_QUALITY", defaults.live_quality),
            playout_delay_ms=int(os.getenv("WHIP_PLAYOUT_DELAY_MS", defaults.playout_delay_ms)),
            stats_interval=float(os.getenv("WHIP_STATS_INTERVAL", defaults.stats_interval)),
            request_timeout=float(os.getenv("WHIP_REQUEST_TIMEOUT", defaults.request_timeout)),
        )
