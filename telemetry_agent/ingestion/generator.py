"""Synthetic user activity — drives an agent with realistic screen/feature/error traffic."""

import random
from dataclasses import dataclass, field
from typing import Any

from telemetry_agent.utils.config import get_simulator_config

SCREENS = [
    "HomeScreen", "Products/Search", "Products/ProductDetail", "Cart/CartScreen",
    "Cart/CheckoutScreen", "Account/ProfileScreen", "SettingsScreen", "Auth/LoginScreen",
]

FEATURES = [
    "search", "checkout", "share", "export", "notifications",
    "comments", "file_upload", "calendar", "chat", "reports",
]

ERROR_TYPES = [
    "ValueError", "KeyError", "TimeoutError", "ConnectionError", "PermissionError",
]


@dataclass
class SimulatedAction:
    kind: str
    args: tuple = ()
    kwargs: dict[str, Any] = field(default_factory=dict)

    def apply(self, agent) -> None:
        getattr(agent, self.kind)(*self.args, **self.kwargs)


class ActivityGenerator:
    """Generates agent calls with configurable distributions."""

    def __init__(self, config: dict | None = None, seed: int | None = None):
        cfg = config if config is not None else get_simulator_config()
        self.screens = cfg.get("screens", SCREENS)
        self.features = cfg.get("features", FEATURES)
        self.user_ids = cfg.get("user_ids", [])
        error_rate = cfg.get("error_rate", 0.02)
        self._random = random.Random(seed)
        self._in_background = False

        # Feature usage and navigation dominate
        self._action_weights = {
            "screen": 0.35,
            "feature": 0.50 - error_rate,
            "identify": 0.05 if self.user_ids else 0.0,
            "background": 0.10,
            "error": error_rate,
        }

    def next_action(self) -> SimulatedAction:
        kind = self._random.choices(
            list(self._action_weights.keys()),
            weights=list(self._action_weights.values()),
            k=1,
        )[0]

        if kind == "screen":
            screen = self._random.choice(self.screens)
            return SimulatedAction(
                "track_screen",
                (screen,),
                {"params": {"referrer": self._random.choice(self.screens)}},
            )
        elif kind == "feature":
            return SimulatedAction(
                "track",
                (self._random.choice(self.features),),
                {
                    "properties": {
                        "duration_ms": self._random.randint(500, 60000),
                        "interaction_count": self._random.randint(1, 50),
                    }
                },
            )
        elif kind == "identify":
            return SimulatedAction(
                "identify",
                (self._random.choice(self.user_ids),),
                {"traits": {"plan": self._random.choice(["free", "pro", "team"])}},
            )
        elif kind == "background":
            self._in_background = not self._in_background
            return SimulatedAction("app_background" if self._in_background else "app_foreground")

        error_type = self._random.choice(ERROR_TYPES)
        return SimulatedAction(
            "report_error",
            (f"simulated {error_type}",),
            {
                "stack": f'File "app/module.py", line {self._random.randint(10, 500)}, in handler',
                "error_type": error_type,
            },
        )

    def generate_batch(self, size: int) -> list[SimulatedAction]:
        return [self.next_action() for _ in range(size)]
