"""Centralized configuration loader for the telemetry agent."""

import os
from enum import Enum
from pathlib import Path
from functools import lru_cache

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator


CONFIG_DIR = Path(__file__).resolve().parent.parent.parent / "config"

DEFAULT_ENDPOINT = "http://localhost:8080/v1/track"


class Environment(str, Enum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class AgentConfig(BaseModel):
    product_id: str
    api_endpoint: str = DEFAULT_ENDPOINT
    environment: Environment = Environment.PRODUCTION
    debug_mode: bool = False
    enable_automatic_screen_tracking: bool = True
    enable_automatic_app_state_tracking: bool = True
    enable_automatic_error_tracking: bool = True
    session_timeout_ms: int = Field(default=30 * 60 * 1000, gt=0)
    max_session_duration_ms: int = Field(default=24 * 60 * 60 * 1000, gt=0)
    batch_size: int = Field(default=20, gt=0)
    batch_interval_ms: int = Field(default=3000, gt=0)
    retry_delay_ms: int = Field(default=1000, gt=0)
    app_version: str = "unknown"
    app_build: str = "unknown"
    headers: dict[str, str] = Field(default_factory=dict)

    @field_validator("product_id")
    @classmethod
    def _require_product_id(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("productId is mandatory")
        return value

    @model_validator(mode="after")
    def _retry_shorter_than_batch_interval(self) -> "AgentConfig":
        if "retry_delay_ms" not in self.model_fields_set:
            # Short batch intervals get a proportionally shorter retry delay.
            self.retry_delay_ms = max(1, min(self.retry_delay_ms, self.batch_interval_ms // 2))
        elif self.retry_delay_ms >= self.batch_interval_ms:
            raise ValueError("retry_delay_ms must be shorter than batch_interval_ms")
        return self

    @property
    def batch_interval(self) -> float:
        return self.batch_interval_ms / 1000

    @property
    def retry_delay(self) -> float:
        return self.retry_delay_ms / 1000


@lru_cache(maxsize=8)
def load_config(config_path: str | None = None) -> dict:
    """Load agent configuration from YAML file."""
    path = Path(config_path) if config_path else CONFIG_DIR / "agent.yml"
    with open(path) as f:
        config = yaml.safe_load(f) or {}

    # Allow environment variable overrides
    overrides = {
        "agent.product_id": os.getenv("TELEMETRY_PRODUCT_ID"),
        "agent.api_endpoint": os.getenv("TELEMETRY_API_ENDPOINT"),
        "agent.environment": os.getenv("TELEMETRY_ENVIRONMENT"),
        "agent.debug_mode": os.getenv("TELEMETRY_DEBUG"),
        "agent.batch_size": os.getenv("TELEMETRY_BATCH_SIZE"),
        "agent.batch_interval_ms": os.getenv("TELEMETRY_BATCH_INTERVAL_MS"),
    }
    for dotted_key, value in overrides.items():
        if value is not None:
            keys = dotted_key.split(".")
            d = config
            for k in keys[:-1]:
                d = d.setdefault(k, {})
            if value.isdigit():
                d[keys[-1]] = int(value)
            else:
                d[keys[-1]] = value

    return config


def get_agent_config(config_path: str | None = None) -> AgentConfig:
    return AgentConfig(**load_config(config_path).get("agent", {}))


def get_simulator_config(config_path: str | None = None) -> dict:
    return load_config(config_path).get("simulator", {})
