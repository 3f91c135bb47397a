"""Tests for configuration loading and validation."""

import pytest
from pydantic import ValidationError

from telemetry_agent.utils.config import (
    AgentConfig,
    Environment,
    get_agent_config,
    get_simulator_config,
    load_config,
)

YAML = """
agent:
  product_id: "from-file"
  api_endpoint: "http://collector:9000/track"
  batch_size: 10
simulator:
  screens: [HomeScreen]
"""


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "agent.yml"
    path.write_text(YAML)
    load_config.cache_clear()
    yield str(path)
    load_config.cache_clear()


class TestAgentConfig:
    def test_defaults(self):
        config = AgentConfig(product_id="p")
        assert config.environment is Environment.PRODUCTION
        assert config.debug_mode is False
        assert config.session_timeout_ms == 30 * 60 * 1000
        assert config.max_session_duration_ms == 24 * 60 * 60 * 1000
        assert config.batch_size == 20
        assert config.batch_interval == 3.0
        assert config.retry_delay == 1.0

    @pytest.mark.parametrize("product_id", ["", "   "])
    def test_product_id_required(self, product_id):
        with pytest.raises(ValidationError):
            AgentConfig(product_id=product_id)

    def test_retry_delay_must_be_shorter_than_batch_interval(self):
        with pytest.raises(ValidationError):
            AgentConfig(product_id="p", batch_interval_ms=1000, retry_delay_ms=1000)

    @pytest.mark.parametrize(
        "interval, expected",
        [(3000, 1000), (1500, 750), (1000, 500), (1, 1)],
    )
    def test_retry_delay_derived_from_short_batch_interval(self, interval, expected):
        config = AgentConfig(product_id="p", batch_interval_ms=interval)
        assert config.retry_delay_ms == expected

    def test_explicit_retry_delay_is_kept(self):
        config = AgentConfig(product_id="p", batch_interval_ms=1000, retry_delay_ms=200)
        assert config.retry_delay_ms == 200

    @pytest.mark.parametrize("field", ["batch_size", "batch_interval_ms", "session_timeout_ms"])
    def test_positive_numbers(self, field):
        with pytest.raises(ValidationError):
            AgentConfig(product_id="p", **{field: 0})


class TestLoadConfig:
    def test_reads_agent_section(self, config_file):
        config = get_agent_config(config_file)
        assert config.product_id == "from-file"
        assert config.api_endpoint == "http://collector:9000/track"
        assert config.batch_size == 10
        assert get_simulator_config(config_file) == {"screens": ["HomeScreen"]}

    def test_environment_overrides(self, config_file, monkeypatch):
        monkeypatch.setenv("TELEMETRY_PRODUCT_ID", "from-env")
        monkeypatch.setenv("TELEMETRY_BATCH_SIZE", "5")
        monkeypatch.setenv("TELEMETRY_DEBUG", "true")
        monkeypatch.setenv("TELEMETRY_ENVIRONMENT", "development")

        config = get_agent_config(config_file)
        assert config.product_id == "from-env"
        assert config.batch_size == 5
        assert config.debug_mode is True
        assert config.environment is Environment.DEVELOPMENT

    def test_bundled_config_is_valid(self):
        load_config.cache_clear()
        config = get_agent_config()
        assert config.product_id
        assert config.retry_delay_ms < config.batch_interval_ms
