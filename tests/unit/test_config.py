"""Tests for configuration loading and validation."""

from __future__ import annotations

import os
from datetime import time
from pathlib import Path

import pytest

from ipo_sentinel.core.config import (
    AlertsConfig,
    HealthConfig,
    SchedulerConfig,
    SentinelConfig,
    SourcesConfig,
    TradingWindowConfig,
    load_config,
)
from ipo_sentinel.core.exceptions import ConfigError
from ipo_sentinel.core.models import SourceName, Tier


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Isolate tests from the caller's environment and working directory."""
    for key in list(os.environ):
        if key.startswith("IPO_SENTINEL_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)


class TestDefaults:
    def test_defaults(self):
        config = load_config()
        assert config.sources.enabled == list(SourceName)
        assert config.sources.retries == 2
        assert config.scheduler.active_delay_seconds == 300
        assert config.scheduler.idle_delay_seconds == 1800
        assert config.scheduler.alert_buffer_cap == 50
        assert config.scheduler.trading_window.timezone == "Asia/Kolkata"
        assert config.scheduler.trading_window.start == time(9, 15)
        assert config.scheduler.trading_window.end == time(17, 30)
        assert config.alerts.critical_total == 20
        assert config.quota.keys == {}

    def test_config_is_frozen(self):
        config = SentinelConfig()
        with pytest.raises(Exception):
            config.sources = SourcesConfig()


class TestYaml:
    def test_loads_yaml(self, tmp_path: Path):
        path = tmp_path / "custom.yml"
        path.write_text(
            "sources:\n"
            "  enabled: [nse, groww]\n"
            "  retries: 1\n"
            "scheduler:\n"
            "  alert_buffer_cap: 5\n"
            "  trading_window:\n"
            "    start: '10:00'\n"
            "    end: '15:30'\n"
            "quota:\n"
            "  keys:\n"
            "    key-123: pro\n"
        )
        config = load_config(str(path))
        assert config.sources.enabled == [SourceName.NSE, SourceName.GROWW]
        assert config.sources.retries == 1
        assert config.scheduler.alert_buffer_cap == 5
        assert config.scheduler.trading_window.start == time(10, 0)
        assert config.quota.keys == {"key-123": Tier.PRO}

    def test_default_file_in_cwd(self, tmp_path: Path):
        (tmp_path / "ipo-sentinel.yml").write_text("api:\n  port: 9001\n")
        assert load_config().api.port == 9001

    def test_env_path(self, tmp_path: Path, monkeypatch):
        path = tmp_path / "elsewhere.yml"
        path.write_text("api:\n  port: 9100\n")
        monkeypatch.setenv("IPO_SENTINEL_CONFIG", str(path))
        assert load_config().api.port == 9100

    def test_missing_file(self):
        with pytest.raises(ConfigError, match="not found"):
            load_config("/nonexistent/ipo-sentinel.yml")

    def test_non_mapping(self, tmp_path: Path):
        path = tmp_path / "list.yml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(str(path))

    def test_empty_file_uses_defaults(self, tmp_path: Path):
        path = tmp_path / "empty.yml"
        path.write_text("")
        assert load_config(str(path)) == SentinelConfig()


class TestEnvOverrides:
    def test_nested_override(self, monkeypatch):
        monkeypatch.setenv("IPO_SENTINEL_SCHEDULER__ALERT_BUFFER_CAP", "100")
        monkeypatch.setenv("IPO_SENTINEL_SCHEDULER__AUTOSTART", "true")
        config = load_config()
        assert config.scheduler.alert_buffer_cap == 100
        assert config.scheduler.autostart is True

    def test_env_beats_yaml(self, tmp_path: Path, monkeypatch):
        path = tmp_path / "c.yml"
        path.write_text("sources:\n  retries: 1\n")
        monkeypatch.setenv("IPO_SENTINEL_SOURCES__RETRIES", "3")
        assert load_config(str(path)).sources.retries == 3

    def test_comma_list(self, monkeypatch):
        monkeypatch.setenv("IPO_SENTINEL_SOURCES__ENABLED", "nse,chittorgarh")
        assert load_config().sources.enabled == [SourceName.NSE, SourceName.CHITTORGARH]

    def test_single_source(self, monkeypatch):
        monkeypatch.setenv("IPO_SENTINEL_SOURCES__ENABLED", "nse")
        assert load_config().sources.enabled == [SourceName.NSE]

    def test_comma_in_string_field_stays_a_string(self, monkeypatch):
        agent = "Mozilla/5.0 (KHTML, like Gecko) Chrome/120.0"
        monkeypatch.setenv("IPO_SENTINEL_SOURCES__USER_AGENT", agent)
        assert load_config().sources.user_agent == agent


class TestValidation:
    def test_invalid_value_wrapped_in_config_error(self, monkeypatch):
        monkeypatch.setenv("IPO_SENTINEL_SOURCES__RETRIES", "9")
        with pytest.raises(ConfigError):
            load_config()

    def test_unknown_source(self):
        with pytest.raises(ValueError):
            SourcesConfig(enabled=["bloomberg"])

    @pytest.mark.parametrize("rate", [0, 21])
    def test_rate_limit_bounds(self, rate):
        with pytest.raises(ValueError, match="rate_limit"):
            SourcesConfig(rate_limit=rate)

    def test_retention_must_cover_stats_window(self):
        with pytest.raises(ValueError, match="retention_hours"):
            HealthConfig(stats_window_hours=48, retention_hours=24)

    def test_unknown_timezone(self):
        with pytest.raises(ValueError, match="timezone"):
            TradingWindowConfig(timezone="Mars/Olympus")

    def test_window_start_before_end(self):
        with pytest.raises(ValueError):
            TradingWindowConfig(start=time(18, 0), end=time(9, 0))

    def test_weekdays_range(self):
        with pytest.raises(ValueError):
            TradingWindowConfig(weekdays=[0, 7])

    def test_buffer_cap_positive(self):
        with pytest.raises(ValueError):
            SchedulerConfig(alert_buffer_cap=0)

    def test_delays_positive(self):
        with pytest.raises(ValueError):
            SchedulerConfig(active_delay_seconds=0)

    def test_critical_at_least_warning(self):
        with pytest.raises(ValueError):
            AlertsConfig(critical_total=5, warning_total=10)

    def test_unknown_tier_rejected(self):
        with pytest.raises(ValueError):
            SentinelConfig.model_validate({"quota": {"keys": {"k": "platinum"}}})
