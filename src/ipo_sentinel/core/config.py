"""Configuration loading, validation, and access."""

from __future__ import annotations

import os
from datetime import time
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from ipo_sentinel.core.exceptions import ConfigError
from ipo_sentinel.core.models import SourceName, Tier

_DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class SourcesConfig(BaseModel):
    """External source access configuration."""

    model_config = ConfigDict(frozen=True)

    enabled: list[SourceName] = list(SourceName)
    timeout_seconds: float = 30.0
    retries: int = 2
    retry_delay_seconds: float = 1.0
    rate_limit: int = 5
    subscription_detail_limit: int = 10
    user_agent: str = _DEFAULT_USER_AGENT

    @field_validator("enabled", mode="before")
    @classmethod
    def split_enabled(cls, v: object) -> object:
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @field_validator("retries")
    @classmethod
    def retries_bounded(cls, v: int) -> int:
        if v < 0 or v > 5:
            raise ValueError("retries must be between 0 and 5")
        return v

    @field_validator("timeout_seconds")
    @classmethod
    def timeout_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeout_seconds must be > 0")
        return v

    @field_validator("rate_limit")
    @classmethod
    def rate_limit_bounded(cls, v: int) -> int:
        if v < 1 or v > 20:
            raise ValueError("rate_limit must be between 1 and 20 requests per second")
        return v

    @field_validator("retry_delay_seconds")
    @classmethod
    def delay_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("retry_delay_seconds must be >= 0")
        return v


class TradingWindowConfig(BaseModel):
    """Local-time interval during which bids are accepted."""

    model_config = ConfigDict(frozen=True)

    timezone: str = "Asia/Kolkata"
    weekdays: list[int] = [0, 1, 2, 3, 4]
    start: time = time(9, 15)
    end: time = time(17, 30)

    @field_validator("timezone")
    @classmethod
    def timezone_known(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {v!r}") from e
        return v

    @field_validator("weekdays")
    @classmethod
    def weekdays_valid(cls, v: list[int]) -> list[int]:
        if any(d < 0 or d > 6 for d in v):
            raise ValueError("weekdays must be in 0..6 (Monday=0)")
        return v

    @model_validator(mode="after")
    def start_before_end(self) -> TradingWindowConfig:
        if self.start >= self.end:
            raise ValueError("trading window start must be before end")
        return self


class SchedulerConfig(BaseModel):
    """Adaptive poll scheduler configuration."""

    model_config = ConfigDict(frozen=True)

    trading_window: TradingWindowConfig = TradingWindowConfig()
    active_delay_seconds: float = 300.0
    idle_delay_seconds: float = 1800.0
    alert_buffer_cap: int = 50
    autostart: bool = False

    @field_validator("alert_buffer_cap")
    @classmethod
    def cap_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("alert_buffer_cap must be >= 1")
        return v

    @model_validator(mode="after")
    def delays_positive(self) -> SchedulerConfig:
        if self.active_delay_seconds <= 0 or self.idle_delay_seconds <= 0:
            raise ValueError("poll delays must be > 0")
        return self


class AlertsConfig(BaseModel):
    """Thresholds used by the alert engine."""

    model_config = ConfigDict(frozen=True)

    critical_total: float = 20.0
    warning_total: float = 10.0
    momentum_delta: float = 5.0
    premium_change_percent: float = 10.0

    @model_validator(mode="after")
    def critical_above_warning(self) -> AlertsConfig:
        if self.critical_total < self.warning_total:
            raise ValueError("critical_total must be >= warning_total")
        return self


class HealthConfig(BaseModel):
    """Health monitor windows."""

    model_config = ConfigDict(frozen=True)

    stats_window_hours: float = 24.0
    status_window_hours: float = 1.0
    retention_hours: float = 24.0 * 30

    @model_validator(mode="after")
    def windows_positive(self) -> HealthConfig:
        if min(self.stats_window_hours, self.status_window_hours, self.retention_hours) <= 0:
            raise ValueError("health windows must be > 0")
        if self.retention_hours < max(self.stats_window_hours, self.status_window_hours):
            raise ValueError("retention_hours must cover both health windows")
        return self


class QuotaConfig(BaseModel):
    """Credential → tier mapping for the quota limiter."""

    model_config = ConfigDict(frozen=True)

    keys: dict[str, Tier] = {}


class StorageConfig(BaseModel):
    """Storage backend configuration."""

    model_config = ConfigDict(frozen=True)

    sqlite_path: str = "./data/ipo_sentinel.db"


class APIConfig(BaseModel):
    """FastAPI server configuration."""

    model_config = ConfigDict(frozen=True)

    host: str = "0.0.0.0"
    port: int = 8000


class SentinelConfig(BaseModel):
    """Root configuration for the entire ipo-sentinel system."""

    model_config = ConfigDict(frozen=True)

    sources: SourcesConfig = SourcesConfig()
    scheduler: SchedulerConfig = SchedulerConfig()
    alerts: AlertsConfig = AlertsConfig()
    health: HealthConfig = HealthConfig()
    quota: QuotaConfig = QuotaConfig()
    storage: StorageConfig = StorageConfig()
    api: APIConfig = APIConfig()


def load_config(
    config_path: str | None = None,
    env_prefix: str = "IPO_SENTINEL_",
) -> SentinelConfig:
    """Load configuration from environment + YAML file + defaults.

    Resolution order (highest priority first):
    1. Environment variables (IPO_SENTINEL_SOURCES__RETRIES, etc.)
    2. YAML file at config_path
    3. Built-in defaults

    Nested keys use double-underscore in env vars:
        IPO_SENTINEL_SCHEDULER__ALERT_BUFFER_CAP=100  ->  scheduler.alert_buffer_cap = 100
    """
    try:
        yaml_path = _resolve_config_path(config_path)
        base: dict = {}
        if yaml_path is not None:
            base = _load_yaml(yaml_path)

        merged = _merge_env_vars(base, env_prefix)
        return SentinelConfig.model_validate(merged)
    except Exception as e:
        if isinstance(e, ConfigError):
            raise
        raise ConfigError(str(e), context={"source": "load_config"}) from e


def _resolve_config_path(explicit: str | None) -> Path | None:
    """Determine config file path."""
    if explicit is not None:
        p = Path(explicit)
        if not p.exists():
            raise ConfigError(
                f"Config file not found: {explicit}",
                context={"field": "config_path", "value": explicit},
            )
        return p

    env_path = os.environ.get("IPO_SENTINEL_CONFIG")
    if env_path:
        p = Path(env_path)
        if not p.exists():
            raise ConfigError(
                f"Config file from IPO_SENTINEL_CONFIG not found: {env_path}",
                context={"field": "IPO_SENTINEL_CONFIG", "value": env_path},
            )
        return p

    default = Path("ipo-sentinel.yml")
    if default.exists():
        return default

    return None


def _load_yaml(path: Path) -> dict:
    """Load and parse YAML file."""
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(
                f"YAML config must be a mapping, got {type(data).__name__}",
                context={"field": "config_file", "value": str(path)},
            )
        return data
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Failed to parse YAML config: {e}",
            context={"field": "config_file", "value": str(path)},
        ) from e


def _merge_env_vars(base: dict, prefix: str) -> dict:
    """Overlay environment variables onto base config dict.

    Double-underscore separates nesting levels. Values stay scalar; list
    fields split their own comma-separated input.
    """
    result = dict(base)

    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue

        remainder = key[len(prefix) :]
        parts = [p.lower() for p in remainder.split("__")]

        if parts == ["config"]:
            continue

        cast_value = _auto_cast(value)

        target = result
        for part in parts[:-1]:
            if not isinstance(target.get(part), dict):
                target[part] = {}
            target = target[part]
        target[parts[-1]] = cast_value

    return result


def _auto_cast(value: str) -> str | int | float | bool:
    """Auto-cast string values from environment variables."""
    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        pass
    return value
