"""Configuration management."""
import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field

from .health import ThresholdValues


class ServerConfig(BaseModel):
    """Local dashboard API configuration."""
    host: str = "127.0.0.1"
    port: int = 8765


class CollectorConfig(BaseModel):
    """Sampling configuration."""
    interval_ms: int = Field(default=2000, gt=0)
    history_size: int = Field(default=600, gt=0)
    network_sample_ms: int = Field(default=500, ge=0)


class AlertConfig(BaseModel):
    """Alert engine configuration.

    Sustain durations are converted to snapshot counts using the collector
    interval, so they keep their meaning if the interval changes.
    """
    cpu_sustain_seconds: float = 10.0
    ram_sustain_seconds: float = 6.0
    dedup_window_seconds: float = 30.0
    capacity: int = Field(default=200, gt=0)


class PredictionConfig(BaseModel):
    """Forecast configuration."""
    lookback: int = Field(default=50, gt=0)
    floor: float = 0.0
    trend_window: int = Field(default=10, gt=0)
    dead_band: float = 2.0


class NtfyConfig(BaseModel):
    """Ntfy.sh notification configuration."""
    enabled: bool = False
    server_url: str = "https://ntfy.sh"
    topic: str = "sysguard"
    priority: str = "high"  # min, low, default, high, max


class LoggingConfig(BaseModel):
    level: str = "INFO"


class Config(BaseModel):
    """Main configuration."""
    mode: str = Field(default="server", description="'server' or 'console'")
    server: ServerConfig = Field(default_factory=ServerConfig)
    collector: CollectorConfig = Field(default_factory=CollectorConfig)
    thresholds: ThresholdValues = Field(default_factory=ThresholdValues)
    alerts: AlertConfig = Field(default_factory=AlertConfig)
    prediction: PredictionConfig = Field(default_factory=PredictionConfig)
    ntfy: NtfyConfig = Field(default_factory=NtfyConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _parse_bool(value: str) -> bool:
    return value.lower() in ("1", "true", "yes")


ENV_OVERRIDES = {
    "SYSGUARD_MODE": ("mode", str),
    "SYSGUARD_SERVER_HOST": ("server.host", str),
    "SYSGUARD_SERVER_PORT": ("server.port", int),
    "SYSGUARD_INTERVAL_MS": ("collector.interval_ms", int),
    "SYSGUARD_HISTORY_SIZE": ("collector.history_size", int),
    "SYSGUARD_NETWORK_SAMPLE_MS": ("collector.network_sample_ms", int),
    "SYSGUARD_THRESHOLD_CPU": ("thresholds.cpu_percent", float),
    "SYSGUARD_THRESHOLD_RAM": ("thresholds.ram_percent", float),
    "SYSGUARD_THRESHOLD_DISK_ACTIVE": ("thresholds.disk_active_percent", float),
    "SYSGUARD_THRESHOLD_DISK_FREE_GB": ("thresholds.disk_min_free_gb", float),
    "SYSGUARD_CPU_SUSTAIN_SECONDS": ("alerts.cpu_sustain_seconds", float),
    "SYSGUARD_RAM_SUSTAIN_SECONDS": ("alerts.ram_sustain_seconds", float),
    "SYSGUARD_DEDUP_WINDOW_SECONDS": ("alerts.dedup_window_seconds", float),
    "SYSGUARD_ALERT_CAPACITY": ("alerts.capacity", int),
    "SYSGUARD_PREDICTION_LOOKBACK": ("prediction.lookback", int),
    "SYSGUARD_NTFY_ENABLED": ("ntfy.enabled", _parse_bool),
    "SYSGUARD_NTFY_SERVER": ("ntfy.server_url", str),
    "SYSGUARD_NTFY_TOPIC": ("ntfy.topic", str),
    "SYSGUARD_NTFY_PRIORITY": ("ntfy.priority", str),
    "SYSGUARD_LOG_LEVEL": ("logging.level", str),
}


def load_config(config_path: Optional[str] = None) -> Config:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables (SYSGUARD_*)
    2. Config file
    3. Defaults
    """
    config_dict = {}

    if config_path is None:
        config_path = os.environ.get("SYSGUARD_CONFIG_PATH", "config.yaml")

    config_file = Path(config_path)
    if config_file.exists():
        with open(config_file) as f:
            config_dict = yaml.safe_load(f) or {}

    for env_var, (path, converter) in ENV_OVERRIDES.items():
        value = os.environ.get(env_var)
        if value is not None:
            _set_nested(config_dict, path, converter(value))

    return Config(**config_dict)


def _set_nested(d: dict, path: str, value) -> None:
    """Set a nested dictionary value using dot notation."""
    keys = path.split(".")
    for key in keys[:-1]:
        d = d.setdefault(key, {})
    d[keys[-1]] = value
