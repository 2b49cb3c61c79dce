from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS

USDT_ADDRESS = "0xdac17f958d2ee523a2206206994597c13d831ec7"
DEFAULT_MONITORED_ADDRESS = "0xab02bf85a7a851b6a379ea3d5bd3b9b4f5dd8461"


class RuntimeConfig(BaseModel):
    token_address: str = USDT_ADDRESS
    token_symbol: str = "USDT"
    token_decimals: int = Field(6, ge=0, le=36)
    monitored_address: str = DEFAULT_MONITORED_ADDRESS
    sample_interval_ms: int = Field(10_000, description="Sampling cadence")
    retention_window_ms: int = Field(7 * DAY_MS, description="History kept in memory and on disk")
    flush_every: int = Field(6, description="Ingests between snapshot writes")
    windows: Dict[str, int] = Field(
        default_factory=lambda: {"10m": 10 * MINUTE_MS, "1h": HOUR_MS, "24h": DAY_MS},
        description="Label -> lag (ms) for the delta table",
    )
    rate_lag_ms: int = HOUR_MS
    estimate_lag_ms: int = 10 * MINUTE_MS
    flow_rate_divisor: float = Field(1_000_000.0, description="Flow rate unit, e.g. millions per hour")
    data_file: Path = Path(".data/balance_history.json")
    network_timeout_sec: int = 10
    max_attempts: int = Field(3, description="RPC attempts per tick, first try included")
    backoff_base_sec: float = 0.5
    backoff_cap_sec: float = 2.0

    @field_validator(
        "sample_interval_ms",
        "retention_window_ms",
        "flush_every",
        "rate_lag_ms",
        "estimate_lag_ms",
        "max_attempts",
    )
    @classmethod
    def _positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be positive")
        return v

    @field_validator("flow_rate_divisor")
    @classmethod
    def _nonzero_divisor(cls, v: float) -> float:
        if v == 0:
            raise ValueError("must not be zero")
        return v

    @field_validator("windows")
    @classmethod
    def _valid_windows(cls, v: Dict[str, int]) -> Dict[str, int]:
        for label, lag in v.items():
            if lag < 0:
                raise ValueError(f"window {label!r} has negative lag")
        return v


class EnvSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    LOG_LEVEL: str = "INFO"
    ETH_RPC_URL: str = "https://ethereum-rpc.publicnode.com"

    # Dashboard
    DASH_HOST: str = "127.0.0.1"
    DASH_PORT: int = 8050


class AppConfig(BaseModel):
    env: EnvSettings
    runtime: RuntimeConfig

    @field_validator("env", mode="before")
    @classmethod
    def _coerce_env(cls, v):  # type: ignore[no-untyped-def]
        if isinstance(v, dict):
            return EnvSettings(**v)
        return v

    @staticmethod
    def load(config_path: Optional[Path] = None) -> "AppConfig":
        env = EnvSettings()  # loads from environment and .env

        runtime = RuntimeConfig()
        if config_path is None:
            default_path = Path("config.yaml")
            config_path = default_path if default_path.exists() else None

        if config_path and Path(config_path).exists():
            with open(config_path, "r", encoding="utf-8") as fh:
                raw = yaml.safe_load(fh) or {}
            try:
                runtime = RuntimeConfig(**raw)
            except ValidationError as ve:
                raise ValueError(f"Invalid config.yaml: {ve}")

        return AppConfig(env=env, runtime=runtime)


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Load merged configuration from environment and optional YAML."""

    return AppConfig.load(config_path)
