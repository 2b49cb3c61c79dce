from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from flowmon.config import DAY_MS, RuntimeConfig, load_config


def test_defaults() -> None:
    rt = RuntimeConfig()
    assert rt.sample_interval_ms == 10_000
    assert rt.retention_window_ms == 7 * DAY_MS
    assert rt.flush_every == 6
    assert rt.windows == {"10m": 600_000, "1h": 3_600_000, "24h": 86_400_000}
    assert rt.flow_rate_divisor == 1_000_000


def test_load_yaml(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text(
        "flush_every: 3\n"
        "data_file: /tmp/h.json\n"
        "windows:\n"
        "  5m: 300000\n",
        encoding="utf-8",
    )
    cfg = load_config(path)
    assert cfg.runtime.flush_every == 3
    assert cfg.runtime.data_file == Path("/tmp/h.json")
    assert cfg.runtime.windows == {"5m": 300_000}


def test_invalid_yaml_raises_value_error(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("flush_every: 0\n", encoding="utf-8")
    with pytest.raises(ValueError, match="Invalid config.yaml"):
        load_config(path)


def test_rejects_zero_divisor() -> None:
    with pytest.raises(ValidationError):
        RuntimeConfig(flow_rate_divisor=0)


def test_env_override(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("ETH_RPC_URL", "http://localhost:8545")
    cfg = load_config(tmp_path / "missing.yaml")
    assert cfg.env.ETH_RPC_URL == "http://localhost:8545"
