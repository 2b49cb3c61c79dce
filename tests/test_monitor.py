from __future__ import annotations

import json
from pathlib import Path

from flowmon.config import AppConfig, RuntimeConfig
from flowmon.core.monitor import FlowMonitor, MonitorState
from flowmon.core.series import Sample
from flowmon.core.windows import Provenance


MIN = 60_000
HOUR = 60 * MIN


def make_config(tmp_path: Path, **runtime) -> AppConfig:
    runtime.setdefault("data_file", tmp_path / "history.json")
    return AppConfig(env={"LOG_LEVEL": "INFO"}, runtime=RuntimeConfig(**runtime))


def test_ingest_then_query_bundle(tmp_path: Path) -> None:
    monitor = FlowMonitor(make_config(tmp_path))
    monitor.ingest(Sample(0, 1000.0))
    monitor.ingest(Sample(600_000, 1200.0))
    monitor.ingest(Sample(3_600_000, 2000.0))

    metrics = monitor.query(now=3_600_000)
    assert metrics.current_value == 2000.0
    assert metrics.deltas == {"10m": 800.0, "1h": 1000.0, "24h": None}
    assert metrics.flow_rate.provenance is Provenance.ACTUAL
    assert metrics.record_count == 3
    assert metrics.oldest_age_ms == 3_600_000
    assert metrics.tracking_minutes == 60


def test_query_on_empty_history(tmp_path: Path) -> None:
    monitor = FlowMonitor(make_config(tmp_path))
    metrics = monitor.query(now=1_000)
    assert metrics.current_value is None
    assert metrics.deltas == {"10m": None, "1h": None, "24h": None}
    assert metrics.flow_rate.provenance is Provenance.UNAVAILABLE
    assert metrics.record_count == 0
    assert metrics.oldest_age_ms is None
    assert metrics.tracking_minutes == 0


def test_query_with_explicit_current_value(tmp_path: Path) -> None:
    monitor = FlowMonitor(make_config(tmp_path))
    monitor.ingest(Sample(0, 100.0))
    metrics = monitor.query(now=HOUR, current_value=40.0)
    assert metrics.deltas["1h"] == -60.0


def test_query_does_not_mutate(tmp_path: Path) -> None:
    monitor = FlowMonitor(make_config(tmp_path, retention_window_ms=HOUR))
    monitor.ingest(Sample(0, 1.0))
    monitor.query(now=10 * HOUR)
    assert monitor.store.all() == (Sample(0, 1.0),)


def test_ingest_prunes_to_retention_window(tmp_path: Path) -> None:
    monitor = FlowMonitor(make_config(tmp_path, retention_window_ms=HOUR))
    for i in range(8):
        monitor.ingest(Sample(i * 20 * MIN, float(i)))
    # latest is 140m; cutoff 80m is dropped
    assert [s.timestamp // MIN for s in monitor.store.all()] == [100, 120, 140]


def test_out_of_order_sample_is_rejected(tmp_path: Path) -> None:
    monitor = FlowMonitor(make_config(tmp_path))
    assert monitor.ingest(Sample(2000, 2.0)) is True
    assert monitor.ingest(Sample(1000, 1.0)) is False
    assert monitor.ingest(Sample(2000, 3.0)) is True
    assert [s.timestamp for s in monitor.store.all()] == [2000, 2000]


def test_ingest_flushes_on_cadence(tmp_path: Path) -> None:
    cfg = make_config(tmp_path, flush_every=3)
    monitor = FlowMonitor(cfg)
    for i in range(7):
        monitor.ingest(Sample(i * 10_000, float(i)))
    assert monitor.persistence.flush_count == 2
    saved = json.loads(cfg.runtime.data_file.read_text(encoding="utf-8"))
    assert len(saved) == 6

    monitor.shutdown()
    saved = json.loads(cfg.runtime.data_file.read_text(encoding="utf-8"))
    assert len(saved) == 7


def test_start_restores_history(tmp_path: Path) -> None:
    cfg = make_config(tmp_path)
    first = FlowMonitor(cfg)
    first.ingest(Sample(1, 1.0))
    first.ingest(Sample(2, 2.0))
    first.shutdown()

    second = FlowMonitor(cfg)
    assert second.start() == 2
    assert second.store.all() == (Sample(1, 1.0), Sample(2, 2.0))


def test_ingest_value_stamps_now(tmp_path: Path) -> None:
    monitor = FlowMonitor(make_config(tmp_path))
    sample = monitor.ingest_value(42.0, now=123_456)
    assert sample == Sample(123_456, 42.0)
    assert monitor.store.latest() == sample


def test_ingest_value_returns_none_when_rejected(tmp_path: Path) -> None:
    monitor = FlowMonitor(make_config(tmp_path))
    monitor.ingest_value(1.0, now=2_000)
    assert monitor.ingest_value(2.0, now=1_000) is None
    assert monitor.store.all() == (Sample(2_000, 1.0),)


def test_error_keeps_last_good_metrics(tmp_path: Path) -> None:
    monitor = FlowMonitor(make_config(tmp_path))
    monitor.ingest(Sample(0, 5.0))
    good = monitor.query(now=0)
    monitor.record_success(good)
    assert monitor.status.state is MonitorState.LIVE

    monitor.record_error("timeout")
    assert monitor.status.state is MonitorState.ERROR
    assert monitor.status.stale
    assert monitor.status.last_metrics is good
    assert monitor.status.last_error == "timeout"
    assert monitor.status.errors == 1


def test_metrics_as_dict(tmp_path: Path) -> None:
    monitor = FlowMonitor(make_config(tmp_path))
    monitor.ingest(Sample(0, 1_000_000.0))
    d = monitor.query(now=20 * MIN, current_value=1_100_000.0).as_dict()
    assert d["flow_rate_provenance"] == "estimated"
    assert d["flow_rate_actual"] is None
    assert d["deltas"]["10m"] == 100_000.0
    assert d["record_count"] == 1
