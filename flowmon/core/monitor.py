from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from ..config import AppConfig
from .persistence import PersistenceManager
from .retention import RetentionManager
from .series import Sample, SeriesStore, utc_now_ms
from .windows import FlowRate, Provenance, WindowQueryEngine


logger = logging.getLogger(__name__)


class MonitorState(str, Enum):
    STARTING = "STARTING"
    UPDATING = "UPDATING"
    LIVE = "LIVE"
    ERROR = "ERROR"


@dataclass
class MetricsBundle:
    now: int
    current_value: Optional[float]
    deltas: Dict[str, Optional[float]]
    flow_rate: FlowRate
    record_count: int
    oldest_age_ms: Optional[int]
    latest: Optional[Sample] = None

    @property
    def tracking_minutes(self) -> int:
        return 0 if self.oldest_age_ms is None else self.oldest_age_ms // 60_000

    def as_dict(self) -> dict:
        return {
            "now": self.now,
            "current_value": self.current_value,
            "deltas": dict(self.deltas),
            "flow_rate": self.flow_rate.value,
            "flow_rate_provenance": self.flow_rate.provenance.value,
            "flow_rate_actual": self.flow_rate.actual,
            "flow_rate_estimate": self.flow_rate.estimate,
            "record_count": self.record_count,
            "oldest_age_ms": self.oldest_age_ms,
            "tracking_minutes": self.tracking_minutes,
        }


@dataclass
class MonitorStatus:
    state: MonitorState = MonitorState.STARTING
    last_update_ms: Optional[int] = None
    last_error: Optional[str] = None
    last_metrics: Optional[MetricsBundle] = None
    errors: int = 0
    updates: int = 0

    @property
    def stale(self) -> bool:
        return self.state == MonitorState.ERROR


class FlowMonitor:
    """Owns the series and wires ingestion, retention and persistence together.

    One instance per process. `ingest` is the only write path; `query` never
    mutates anything.
    """

    def __init__(self, config: AppConfig, store: Optional[SeriesStore] = None) -> None:
        rt = config.runtime
        self.config = config
        self.store = store if store is not None else SeriesStore()
        self.retention = RetentionManager(self.store, rt.retention_window_ms)
        self.engine = WindowQueryEngine(
            self.store,
            rate_lag_ms=rt.rate_lag_ms,
            estimate_lag_ms=rt.estimate_lag_ms,
            divisor=rt.flow_rate_divisor,
        )
        self.persistence = PersistenceManager(self.store, rt.data_file, rt.flush_every)
        self.windows: Dict[str, int] = dict(rt.windows)
        self.status = MonitorStatus()
        self._ingest_lock = threading.Lock()

    def start(self) -> int:
        return self.persistence.load()

    def ingest(self, sample: Sample, now: Optional[int] = None) -> bool:
        """Append, prune, maybe flush. Out-of-order samples are rejected."""
        with self._ingest_lock:
            latest = self.store.latest()
            if latest is not None and sample.timestamp < latest.timestamp:
                logger.warning(
                    "rejecting out-of-order sample",
                    extra={"timestamp": sample.timestamp, "latest": latest.timestamp},
                )
                return False
            self.store.append(sample)
            self.retention.prune(sample.timestamp if now is None else now)
            self.persistence.on_ingest()
        return True

    def ingest_value(self, value: float, now: Optional[int] = None) -> Optional[Sample]:
        """Stamp `value` with `now` (wall clock by default); `None` if it was rejected."""
        ts = utc_now_ms() if now is None else now
        sample = Sample(timestamp=ts, value=value)
        return sample if self.ingest(sample, now=ts) else None

    def query(self, now: Optional[int] = None, current_value: Optional[float] = None) -> MetricsBundle:
        ts = utc_now_ms() if now is None else now
        # hold the store lock so every figure comes from the same sequence
        with self.store.lock:
            latest = self.store.latest()
            oldest = self.store.oldest()
            if current_value is None and latest is not None:
                current_value = latest.value

            deltas: Dict[str, Optional[float]] = {}
            if current_value is None:
                deltas = {label: None for label in self.windows}
                flow = FlowRate(None, Provenance.UNAVAILABLE)
            else:
                for label, lag in self.windows.items():
                    deltas[label] = self.engine.delta(ts, current_value, lag)
                flow = self.engine.hourly_flow_rate(ts, current_value)

            return MetricsBundle(
                now=ts,
                current_value=current_value,
                deltas=deltas,
                flow_rate=flow,
                record_count=len(self.store),
                oldest_age_ms=None if oldest is None else ts - oldest.timestamp,
                latest=latest,
            )

    # ───────────────────────────── status ─────────────────────────────
    def mark_updating(self) -> None:
        self.status.state = MonitorState.UPDATING

    def record_success(self, metrics: MetricsBundle) -> None:
        self.status.state = MonitorState.LIVE
        self.status.last_metrics = metrics
        self.status.last_update_ms = metrics.now
        self.status.last_error = None
        self.status.updates += 1

    def record_error(self, message: str) -> None:
        # last_metrics is kept so sinks can keep showing the last good state
        self.status.state = MonitorState.ERROR
        self.status.last_error = message
        self.status.errors += 1

    def shutdown(self) -> bool:
        return self.persistence.flush_on_shutdown()
