from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional, Protocol

from ..core.monitor import FlowMonitor, MetricsBundle
from ..core.series import Sample


logger = logging.getLogger(__name__)


class SampleSource(Protocol):
    def fetch(self) -> Sample: ...


class BalanceCollector:
    """Fixed-period sampling loop feeding a `FlowMonitor`.

    Every tick runs fetch -> ingest -> query on a single thread, so a slow
    fetch postpones the next tick rather than overlapping it. `stop()` ends
    the loop and writes the final snapshot.
    """

    def __init__(
        self,
        monitor: FlowMonitor,
        source: SampleSource,
        interval_ms: Optional[int] = None,
        on_metrics: Optional[Callable[[MetricsBundle], None]] = None,
    ) -> None:
        self.monitor = monitor
        self.source = source
        self.interval_ms = interval_ms or monitor.config.runtime.sample_interval_ms
        self.on_metrics = on_metrics
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="BalanceCollector", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=30)
            if self._thread.is_alive():
                logger.warning("collector thread did not exit before shutdown flush")
        self.monitor.shutdown()

    def is_running(self) -> bool:
        return bool(self._thread and self._thread.is_alive())

    def _run(self) -> None:
        interval = self.interval_ms / 1000.0
        while not self._stop.is_set():
            start = time.monotonic()
            self.run_once()
            elapsed = time.monotonic() - start
            if elapsed > interval:
                logger.warning("tick overran sampling period", extra={"elapsed_sec": round(elapsed, 3)})
            self._stop.wait(timeout=max(0.0, interval - elapsed))

    def run_once(self) -> Optional[MetricsBundle]:
        self.monitor.mark_updating()
        try:
            sample = self.source.fetch()
        except Exception as exc:  # noqa: BLE001
            logger.error("error fetching balance", extra={"error": str(exc)})
            self.monitor.record_error(str(exc) or type(exc).__name__)
            return None

        try:
            self.monitor.ingest(sample)
            metrics = self.monitor.query(now=sample.timestamp, current_value=sample.value)
            if self.on_metrics is not None:
                self.on_metrics(metrics)
        except Exception as exc:  # noqa: BLE001
            logger.exception("error processing sample", extra={"timestamp": sample.timestamp})
            self.monitor.record_error(str(exc) or type(exc).__name__)
            return None
        self.monitor.record_success(metrics)
        return metrics
