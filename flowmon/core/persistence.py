from __future__ import annotations

import json
import logging
import math
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, List

from .series import Sample, SeriesStore


logger = logging.getLogger(__name__)


class SnapshotFormatError(ValueError):
    """Raised when a stored snapshot does not look like a list of samples."""


def samples_to_records(samples: List[Sample]) -> List[dict]:
    return [{"timestamp": s.timestamp, "value": s.value} for s in samples]


def records_to_samples(raw: Any) -> List[Sample]:
    """Parse a decoded snapshot document.

    Accepts ``{"timestamp", "value"}`` records as well as the older
    ``{"timestamp", "balance"}`` shape.
    """
    if not isinstance(raw, list):
        raise SnapshotFormatError(f"expected a list of records, got {type(raw).__name__}")
    samples: List[Sample] = []
    for i, rec in enumerate(raw):
        if not isinstance(rec, dict):
            raise SnapshotFormatError(f"record {i} is not an object")
        value = rec.get("value", rec.get("balance"))
        ts = rec.get("timestamp")
        if isinstance(ts, bool) or isinstance(value, bool):
            raise SnapshotFormatError(f"record {i} has boolean fields")
        if not isinstance(ts, (int, float)) or not isinstance(value, (int, float)):
            raise SnapshotFormatError(f"record {i} is missing numeric timestamp/value")
        if not math.isfinite(ts) or not math.isfinite(value):
            raise SnapshotFormatError(f"record {i} has a non-finite timestamp/value")
        samples.append(Sample(timestamp=int(ts), value=float(value)))
    return samples


class PersistenceManager:
    """Full-snapshot persistence of a `SeriesStore` to a JSON file.

    Flushes happen every `flush_every` ingests and once more on shutdown.
    Read and write failures are logged and never propagate.
    """

    def __init__(self, store: SeriesStore, path: Path, flush_every: int = 6) -> None:
        self.store = store
        self.path = Path(path)
        self.flush_every = flush_every
        self.counter = 0
        self.flush_count = 0
        self._shutdown_done = False
        self._lock = threading.Lock()

    def load(self) -> int:
        if not self.path.exists():
            logger.info("no history snapshot", extra={"path": str(self.path)})
            return 0
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                raw = json.load(fh)
            samples = records_to_samples(raw)
        except (OSError, ValueError, OverflowError) as exc:
            logger.error(
                "could not load history, starting empty",
                extra={"path": str(self.path), "error": str(exc)},
            )
            self.store.replace([])
            return 0
        if any(b.timestamp < a.timestamp for a, b in zip(samples, samples[1:])):
            logger.warning("history snapshot out of order, sorting by timestamp", extra={"path": str(self.path)})
            samples.sort(key=lambda s: s.timestamp)
        self.store.replace(samples)
        logger.info("loaded historical records", extra={"records": len(samples)})
        return len(samples)

    def on_ingest(self) -> bool:
        with self._lock:
            self.counter += 1
            if self.counter < self.flush_every:
                return False
            self.counter = 0
        self.flush()
        return True

    def flush(self) -> bool:
        samples = list(self.store.all())
        tmp_name = None
        self.flush_count += 1
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(samples_to_records(samples), fh, indent=2)
            os.replace(tmp_name, self.path)
        except (OSError, TypeError, ValueError) as exc:
            logger.error(
                "error saving history",
                extra={"path": str(self.path), "error": str(exc)},
            )
            if tmp_name and os.path.exists(tmp_name):
                try:
                    os.unlink(tmp_name)
                except OSError:
                    logger.warning("could not remove temp snapshot", extra={"tmp": tmp_name})
            return False
        logger.debug("history saved", extra={"records": len(samples)})
        return True

    def flush_on_shutdown(self) -> bool:
        with self._lock:
            if self._shutdown_done:
                return False
            self._shutdown_done = True
        return self.flush()
