from __future__ import annotations

import bisect
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

from .series import Sample, SeriesStore


class Provenance(str, Enum):
    ACTUAL = "actual"
    ESTIMATED = "estimated"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class FlowRate:
    value: Optional[float]
    provenance: Provenance
    actual: Optional[float] = None
    estimate: Optional[float] = None

    @property
    def label(self) -> str:
        return {
            Provenance.ACTUAL: "Actual",
            Provenance.ESTIMATED: "Estimated",
            Provenance.UNAVAILABLE: "Unavailable",
        }[self.provenance]


def scan_at_or_before(samples: Sequence[Sample], cutoff: int) -> Optional[Sample]:
    """Linear reference lookup: latest sample with ``timestamp <= cutoff``."""
    best: Optional[Sample] = None
    for s in samples:
        if s.timestamp <= cutoff and (best is None or s.timestamp >= best.timestamp):
            best = s
    return best


def bisect_at_or_before(samples: Sequence[Sample], cutoff: int) -> Optional[Sample]:
    """Same result as `scan_at_or_before` for a non-decreasing series.

    With duplicate timestamps the last inserted of the tied samples is
    returned; which tied sample callers get is not part of the contract.
    """
    idx = bisect.bisect_right(samples, cutoff, key=lambda s: s.timestamp)
    return samples[idx - 1] if idx else None


class WindowQueryEngine:
    """Point-in-time and delta lookups over a `SeriesStore`.

    Lookups are read-only and work on one snapshot of the store, so a prune
    running on another thread cannot be observed halfway through.
    """

    def __init__(
        self,
        store: SeriesStore,
        rate_lag_ms: int,
        estimate_lag_ms: int,
        divisor: float = 1_000_000.0,
    ) -> None:
        self.store = store
        self.rate_lag_ms = rate_lag_ms
        self.estimate_lag_ms = estimate_lag_ms
        self.divisor = divisor

    def value_at_or_before(self, now: int, lag: int) -> Optional[Sample]:
        return bisect_at_or_before(self.store.all(), now - lag)

    def delta(self, now: int, current_value: float, lag: int) -> Optional[float]:
        """Signed change since ``now - lag``; ``None`` when no sample is that old."""
        sample = self.value_at_or_before(now, lag)
        if sample is None:
            return None
        return current_value - sample.value

    def hourly_flow_rate(self, now: int, current_value: float) -> FlowRate:
        """Flow per hour in ``divisor`` units.

        The exact figure uses the `rate_lag_ms` delta. When history is too
        short for it, the `estimate_lag_ms` delta is extrapolated linearly to
        an hour and tagged as an estimate.
        """
        change = self.delta(now, current_value, self.rate_lag_ms)
        actual = None if change is None else change / self.divisor

        short_change = self.delta(now, current_value, self.estimate_lag_ms)
        estimate = None
        if short_change is not None:
            scale = self.rate_lag_ms / self.estimate_lag_ms
            estimate = short_change * scale / self.divisor

        if actual is not None:
            return FlowRate(actual, Provenance.ACTUAL, actual, estimate)
        if estimate is not None:
            return FlowRate(estimate, Provenance.ESTIMATED, actual, estimate)
        return FlowRate(None, Provenance.UNAVAILABLE)
