from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple


def utc_now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class Sample:
    timestamp: int  # ms since the Unix epoch
    value: float


class SeriesStore:
    """Thread-safe ordered history of samples.

    Only whole-sequence swaps are exposed besides `append`, so every reader
    sees either the old or the new sequence, never something in between.
    """

    def __init__(self, samples: Optional[Iterable[Sample]] = None) -> None:
        self._samples: List[Sample] = list(samples or [])
        self._lock = threading.RLock()

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    def append(self, sample: Sample) -> None:
        with self._lock:
            self._samples.append(sample)

    def all(self) -> Tuple[Sample, ...]:
        with self._lock:
            return tuple(self._samples)

    def replace(self, samples: Iterable[Sample]) -> None:
        fresh = list(samples)
        with self._lock:
            self._samples = fresh

    def oldest(self) -> Optional[Sample]:
        with self._lock:
            return self._samples[0] if self._samples else None

    def latest(self) -> Optional[Sample]:
        with self._lock:
            return self._samples[-1] if self._samples else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._samples)
