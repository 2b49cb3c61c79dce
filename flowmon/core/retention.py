from __future__ import annotations

import logging

from .series import SeriesStore


logger = logging.getLogger(__name__)


class RetentionManager:
    """Drop samples that fell out of the retention window."""

    def __init__(self, store: SeriesStore, window_ms: int) -> None:
        self.store = store
        self.window_ms = window_ms

    def prune(self, now: int) -> int:
        """Keep only samples with ``timestamp > now - window``.

        A sample exactly on the cutoff is dropped. Returns how many were removed.
        """
        cutoff = now - self.window_ms
        with self.store.lock:
            samples = self.store.all()
            kept = [s for s in samples if s.timestamp > cutoff]
            dropped = len(samples) - len(kept)
            if dropped:
                self.store.replace(kept)
        if dropped:
            logger.debug("pruned samples", extra={"dropped": dropped, "cutoff": cutoff})
        return dropped
