from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)


def format_remaining(seconds: Optional[float]) -> str:
    """Render a remaining-time estimate, e.g. 'about 1 minute 5 seconds remaining'."""
    if seconds is None or seconds <= 0:
        return ""
    total_seconds = round(seconds)
    minutes, secs = divmod(total_seconds, 60)

    parts = []
    if minutes > 0:
        parts.append(f"{minutes} minute{'s' if minutes > 1 else ''}")
    if secs > 0:
        parts.append(f"{secs} second{'s' if secs > 1 else ''}")
    if not parts:
        return "finishing up..."
    return f"about {' '.join(parts)} remaining"


class ProgressTracker:
    """
    Counts units of work (chunk submissions) and estimates time remaining.

    The total is an estimate: it is set from page counts before extraction and
    refined with `add_units` once row counts are known. Every chunk completes
    exactly once, whether it succeeded or failed.
    """

    def __init__(
        self,
        on_update: Optional[Callable[["ProgressTracker"], None]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.on_update = on_update
        self._clock = clock
        self._lock = threading.Lock()
        self._total = 0
        self._completed = 0
        self._started_at: Optional[float] = None

    @property
    def total(self) -> int:
        return self._total

    @property
    def completed(self) -> int:
        return self._completed

    def reset(self, total: int = 0) -> None:
        with self._lock:
            self._total = total
            self._completed = 0
            self._started_at = self._clock()
        logger.debug("Progress reset with %d expected units", total)

    def add_units(self, count: int) -> None:
        with self._lock:
            self._total += count
            total = self._total
        logger.debug("Progress total refined to %d units", total)

    def complete_unit(self) -> None:
        with self._lock:
            self._completed += 1
        if self.on_update is not None:
            self.on_update(self)

    def elapsed(self) -> float:
        if self._started_at is None:
            return 0.0
        return self._clock() - self._started_at

    def estimate_remaining(self) -> Optional[float]:
        """Seconds remaining, from the average time per completed unit."""
        with self._lock:
            total, completed = self._total, self._completed
        if self._started_at is None or total == 0 or completed == 0:
            return None
        per_unit = self.elapsed() / completed
        return per_unit * max(total - completed, 0)

    def describe(self) -> str:
        return format_remaining(self.estimate_remaining())
