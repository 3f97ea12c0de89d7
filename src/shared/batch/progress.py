"""Progress tracking for a single pass of a batch job."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Optional

import psutil

logger = logging.getLogger(__name__)


class ProgressTracker:
    """Tracks processed units and logs rate and memory.

    Example:
        tracker = ProgressTracker(total_units=len(units), job_name="ImageGeneration")

        for unit in units:
            job.process_unit(unit)
            tracker.increment()
            if tracker.should_log():
                tracker.log_progress()

        tracker.log_summary()
    """

    def __init__(
        self,
        total_units: int,
        job_name: str,
        *,
        start_index: int = 0,
        log_interval: int = 10,
        log_time_interval: float = 30.0,
        clock: Callable[[], float] = time.time,
    ):
        self.total_units = total_units
        self.job_name = job_name
        self.start_index = start_index
        self.log_interval = log_interval
        self.log_time_interval = log_time_interval
        self.clock = clock

        self.start_time = clock()
        self.processed_count = 0
        self.skipped_count = 0
        self.last_log_time = self.start_time
        self.last_log_count = 0

    @property
    def position(self) -> int:
        """Absolute index of the next unit in the full sequence."""
        return self.start_index + self.processed_count

    def increment(self, skipped: bool = False) -> None:
        self.processed_count += 1
        if skipped:
            self.skipped_count += 1

    def should_log(self) -> bool:
        count_trigger = self.processed_count - self.last_log_count >= self.log_interval
        time_trigger = self.clock() - self.last_log_time >= self.log_time_interval
        return count_trigger or time_trigger

    def log_progress(self, extra_stats: Optional[Dict[str, Any]] = None) -> None:
        elapsed = self.clock() - self.start_time
        rate = self.processed_count / elapsed * 60 if elapsed > 0 else 0
        percent = self.position / self.total_units * 100 if self.total_units > 0 else 100.0
        memory = psutil.virtual_memory()

        parts = [
            f"Progress: {self.position:,}/{self.total_units:,} ({percent:.1f}%)",
            f"Rate: {rate:.1f} units/min",
            f"Memory: {memory.percent:.0f}%",
        ]
        for key, value in (extra_stats or {}).items():
            parts.append(f"{key}: {value:.1f}" if isinstance(value, float) else f"{key}: {value}")
        parts.extend([f"Skipped: {self.skipped_count}", f"Job: {self.job_name}"])

        logger.info(" | ".join(parts))
        self.last_log_time = self.clock()
        self.last_log_count = self.processed_count

    def log_summary(self) -> None:
        elapsed = self.clock() - self.start_time
        logger.info(
            "Pass summary for %s: processed %d units (resumed at %d, %d skipped) in %.1fs",
            self.job_name,
            self.processed_count,
            self.start_index,
            self.skipped_count,
            elapsed,
        )

    def get_stats(self) -> Dict[str, Any]:
        elapsed = self.clock() - self.start_time
        return {
            "job": self.job_name,
            "total": self.total_units,
            "start_index": self.start_index,
            "processed": self.processed_count,
            "skipped": self.skipped_count,
            "elapsed_seconds": elapsed,
        }
