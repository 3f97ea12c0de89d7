"""Execution time guard for invocations with a hard platform timeout."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from .properties import PropertyStore

logger = logging.getLogger(__name__)

# Cloud Functions kill the invocation at the ceiling; stop well before it so
# in-flight calls and the checkpoint write can finish.
DEFAULT_THRESHOLD_SECONDS = 300.0
DEFAULT_CEILING_SECONDS = 360.0


@dataclass(frozen=True)
class ExecutionWindow:
    """Start of the current invocation of a job."""

    job_name: str
    started_at: float


class ExecutionTimeGuard:
    """Answers "should I stop now?" for a job.

    The window is recorded in the property store so that the guard works the
    same whether it is consulted by the runner or by a job's own code.
    """

    KEY_SUFFIX = "StartTime"

    def __init__(
        self,
        store: PropertyStore,
        *,
        threshold_seconds: float = DEFAULT_THRESHOLD_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        if threshold_seconds <= 0:
            raise ValueError("threshold_seconds must be positive")
        self.store = store
        self.threshold_seconds = threshold_seconds
        self.clock = clock

    @classmethod
    def key_for(cls, job_name: str) -> str:
        return f"{job_name}{cls.KEY_SUFFIX}"

    def start(self, job_name: str) -> ExecutionWindow:
        """Record a fresh execution window for ``job_name``."""
        window = ExecutionWindow(job_name=job_name, started_at=self.clock())
        self.store.set(self.key_for(job_name), repr(window.started_at))
        return window

    def window(self, job_name: str) -> Optional[ExecutionWindow]:
        raw = self.store.get(self.key_for(job_name))
        if raw is None:
            return None
        try:
            return ExecutionWindow(job_name=job_name, started_at=float(raw))
        except ValueError:
            logger.warning("Ignoring unreadable start time %r for %s", raw, job_name)
            return None

    def elapsed(self, job_name: str) -> Optional[float]:
        window = self.window(job_name)
        if window is None:
            return None
        return self.clock() - window.started_at

    def should_terminate(self, job_name: str) -> bool:
        elapsed = self.elapsed(job_name)
        if elapsed is None:
            logger.warning("No execution window recorded for %s", job_name)
            return False
        return elapsed > self.threshold_seconds
