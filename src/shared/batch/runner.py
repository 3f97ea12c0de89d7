"""Resumable job runner for work that outlives a single invocation.

A job iterates an ordered sequence of work units. Before each unit the
runner consults the time guard; when time is short it checkpoints the unit
it is about to start, schedules a continuation and returns. A later
invocation resumes at the checkpointed unit. A full pass clears the
checkpoint and any pending continuation.

Usage:
    runner = JobRunner(
        job,
        checkpoints=CheckpointStore(store),
        scheduler=ContinuationScheduler(store, backend),
        time_guard=ExecutionTimeGuard(store),
        lease=JobLease(store),
    )
    result = runner.triggered_run()
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .checkpoint import CheckpointStore, resolve_resume_index
from .continuation import ContinuationScheduler
from .lease import JobLease
from .progress import ProgressTracker
from .time_guard import ExecutionTimeGuard

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkUnit:
    """One item a job iterates over, e.g. an ad group."""

    unit_id: str
    name: str = ""
    payload: Dict[str, Any] = field(default_factory=dict, compare=False)

    def label(self) -> str:
        return f"{self.name} ({self.unit_id})" if self.name else self.unit_id


class BatchJob(ABC):
    """A job the runner can drive.

    ``name`` namespaces the job's checkpoint, trigger and window properties.
    """

    name: str = ""

    @abstractmethod
    def list_units(self) -> Sequence[WorkUnit]:
        """Return the full ordered unit sequence for this pass."""

    @abstractmethod
    def process_unit(self, unit: WorkUnit) -> bool:
        """Apply all side effects for ``unit``.

        Returns False when the unit was skipped without doing any work.
        Must be safe to repeat for the same unit.
        """


class RunStatus(str, Enum):
    COMPLETED = "completed"
    PAUSED = "paused"


@dataclass
class RunResult:
    """Outcome of one invocation."""

    job_name: str
    status: RunStatus
    total_units: int
    start_index: int
    processed: int
    skipped: int = 0
    next_unit_id: Optional[str] = None
    trigger_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job": self.job_name,
            "run_status": self.status.value,
            "total_units": self.total_units,
            "start_index": self.start_index,
            "processed": self.processed,
            "skipped": self.skipped,
            "next_unit_id": self.next_unit_id,
            "trigger_id": self.trigger_id,
        }


class JobRunner:
    """Drives a BatchJob through Idle -> Running -> Paused | Completed."""

    def __init__(
        self,
        job: BatchJob,
        *,
        checkpoints: CheckpointStore,
        scheduler: ContinuationScheduler,
        time_guard: ExecutionTimeGuard,
        lease: Optional[JobLease] = None,
        continuation_payload: Optional[Mapping[str, Any]] = None,
        log_interval: int = 10,
    ):
        if not job.name:
            raise ValueError("job.name must be set")
        self.job = job
        self.checkpoints = checkpoints
        self.scheduler = scheduler
        self.time_guard = time_guard
        self.lease = lease
        self.continuation_payload = continuation_payload
        self.log_interval = log_interval

    @property
    def job_name(self) -> str:
        return self.job.name

    def manually_run(self) -> RunResult:
        """Start a fresh pass, discarding any stale checkpoint."""
        return self._invoke(fresh=True)

    def triggered_run(self) -> RunResult:
        """Resume from the stored checkpoint, if any."""
        return self._invoke(fresh=False)

    def _invoke(self, *, fresh: bool) -> RunResult:
        holder = self.lease.acquire(self.job_name) if self.lease else None
        try:
            if fresh and self.checkpoints.clear(self.job_name):
                logger.info("Cleared last processed unit of %s for a fresh manual run.", self.job_name)
            # A continuation that just fired counts as pending too.
            self.scheduler.cancel_pending(self.job_name)
            self.time_guard.start(self.job_name)
            return self.run()
        finally:
            if holder is not None:
                self.lease.release(self.job_name, holder)

    def run(self) -> RunResult:
        """Run the unit loop. Entry points stamp the window before calling this."""
        units: List[WorkUnit] = list(self.job.list_units())
        checkpoint_id = self.checkpoints.get(self.job_name)
        start_index = resolve_resume_index(
            self.job_name, [unit.unit_id for unit in units], checkpoint_id
        )
        if checkpoint_id and start_index > 0:
            logger.info(
                "Resuming %s at unit %s (%d/%d)",
                self.job_name,
                checkpoint_id,
                start_index + 1,
                len(units),
            )
        else:
            logger.info("Starting %s over %d units", self.job_name, len(units))

        tracker = ProgressTracker(
            total_units=len(units),
            job_name=self.job_name,
            start_index=start_index,
            log_interval=self.log_interval,
        )

        for index in range(start_index, len(units)):
            unit = units[index]
            if self.time_guard.should_terminate(self.job_name):
                return self._pause(unit, len(units), start_index, tracker)

            logger.info(
                "Processing %s [%d/%d] for %s...",
                unit.label(),
                index + 1,
                len(units),
                self.job_name,
            )
            try:
                did_work = self.job.process_unit(unit)
            except Exception as exc:
                logger.error(
                    "%s failed on %s: %s. Checkpoint left at %s.",
                    self.job_name,
                    unit.label(),
                    exc,
                    self.checkpoints.get(self.job_name) or "<none>",
                )
                raise
            self.checkpoints.set(self.job_name, unit.unit_id)
            tracker.increment(skipped=did_work is False)
            if tracker.should_log():
                tracker.log_progress()

        self.checkpoints.clear(self.job_name)
        self.scheduler.cancel_pending(self.job_name)
        tracker.log_summary()
        logger.info("Finished %s.", self.job_name)
        return RunResult(
            job_name=self.job_name,
            status=RunStatus.COMPLETED,
            total_units=len(units),
            start_index=start_index,
            processed=tracker.processed_count,
            skipped=tracker.skipped_count,
        )

    def _pause(
        self,
        unit: WorkUnit,
        total_units: int,
        start_index: int,
        tracker: ProgressTracker,
    ) -> RunResult:
        elapsed = self.time_guard.elapsed(self.job_name) or 0.0
        self.checkpoints.set(self.job_name, unit.unit_id)
        trigger = self.scheduler.schedule_continuation(self.job_name, self.continuation_payload)
        logger.info(
            "%s is reaching the execution time limit (%.0fs elapsed, threshold %.0fs); "
            "a continuation will rerun from %s in %.0fs. Stopping now.",
            self.job_name,
            elapsed,
            self.time_guard.threshold_seconds,
            unit.label(),
            trigger.fire_after,
        )
        tracker.log_summary()
        return RunResult(
            job_name=self.job_name,
            status=RunStatus.PAUSED,
            total_units=total_units,
            start_index=start_index,
            processed=tracker.processed_count,
            skipped=tracker.skipped_count,
            next_unit_id=unit.unit_id,
            trigger_id=trigger.trigger_id,
        )
