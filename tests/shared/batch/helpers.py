"""Test doubles for the batch engine."""

from typing import Dict, Iterable, List, Optional, Set

from src.shared.batch import (
    BatchJob,
    CheckpointStore,
    ContinuationScheduler,
    ExecutionTimeGuard,
    InMemoryPropertyStore,
    InMemoryTriggerBackend,
    JobLease,
    JobRunner,
    WorkUnit,
    apply_delta,
    reconcile,
)


class FakeClock:
    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ReconcilingJob(BatchJob):
    """Syncs a per-unit remote set with a desired set, spending clock time per unit."""

    name = "SyncJob"

    def __init__(
        self,
        desired: Dict[str, Set[str]],
        remote: Dict[str, Set[str]],
        clock: FakeClock,
        step_seconds: float = 10.0,
        fail_on: Optional[str] = None,
        error: Optional[Exception] = None,
    ):
        self.desired = desired
        self.remote = remote
        self.clock = clock
        self.step_seconds = step_seconds
        self.fail_on = fail_on
        self.error = error or RuntimeError("boom")
        self.processed: List[str] = []

    def list_units(self) -> List[WorkUnit]:
        return [WorkUnit(unit_id=unit_id, name=f"group {unit_id}") for unit_id in self.desired]

    def process_unit(self, unit: WorkUnit) -> bool:
        if unit.unit_id == self.fail_on:
            raise self.error
        self.processed.append(unit.unit_id)
        self.clock.advance(self.step_seconds)
        current = self.remote.get(unit.unit_id, set())
        delta = reconcile(self.desired[unit.unit_id], current)
        if delta.is_empty:
            return False
        self.remote[unit.unit_id] = apply_delta(current, delta)
        return True


def build_runner(job: BatchJob, clock: FakeClock, *, threshold: float = 300.0, store=None, backend=None):
    store = store if store is not None else InMemoryPropertyStore()
    backend = backend if backend is not None else InMemoryTriggerBackend(clock=clock)
    runner = JobRunner(
        job,
        checkpoints=CheckpointStore(store),
        scheduler=ContinuationScheduler(store, backend, delay_seconds=120),
        time_guard=ExecutionTimeGuard(store, threshold_seconds=threshold, clock=clock),
        lease=JobLease(store, ttl_seconds=360, clock=clock),
    )
    return runner, store, backend


def unit_sets(unit_ids: Iterable[str]) -> Dict[str, Set[str]]:
    return {unit_id: {f"{unit_id}-a", f"{unit_id}-b"} for unit_id in unit_ids}
