"""Resumable batch orchestration for time-limited invocations.

Provides the pieces a job needs to survive a hard per-invocation timeout:
- PropertyStore: Durable key-value space (memory, JSON file, Supabase)
- CheckpointStore: Last processed unit per job
- ExecutionTimeGuard: "Should I stop now?" against a safety threshold
- ContinuationScheduler: At most one pending re-invocation per job
- JobLease: Guards against overlapping invocations of one job
- JobRunner: Resume, pause and complete state machine
- call_with_retry: Bounded retries for transient errors
- reconcile: Create/delete delta between two identifier sets

Usage:
    from src.shared.batch import JobRunner, CheckpointStore, ExecutionTimeGuard
    from src.shared.batch import ContinuationScheduler, InMemoryTriggerBackend
    from src.shared.batch import call_with_retry, reconcile
"""

from .checkpoint import CheckpointStore, JobCheckpoint, find_resume_index, resolve_resume_index
from .continuation import (
    CloudTasksTriggerBackend,
    ContinuationScheduler,
    ContinuationTrigger,
    InMemoryTriggerBackend,
    TriggerBackend,
    create_trigger_backend,
)
from .errors import (
    AuthenticationError,
    BatchError,
    ConfigurationError,
    FatalError,
    JobAlreadyRunningError,
    PlatformQueryError,
    QuotaExceededError,
    ResumptionIntegrityError,
    RetryExhaustedError,
    TransientError,
)
from .lease import JobLease
from .progress import ProgressTracker
from .properties import (
    InMemoryPropertyStore,
    JsonFilePropertyStore,
    PropertyStore,
    SupabasePropertyStore,
    create_property_store,
)
from .reconcile import ReconcileDelta, apply_delta, reconcile
from .retry import call_with_retry
from .runner import BatchJob, JobRunner, RunResult, RunStatus, WorkUnit
from .time_guard import ExecutionTimeGuard, ExecutionWindow

__all__ = [
    "AuthenticationError",
    "BatchError",
    "BatchJob",
    "CheckpointStore",
    "CloudTasksTriggerBackend",
    "ConfigurationError",
    "ContinuationScheduler",
    "ContinuationTrigger",
    "ExecutionTimeGuard",
    "ExecutionWindow",
    "FatalError",
    "InMemoryPropertyStore",
    "InMemoryTriggerBackend",
    "JobAlreadyRunningError",
    "JobCheckpoint",
    "JobLease",
    "JobRunner",
    "JsonFilePropertyStore",
    "PlatformQueryError",
    "ProgressTracker",
    "PropertyStore",
    "QuotaExceededError",
    "ReconcileDelta",
    "ResumptionIntegrityError",
    "RetryExhaustedError",
    "RunResult",
    "RunStatus",
    "SupabasePropertyStore",
    "TransientError",
    "TriggerBackend",
    "WorkUnit",
    "apply_delta",
    "call_with_retry",
    "create_property_store",
    "create_trigger_backend",
    "find_resume_index",
    "reconcile",
    "resolve_resume_index",
]
