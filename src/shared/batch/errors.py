"""Error taxonomy shared by the batch engine and the external clients.

Callers branch on the exception class, never on message text:

- TransientError: retried a bounded number of times by ``call_with_retry``.
- FatalError: aborts the current invocation without advancing the checkpoint.
- ResumptionIntegrityError: a checkpoint that no longer matches the unit
  sequence; the runner recovers from it by restarting at index 0.
"""

from __future__ import annotations

from typing import Any, Optional


class BatchError(Exception):
    """Base class for all batch orchestration errors."""


class TransientError(BatchError):
    """A failure that is expected to succeed when the call is repeated."""


class RetryExhaustedError(TransientError):
    """Raised when a transient failure persisted for every allowed attempt."""

    def __init__(self, description: str, attempts: int, last_error: Optional[BaseException]):
        self.description = description
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"{description} failed after {attempts} attempts: {last_error}"
        )


class FatalError(BatchError):
    """A failure that must stop the current pass immediately."""


class PlatformQueryError(FatalError):
    """The ads platform answered a query with an error payload."""

    def __init__(self, message: str, payload: Any = None):
        self.payload = payload
        super().__init__(message)


class AuthenticationError(FatalError):
    """Credentials were rejected by a remote service."""


class QuotaExceededError(FatalError):
    """A remote service refused the call because a quota is exhausted."""


class ConfigurationError(FatalError):
    """Required configuration is missing or invalid."""


class ResumptionIntegrityError(BatchError):
    """A stored checkpoint does not match the current unit sequence."""

    def __init__(self, job_name: str, unit_id: str):
        self.job_name = job_name
        self.unit_id = unit_id
        super().__init__(
            f"Checkpoint {unit_id!r} for job {job_name} is not in the current unit sequence"
        )


class JobAlreadyRunningError(BatchError):
    """Another invocation of the same job holds a live lease."""

    def __init__(self, job_name: str, holder: str, expires_at: float):
        self.job_name = job_name
        self.holder = holder
        self.expires_at = expires_at
        super().__init__(
            f"Job {job_name} is already running (lease held by {holder})"
        )


def is_transient(error: BaseException) -> bool:
    """Default classifier used by the retry wrapper."""
    return isinstance(error, TransientError) and not isinstance(error, RetryExhaustedError)
