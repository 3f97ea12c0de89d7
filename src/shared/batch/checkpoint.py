"""Checkpoint store recording the last work unit touched by each job."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from .errors import ResumptionIntegrityError
from .properties import PropertyStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JobCheckpoint:
    """Persisted resumption point of a job."""

    job_name: str
    last_processed_unit_id: Optional[str]

    @property
    def is_empty(self) -> bool:
        return not self.last_processed_unit_id


class CheckpointStore:
    """Reads and writes one checkpoint per job name.

    Example:
        checkpoints = CheckpointStore(store)

        for unit in units[start:]:
            process(unit)
            checkpoints.set(job.name, unit.unit_id)

        checkpoints.clear(job.name)
    """

    KEY_SUFFIX = "LastProcessedUnitId"

    def __init__(self, store: PropertyStore):
        self.store = store

    @classmethod
    def key_for(cls, job_name: str) -> str:
        return f"{job_name}{cls.KEY_SUFFIX}"

    def get(self, job_name: str) -> Optional[str]:
        """Return the checkpointed unit id, or None when the job has none."""
        value = self.store.get(self.key_for(job_name))
        return value or None

    def load(self, job_name: str) -> JobCheckpoint:
        return JobCheckpoint(job_name=job_name, last_processed_unit_id=self.get(job_name))

    def set(self, job_name: str, unit_id: str) -> None:
        self.store.set(self.key_for(job_name), str(unit_id))
        logger.debug("Checkpoint for %s set to unit %s", job_name, unit_id)

    def clear(self, job_name: str) -> bool:
        """Delete the checkpoint. Returns True when one existed."""
        existed = self.get(job_name) is not None
        self.store.delete(self.key_for(job_name))
        if existed:
            logger.debug("Checkpoint for %s cleared", job_name)
        return existed


def find_resume_index(job_name: str, unit_ids: Sequence[str], checkpoint_id: Optional[str]) -> int:
    """Locate the checkpointed unit in ``unit_ids``.

    Raises:
        ResumptionIntegrityError: If the checkpointed id is not present.
    """
    if not checkpoint_id:
        return 0
    try:
        return list(unit_ids).index(checkpoint_id)
    except ValueError:
        raise ResumptionIntegrityError(job_name, checkpoint_id) from None


def resolve_resume_index(job_name: str, unit_ids: Sequence[str], checkpoint_id: Optional[str]) -> int:
    """Return the index to resume from, falling back to 0.

    The unit at the checkpoint is processed again rather than skipped, since
    it may not have finished all of its side effects before the interruption.
    """
    try:
        return find_resume_index(job_name, unit_ids, checkpoint_id)
    except ResumptionIntegrityError as exc:
        logger.warning("%s; restarting from the first unit", exc)
        return 0
