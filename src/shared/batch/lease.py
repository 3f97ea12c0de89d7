"""Per-job run lease preventing overlapping invocations.

The lease expires at the platform ceiling, so an invocation killed before
it could release the lease blocks later runs for at most one ceiling.
The property space has no compare-and-set; the lease narrows the overlap
window to the read/write gap of a single acquisition.
"""

from __future__ import annotations

import json
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Callable, Optional

from .errors import JobAlreadyRunningError
from .properties import PropertyStore
from .time_guard import DEFAULT_CEILING_SECONDS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LeaseRecord:
    holder: str
    expires_at: float


class JobLease:
    KEY_SUFFIX = "Lease"

    def __init__(
        self,
        store: PropertyStore,
        *,
        ttl_seconds: float = DEFAULT_CEILING_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.ttl_seconds = ttl_seconds
        self.clock = clock

    @classmethod
    def key_for(cls, job_name: str) -> str:
        return f"{job_name}{cls.KEY_SUFFIX}"

    def current(self, job_name: str) -> Optional[LeaseRecord]:
        raw = self.store.get(self.key_for(job_name))
        if not raw:
            return None
        try:
            data = json.loads(raw)
            return LeaseRecord(holder=str(data["holder"]), expires_at=float(data["expires_at"]))
        except (ValueError, KeyError, TypeError):
            logger.warning("Discarding unreadable lease for %s: %r", job_name, raw)
            return None

    def acquire(self, job_name: str) -> str:
        """Take the lease and return the holder token.

        Raises:
            JobAlreadyRunningError: If another holder has a live lease.
        """
        now = self.clock()
        existing = self.current(job_name)
        if existing is not None and existing.expires_at > now:
            raise JobAlreadyRunningError(job_name, existing.holder, existing.expires_at)
        if existing is not None:
            logger.warning("Taking over expired lease of %s held by %s", job_name, existing.holder)

        holder = uuid.uuid4().hex
        self.store.set(
            self.key_for(job_name),
            json.dumps({"holder": holder, "expires_at": now + self.ttl_seconds}),
        )
        return holder

    def release(self, job_name: str, holder: str) -> None:
        existing = self.current(job_name)
        if existing is not None and existing.holder != holder:
            logger.warning("Lease of %s is now held by %s; leaving it in place", job_name, existing.holder)
            return
        self.store.delete(self.key_for(job_name))
