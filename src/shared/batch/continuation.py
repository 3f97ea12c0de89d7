"""Continuation scheduling for jobs that pause before the platform timeout.

A paused job asks the scheduler for a one-shot trigger that re-invokes the
job's triggered entry point after a fixed delay. The trigger id is recorded
in the property store so that the next invocation (or a manual run) can
delete it, keeping at most one live trigger per job.
"""

from __future__ import annotations

import itertools
import json
import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional

from .properties import PropertyStore

logger = logging.getLogger(__name__)

DEFAULT_CONTINUATION_DELAY_SECONDS = 120.0


@dataclass
class ContinuationTrigger:
    """A scheduled one-shot re-invocation of a job."""

    job_name: str
    trigger_id: str
    fire_after: float
    payload: Dict[str, Any] = field(default_factory=dict)
    fire_at: Optional[float] = None


class TriggerBackend(ABC):
    """Platform facility able to run a callback once in the future."""

    @abstractmethod
    def create_trigger(self, job_name: str, delay_seconds: float, payload: Mapping[str, Any]) -> str:
        """Create a trigger and return its unique id."""

    @abstractmethod
    def list_trigger_ids(self) -> List[str]:
        """Return the ids of all live triggers."""

    @abstractmethod
    def delete_trigger(self, trigger_id: str) -> None:
        """Delete a live trigger."""


class InMemoryTriggerBackend(TriggerBackend):
    """Trigger registry kept in process memory.

    Nothing fires by itself; local tooling and tests call ``due()`` to see
    which continuations would have been dispatched by now.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self.clock = clock
        self.triggers: Dict[str, ContinuationTrigger] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def create_trigger(self, job_name: str, delay_seconds: float, payload: Mapping[str, Any]) -> str:
        with self._lock:
            trigger_id = f"trigger-{next(self._ids)}"
            self.triggers[trigger_id] = ContinuationTrigger(
                job_name=job_name,
                trigger_id=trigger_id,
                fire_after=delay_seconds,
                payload=dict(payload),
                fire_at=self.clock() + delay_seconds,
            )
            return trigger_id

    def list_trigger_ids(self) -> List[str]:
        with self._lock:
            return list(self.triggers)

    def delete_trigger(self, trigger_id: str) -> None:
        with self._lock:
            self.triggers.pop(trigger_id, None)

    def pending_for(self, job_name: str) -> List[ContinuationTrigger]:
        with self._lock:
            return [t for t in self.triggers.values() if t.job_name == job_name]

    def due(self) -> List[ContinuationTrigger]:
        now = self.clock()
        with self._lock:
            return [
                t for t in self.triggers.values() if t.fire_at is not None and t.fire_at <= now
            ]


class CloudTasksTriggerBackend(TriggerBackend):
    """One-shot HTTP tasks on a Google Cloud Tasks queue.

    Each task POSTs the continuation payload to the Cloud Function URL at its
    schedule time. The task name is the trigger id.
    """

    def __init__(
        self,
        *,
        project: str,
        location: str,
        queue: str,
        target_url: str,
        service_account_email: Optional[str] = None,
        client=None,
    ):
        if not (project and location and queue and target_url):
            raise ValueError("project, location, queue and target_url are required for Cloud Tasks")
        self.project = project
        self.location = location
        self.queue = queue
        self.target_url = target_url
        self.service_account_email = service_account_email
        self._client = client

    @property
    def client(self):
        """Lazy-load the Cloud Tasks client."""
        if self._client is None:
            from google.cloud import tasks_v2

            self._client = tasks_v2.CloudTasksClient()
        return self._client

    @property
    def queue_path(self) -> str:
        return self.client.queue_path(self.project, self.location, self.queue)

    def create_trigger(self, job_name: str, delay_seconds: float, payload: Mapping[str, Any]) -> str:
        from google.cloud import tasks_v2
        from google.protobuf import timestamp_pb2

        schedule_time = timestamp_pb2.Timestamp()
        schedule_time.FromDatetime(datetime.now(timezone.utc) + timedelta(seconds=delay_seconds))

        http_request: Dict[str, Any] = {
            "http_method": tasks_v2.HttpMethod.POST,
            "url": self.target_url,
            "headers": {"Content-Type": "application/json"},
            "body": json.dumps(dict(payload)).encode("utf-8"),
        }
        if self.service_account_email:
            http_request["oidc_token"] = tasks_v2.OidcToken(
                service_account_email=self.service_account_email,
            )

        task = tasks_v2.Task(
            http_request=tasks_v2.HttpRequest(**http_request),
            schedule_time=schedule_time,
        )
        response = self.client.create_task(parent=self.queue_path, task=task)
        logger.debug("Created Cloud Task %s for %s", response.name, job_name)
        return response.name

    def list_trigger_ids(self) -> List[str]:
        return [task.name for task in self.client.list_tasks(parent=self.queue_path)]

    def delete_trigger(self, trigger_id: str) -> None:
        from google.api_core.exceptions import NotFound

        try:
            self.client.delete_task(name=trigger_id)
        except NotFound:
            logger.info("Cloud Task %s already gone", trigger_id)


class ContinuationScheduler:
    """Keeps at most one pending continuation trigger per job."""

    KEY_SUFFIX = "TriggerId"

    def __init__(
        self,
        store: PropertyStore,
        backend: TriggerBackend,
        *,
        delay_seconds: float = DEFAULT_CONTINUATION_DELAY_SECONDS,
    ):
        self.store = store
        self.backend = backend
        self.delay_seconds = delay_seconds

    @classmethod
    def key_for(cls, job_name: str) -> str:
        return f"{job_name}{cls.KEY_SUFFIX}"

    def pending_trigger_id(self, job_name: str) -> Optional[str]:
        return self.store.get(self.key_for(job_name)) or None

    def schedule_continuation(
        self,
        job_name: str,
        payload: Optional[Mapping[str, Any]] = None,
    ) -> ContinuationTrigger:
        """Create the trigger that will resume ``job_name`` and record its id."""
        self.cancel_pending(job_name)

        body = dict(payload or {"job": job_name, "mode": "triggered"})
        trigger_id = self.backend.create_trigger(job_name, self.delay_seconds, body)
        self.store.set(self.key_for(job_name), trigger_id)
        logger.info(
            "Created a continuation trigger for %s firing in %.0fs (%s)",
            job_name,
            self.delay_seconds,
            trigger_id,
        )
        return ContinuationTrigger(
            job_name=job_name,
            trigger_id=trigger_id,
            fire_after=self.delay_seconds,
            payload=body,
        )

    def cancel_pending(self, job_name: str) -> bool:
        """Delete the recorded trigger if it is still live.

        The recorded id is cleared whether or not the trigger was found.
        Returns True when a live trigger was deleted.
        """
        trigger_id = self.pending_trigger_id(job_name)
        if not trigger_id:
            return False

        deleted = False
        if trigger_id in self.backend.list_trigger_ids():
            self.backend.delete_trigger(trigger_id)
            deleted = True
            logger.info("Deleted pending continuation trigger %s for %s", trigger_id, job_name)
        else:
            logger.debug("Recorded trigger %s for %s is no longer live", trigger_id, job_name)

        self.store.delete(self.key_for(job_name))
        return deleted


def create_trigger_backend(backend: str, **options: Any) -> TriggerBackend:
    """Build a trigger backend for the configured backend name."""

    backend = (backend or "memory").lower()
    if backend == "memory":
        return InMemoryTriggerBackend()
    if backend == "cloud_tasks":
        return CloudTasksTriggerBackend(**options)
    raise ValueError(f"Unsupported trigger backend: {backend}")
