"""Wire jobs to their clients, state stores and runner."""

from __future__ import annotations

import logging
import re
from functools import cached_property, lru_cache
from typing import Any, Dict, Mapping, Optional, Type

from src.shared.batch.checkpoint import CheckpointStore
from src.shared.batch.continuation import (
    ContinuationScheduler,
    InMemoryTriggerBackend,
    TriggerBackend,
    create_trigger_backend,
)
from src.shared.batch.lease import JobLease
from src.shared.batch.properties import InMemoryPropertyStore, PropertyStore, create_property_store
from src.shared.batch.runner import BatchJob, JobRunner
from src.shared.batch.time_guard import ExecutionTimeGuard
from src.shared.clients.auth import ADS_SCOPE, CLOUD_PLATFORM_SCOPE, GoogleTokenProvider
from src.shared.clients.google_ads import GoogleAdsClient
from src.shared.clients.image_storage import ImageStorage
from src.shared.clients.vertex_ai import VertexAiClient

from .config import CreativeAutomationConfig
from .jobs import (
    ExperimentsJob,
    ImageExtensionJob,
    ImageGenerationJob,
    ImagePauseJob,
    ImageUploadJob,
    ImageValidationJob,
    PromotionImagePauseJob,
)

logger = logging.getLogger(__name__)

JOBS: Dict[str, Type[BatchJob]] = {
    job.name: job
    for job in (
        ImageGenerationJob,
        ImageUploadJob,
        ImageExtensionJob,
        ImagePauseJob,
        PromotionImagePauseJob,
        ImageValidationJob,
        ExperimentsJob,
    )
}
VERTEX_JOBS = frozenset({ImageGenerationJob.name, ImageValidationJob.name})
PROMOTION_JOBS = frozenset({PromotionImagePauseJob.name})


def resolve_job_name(value: str) -> str:
    """Map ``ImageGeneration``, ``image_generation`` or ``generation`` to the job name.

    The word "image" may be left out anywhere, so ``promotion_pause`` names
    ``PromotionImagePause``.
    """
    key = re.sub(r"[^a-z]", "", str(value or "").lower())
    for name in JOBS:
        lowered = name.lower()
        if key in (lowered, lowered.replace("image", "")):
            return name
    raise ValueError(f"Unknown job {value!r}. Available jobs: {', '.join(JOBS)}")


@lru_cache(maxsize=None)
def process_property_store() -> InMemoryPropertyStore:
    """In-memory properties shared by every request served by this process."""
    return InMemoryPropertyStore()


@lru_cache(maxsize=None)
def process_trigger_backend() -> InMemoryTriggerBackend:
    return InMemoryTriggerBackend()


class JobServices:
    """Clients and state stores for one configuration, built on first use."""

    def __init__(
        self,
        config: CreativeAutomationConfig,
        *,
        ads: Optional[GoogleAdsClient] = None,
        vertex: Optional[VertexAiClient] = None,
        storage: Optional[ImageStorage] = None,
        store: Optional[PropertyStore] = None,
        trigger_backend: Optional[TriggerBackend] = None,
    ):
        self.config = config
        overrides = {
            "ads": ads,
            "vertex": vertex,
            "storage": storage,
            "store": store,
            "trigger_backend": trigger_backend,
        }
        # Injected instances take the place of the lazily built ones.
        for name, value in overrides.items():
            if value is not None:
                self.__dict__[name] = value

    @cached_property
    def ads(self) -> GoogleAdsClient:
        ads_config = self.config.ads
        if ads_config.uses_refresh_token:
            token_provider = GoogleTokenProvider.from_refresh_token(
                client_id=ads_config.client_id,
                client_secret=ads_config.client_secret,
                refresh_token=ads_config.refresh_token,
            )
        else:
            token_provider = GoogleTokenProvider([ADS_SCOPE])
        return GoogleAdsClient(
            developer_token=ads_config.developer_token,
            customer_id=ads_config.customer_id,
            login_customer_id=ads_config.login_customer_id,
            token_provider=token_provider,
        )

    @cached_property
    def vertex(self) -> VertexAiClient:
        vertex_config = self.config.vertex
        if vertex_config is None:
            raise ValueError("Vertex AI is not configured (set GCP_PROJECT)")
        return VertexAiClient(
            project_id=vertex_config.project_id,
            region=vertex_config.region,
            api_endpoint=vertex_config.api_endpoint,
            text_model=vertex_config.text_model,
            image_model=vertex_config.image_model,
            token_provider=GoogleTokenProvider([CLOUD_PLATFORM_SCOPE]),
        )

    @cached_property
    def storage(self) -> ImageStorage:
        return ImageStorage(self.config.storage.bucket)

    @cached_property
    def store(self) -> PropertyStore:
        orchestration = self.config.orchestration
        if orchestration.property_backend == "memory":
            return process_property_store()
        return create_property_store(
            orchestration.property_backend,
            path=orchestration.property_path,
            table=orchestration.property_table,
        )

    @cached_property
    def trigger_backend(self) -> TriggerBackend:
        orchestration = self.config.orchestration
        if orchestration.trigger_backend == "memory":
            return process_trigger_backend()
        return create_trigger_backend(
            orchestration.trigger_backend,
            project=orchestration.tasks_project,
            location=orchestration.tasks_location,
            queue=orchestration.tasks_queue,
            target_url=orchestration.function_url,
            service_account_email=orchestration.tasks_service_account,
        )


def build_job(job_name: str, config: CreativeAutomationConfig, services: JobServices) -> BatchJob:
    job_name = resolve_job_name(job_name)
    config.validate(needs_vertex=job_name in VERTEX_JOBS)
    campaign_ids = config.ads.campaign_ids
    retry_attempts = config.orchestration.retry_attempts

    if job_name == ImageGenerationJob.name:
        return ImageGenerationJob(
            services.ads,
            services.storage,
            services.vertex,
            config.storage,
            config.generation,
            campaign_ids,
            retry_attempts=retry_attempts,
        )
    if job_name == ExperimentsJob.name:
        return ExperimentsJob(services.ads, campaign_ids)
    if job_name == ImageValidationJob.name:
        return ImageValidationJob(
            services.ads,
            services.storage,
            services.vertex,
            config.storage,
            config.generation,
            campaign_ids,
            retry_attempts=retry_attempts,
        )
    return JOBS[job_name](services.ads, services.storage, config.storage, campaign_ids)


def build_runner(
    job_name: str,
    config: CreativeAutomationConfig,
    services: Optional[JobServices] = None,
    *,
    continuation_payload: Optional[Mapping[str, Any]] = None,
) -> JobRunner:
    """Runner for ``job_name`` whose state lives in the configured backends.

    ``continuation_payload`` is the request body a continuation replays;
    it defaults to a bare triggered run of the job.
    """
    services = services or JobServices(config)
    job = build_job(job_name, config, services)
    orchestration = config.orchestration
    store = services.store
    return JobRunner(
        job,
        checkpoints=CheckpointStore(store),
        scheduler=ContinuationScheduler(
            store,
            services.trigger_backend,
            delay_seconds=orchestration.continuation_delay_seconds,
        ),
        time_guard=ExecutionTimeGuard(store, threshold_seconds=orchestration.threshold_seconds),
        lease=JobLease(store, ttl_seconds=orchestration.ceiling_seconds),
        continuation_payload=continuation_payload or {"job": job.name, "mode": "triggered"},
    )
