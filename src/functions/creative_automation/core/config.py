"""Configuration models for the creative automation jobs."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from src.shared.batch.errors import ConfigurationError
from src.shared.batch.time_guard import DEFAULT_CEILING_SECONDS, DEFAULT_THRESHOLD_SECONDS

logger = logging.getLogger(__name__)

MODE_AD_GROUP_NAME = "AdGroup Name"
MODE_KEYWORDS = "AdGroup Keywords"
GENERATION_MODES = (MODE_AD_GROUP_NAME, MODE_KEYWORDS)

PROPERTY_BACKENDS = ("memory", "file", "supabase")
TRIGGER_BACKENDS = ("memory", "cloud_tasks")

# Ads allows at most this many image assets per ad group.
MAX_AD_GROUP_ASSETS = 20


@dataclass
class AdsConfig:
    """Google Ads account and credentials."""

    developer_token: str
    customer_id: str
    campaign_ids: List[str] = field(default_factory=list)
    login_customer_id: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    refresh_token: Optional[str] = None

    @property
    def uses_refresh_token(self) -> bool:
        return bool(self.client_id and self.client_secret and self.refresh_token)

    def validate(self) -> None:
        if not self.developer_token:
            raise ConfigurationError("ads.developer_token is required")
        if not self.customer_id:
            raise ConfigurationError("ads.customer_id is required")
        if not self.campaign_ids:
            raise ConfigurationError("ads.campaign_ids must list at least one campaign")
        for campaign_id in self.campaign_ids:
            if not str(campaign_id).isdigit():
                raise ConfigurationError(f"ads.campaign_ids contains a non-numeric id: {campaign_id!r}")
        partial = [self.client_id, self.client_secret, self.refresh_token]
        if any(partial) and not all(partial):
            raise ConfigurationError(
                "ads.client_id, ads.client_secret and ads.refresh_token must be provided together"
            )


@dataclass
class VertexConfig:
    """Vertex AI project and model selection."""

    project_id: str
    region: str = "us-central1"
    api_endpoint: str = "aiplatform.googleapis.com"
    text_model: str = "gemini-1.5-flash:generateContent"
    image_model: str = "imagegeneration:predict"

    def validate(self) -> None:
        if not self.project_id:
            raise ConfigurationError("vertex.project_id is required")


@dataclass
class StorageConfig:
    """Bucket and status folders used for the generated images."""

    bucket: str
    generated_dir: str = "generated"
    validated_dir: str = ""
    uploaded_dir: str = "uploaded"

    @property
    def upload_source_dir(self) -> str:
        return self.validated_dir or self.generated_dir

    def validate(self) -> None:
        if not self.bucket:
            raise ConfigurationError("storage.bucket is required")
        if not self.generated_dir or not self.uploaded_dir:
            raise ConfigurationError("storage.generated_dir and storage.uploaded_dir are required")
        for directory in (self.generated_dir, self.validated_dir, self.uploaded_dir):
            if "/" in directory:
                raise ConfigurationError(f"Storage directories must not contain '/': {directory!r}")


@dataclass
class GenerationConfig:
    """How image prompts are built and how many images each ad group gets."""

    mode: str = MODE_AD_GROUP_NAME
    images_per_ad_group: int = 0
    ad_group_name_regex: str = "^(?P<name>.*)$"
    image_prompt: str = "${name}"
    image_prompt_suffix: str = "HDR, taken by professional"
    text_prompt_context: str = ""
    text_prompt: str = ""
    text_prompt_suffix: str = ""
    prompt_translations: List[Tuple[str, str]] = field(default_factory=list)
    policies: List[str] = field(default_factory=list)

    def validate(self) -> None:
        if self.mode not in GENERATION_MODES:
            raise ConfigurationError(
                f"generation.mode must be one of {', '.join(GENERATION_MODES)}, got {self.mode!r}"
            )
        if self.images_per_ad_group < 0:
            raise ConfigurationError("generation.images_per_ad_group must not be negative")
        if self.mode == MODE_KEYWORDS and not self.text_prompt:
            logger.warning("Keyword mode without a text prompt; keywords are sent to the text model as-is.")


@dataclass
class OrchestrationConfig:
    """Time limits, retries and the backends that hold run state."""

    threshold_seconds: float = DEFAULT_THRESHOLD_SECONDS
    ceiling_seconds: float = DEFAULT_CEILING_SECONDS
    continuation_delay_seconds: float = 120.0
    retry_attempts: int = 3
    property_backend: str = "memory"
    property_path: Optional[str] = None
    property_table: Optional[str] = None
    trigger_backend: str = "memory"
    tasks_project: Optional[str] = None
    tasks_location: Optional[str] = None
    tasks_queue: Optional[str] = None
    function_url: Optional[str] = None
    tasks_service_account: Optional[str] = None

    def validate(self) -> None:
        if self.threshold_seconds <= 0:
            raise ConfigurationError("orchestration.threshold_seconds must be positive")
        if self.threshold_seconds >= self.ceiling_seconds:
            raise ConfigurationError(
                f"orchestration.threshold_seconds ({self.threshold_seconds}) must stay below "
                f"the platform ceiling ({self.ceiling_seconds})"
            )
        if self.continuation_delay_seconds < 0:
            raise ConfigurationError("orchestration.continuation_delay_seconds must not be negative")
        if self.retry_attempts < 1:
            raise ConfigurationError("orchestration.retry_attempts must be at least 1")
        if self.property_backend not in PROPERTY_BACKENDS:
            raise ConfigurationError(f"Unsupported property backend: {self.property_backend!r}")
        if self.trigger_backend not in TRIGGER_BACKENDS:
            raise ConfigurationError(f"Unsupported trigger backend: {self.trigger_backend!r}")
        if self.trigger_backend == "cloud_tasks":
            missing = [
                name
                for name, value in (
                    ("tasks_project", self.tasks_project),
                    ("tasks_location", self.tasks_location),
                    ("tasks_queue", self.tasks_queue),
                    ("function_url", self.function_url),
                )
                if not value
            ]
            if missing:
                raise ConfigurationError(
                    f"Cloud Tasks triggers need orchestration.{', orchestration.'.join(missing)}"
                )
        if self.property_backend == "memory":
            logger.warning("Using in-memory job properties; checkpoints will not survive a restart.")
        if self.trigger_backend == "memory":
            logger.warning(
                "Using in-memory continuation triggers; paused runs only resume inside this process."
            )


@dataclass
class CreativeAutomationConfig:
    """Everything a job needs, grouped by concern."""

    ads: AdsConfig
    storage: StorageConfig
    vertex: Optional[VertexConfig] = None
    generation: GenerationConfig = field(default_factory=GenerationConfig)
    orchestration: OrchestrationConfig = field(default_factory=OrchestrationConfig)

    def validate(self, *, needs_vertex: bool = False) -> None:
        self.ads.validate()
        self.storage.validate()
        self.generation.validate()
        self.orchestration.validate()
        if needs_vertex:
            if self.vertex is None:
                raise ConfigurationError("vertex configuration is required for this job")
            self.vertex.validate()
