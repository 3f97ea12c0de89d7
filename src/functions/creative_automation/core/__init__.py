"""Core building blocks for the creative automation jobs."""

from .config import (
    AdsConfig,
    CreativeAutomationConfig,
    GenerationConfig,
    OrchestrationConfig,
    StorageConfig,
    VertexConfig,
)
from .config_loader import load_config
from .factory import JobRunRequest, request_from_payload
from .registry import JOBS, JobServices, build_runner, resolve_job_name

__all__ = [
    "AdsConfig",
    "CreativeAutomationConfig",
    "GenerationConfig",
    "JOBS",
    "JobRunRequest",
    "JobServices",
    "OrchestrationConfig",
    "StorageConfig",
    "VertexConfig",
    "build_runner",
    "load_config",
    "request_from_payload",
    "resolve_job_name",
]
