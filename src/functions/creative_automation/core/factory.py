"""Factories for constructing job run requests."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping

from .config import CreativeAutomationConfig
from .config_loader import load_config
from .registry import PROMOTION_JOBS, resolve_job_name

RUN_MODES = ("manual", "triggered")

# Never written into a continuation trigger; the resumed run reads them from env.
CREDENTIAL_KEYS = frozenset({"developer_token", "client_id", "client_secret", "refresh_token"})


class InvalidRequestError(ValueError):
    """The request body does not describe a runnable job."""


@dataclass
class JobRunRequest:
    """Which job to run and how."""

    job_name: str
    mode: str
    config: CreativeAutomationConfig
    overrides: Dict[str, Any] = field(default_factory=dict)

    @property
    def fresh(self) -> bool:
        return self.mode == "manual"

    def validate(self) -> None:
        if self.mode not in RUN_MODES:
            raise InvalidRequestError(f"mode must be one of {', '.join(RUN_MODES)}, got {self.mode!r}")

    def continuation_payload(self) -> Dict[str, Any]:
        """Body that resumes this run with the same configuration sections.

        Credentials are left out.
        """
        payload: Dict[str, Any] = {"job": self.job_name, "mode": "triggered"}
        payload.update(without_credentials(self.overrides))
        return payload


def without_credentials(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {
            key: without_credentials(item)
            for key, item in value.items()
            if key not in CREDENTIAL_KEYS
        }
    if isinstance(value, list):
        return [without_credentials(item) for item in value]
    return value


def request_from_payload(payload: Mapping[str, Any]) -> JobRunRequest:
    """Build a JobRunRequest from an API-style payload.

    Example payload::

        {"job": "ImageGeneration", "mode": "manual",
         "generation": {"images_per_ad_group": 8}}

    Sections (``ads``, ``vertex``, ``storage``, ``generation``,
    ``orchestration`` and, for the promotion pause job, ``promotion``)
    override the environment configuration.
    """
    if not isinstance(payload, Mapping):
        raise InvalidRequestError("Request body must be a JSON object")
    job = payload.get("job")
    if not job:
        raise InvalidRequestError("job is required")
    try:
        job_name = resolve_job_name(job)
    except ValueError as exc:
        raise InvalidRequestError(str(exc)) from None

    overrides: Dict[str, Any] = {
        key: value for key, value in payload.items() if key not in ("job", "mode")
    }
    request_model = JobRunRequest(
        job_name=job_name,
        mode=str(payload.get("mode") or "manual").lower(),
        config=load_config(overrides, promotion=job_name in PROMOTION_JOBS),
        overrides=overrides,
    )
    request_model.validate()
    return request_model
