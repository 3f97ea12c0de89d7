"""Build creative automation configuration from the environment.

Every builder takes an optional ``overrides`` mapping (usually a section of
the HTTP payload) whose values win over the environment.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Mapping, Optional, Tuple

from src.shared.batch.errors import ConfigurationError
from src.shared.batch.time_guard import DEFAULT_CEILING_SECONDS, DEFAULT_THRESHOLD_SECONDS
from src.shared.utils.config_validator import (
    parse_json_env,
    parse_list_env,
    require_env,
    validate_choice_env,
    validate_float_env,
    validate_int_env,
)

from .config import (
    GENERATION_MODES,
    MODE_AD_GROUP_NAME,
    MODE_KEYWORDS,
    PROPERTY_BACKENDS,
    TRIGGER_BACKENDS,
    AdsConfig,
    CreativeAutomationConfig,
    GenerationConfig,
    OrchestrationConfig,
    StorageConfig,
    VertexConfig,
)

logger = logging.getLogger(__name__)

_MODE_ALIASES = {
    "adgroup name": MODE_AD_GROUP_NAME,
    "ad_group_name": MODE_AD_GROUP_NAME,
    "ad_group": MODE_AD_GROUP_NAME,
    "adgroup keywords": MODE_KEYWORDS,
    "ad_group_keywords": MODE_KEYWORDS,
    "keywords": MODE_KEYWORDS,
}


# Settings of the promotion profile, by section and config key.
PROMOTION_ENV = {
    "ads": {
        "developer_token": "PROMOTION_ADS_DEVELOPER_TOKEN",
        "customer_id": "PROMOTION_ADS_CUSTOMER_ID",
        "login_customer_id": "PROMOTION_ADS_LOGIN_CUSTOMER_ID",
        "campaign_ids": "PROMOTION_ADS_CAMPAIGN_IDS",
    },
    "storage": {
        "bucket": "PROMOTION_GCS_BUCKET",
        "uploaded_dir": "PROMOTION_UPLOADED_DIR",
    },
}


def normalize_mode(value: str) -> str:
    mode = _MODE_ALIASES.get(str(value).strip().lower())
    if mode is None:
        raise ConfigurationError(
            f"Unknown generation mode {value!r}; expected one of {', '.join(GENERATION_MODES)}"
        )
    return mode


def parse_translations(raw: Any) -> List[Tuple[str, str]]:
    """Accept ``{"from": "to"}`` or ``[["from", "to"], ...]``; order is kept."""
    if raw is None or raw == "":
        return []
    if isinstance(raw, Mapping):
        return [(str(source), str(target)) for source, target in raw.items()]
    if isinstance(raw, list):
        pairs = []
        for item in raw:
            if not isinstance(item, (list, tuple)) or len(item) != 2:
                raise ConfigurationError(f"Prompt translations must be [from, to] pairs, got {item!r}")
            pairs.append((str(item[0]), str(item[1])))
        return pairs
    raise ConfigurationError("Prompt translations must be an object or a list of pairs")


def _split_ids(value: Any) -> List[str]:
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return [str(part).strip() for part in value or [] if str(part).strip()]


def _integer(label: str, value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{label} must be an integer, got {value!r}") from None


def _pick(overrides: Mapping[str, Any], key: str, default: Any) -> Any:
    value = overrides.get(key)
    return default if value is None else value


def build_ads_config(overrides: Optional[Mapping[str, Any]] = None) -> AdsConfig:
    overrides = overrides or {}
    developer_token = overrides.get("developer_token") or require_env(
        "ADS_DEVELOPER_TOKEN", "Google Ads developer token"
    )
    customer_id = overrides.get("customer_id") or require_env("ADS_CUSTOMER_ID", "Google Ads account id")
    campaign_ids = overrides.get("campaign_ids")
    return AdsConfig(
        developer_token=developer_token,
        customer_id=str(customer_id).replace("-", ""),
        campaign_ids=_split_ids(campaign_ids) if campaign_ids is not None else parse_list_env("ADS_CAMPAIGN_IDS"),
        login_customer_id=overrides.get("login_customer_id") or os.getenv("ADS_LOGIN_CUSTOMER_ID") or None,
        client_id=overrides.get("client_id") or os.getenv("ADS_CLIENT_ID") or None,
        client_secret=overrides.get("client_secret") or os.getenv("ADS_CLIENT_SECRET") or None,
        refresh_token=overrides.get("refresh_token") or os.getenv("ADS_REFRESH_TOKEN") or None,
    )


def build_vertex_config(overrides: Optional[Mapping[str, Any]] = None) -> Optional[VertexConfig]:
    """Vertex settings, or None when no project is configured."""
    overrides = overrides or {}
    project_id = overrides.get("project_id") or os.getenv("GCP_PROJECT")
    if not project_id:
        return None
    defaults = VertexConfig(project_id=project_id)
    return VertexConfig(
        project_id=project_id,
        region=overrides.get("region") or os.getenv("GCP_REGION", defaults.region),
        api_endpoint=overrides.get("api_endpoint") or os.getenv("VERTEX_API_ENDPOINT", defaults.api_endpoint),
        text_model=overrides.get("text_model") or os.getenv("GEMINI_MODEL", defaults.text_model),
        image_model=overrides.get("image_model") or os.getenv("IMAGE_GENERATION_MODEL", defaults.image_model),
    )


def build_storage_config(overrides: Optional[Mapping[str, Any]] = None) -> StorageConfig:
    overrides = overrides or {}
    return StorageConfig(
        bucket=overrides.get("bucket") or require_env("GCS_BUCKET", "bucket holding generated images"),
        generated_dir=overrides.get("generated_dir") or os.getenv("GENERATED_DIR", "generated"),
        validated_dir=_pick(overrides, "validated_dir", os.getenv("VALIDATED_DIR", "")),
        uploaded_dir=overrides.get("uploaded_dir") or os.getenv("UPLOADED_DIR", "uploaded"),
    )


def build_generation_config(overrides: Optional[Mapping[str, Any]] = None) -> GenerationConfig:
    overrides = overrides or {}
    defaults = GenerationConfig()

    mode = overrides.get("mode") or os.getenv("GENERATION_MODE") or defaults.mode
    images = overrides.get("images_per_ad_group")
    if images is None:
        images = validate_int_env("IMAGES_PER_AD_GROUP", default=defaults.images_per_ad_group, min_value=0)

    translations = overrides.get("prompt_translations")
    if translations is None:
        translations = parse_json_env("PROMPT_TRANSLATIONS", default=[])

    policies = overrides.get("policies")
    if policies is None:
        policies = parse_json_env("VALIDATION_POLICIES", default=None)
        if policies is None:
            policies = parse_list_env("VALIDATION_POLICIES_TEXT", separator="\n")
    if isinstance(policies, str):
        policies = [line.strip() for line in policies.splitlines() if line.strip()]

    return GenerationConfig(
        mode=normalize_mode(mode),
        images_per_ad_group=_integer("generation.images_per_ad_group", images),
        ad_group_name_regex=overrides.get("ad_group_name_regex")
        or os.getenv("AD_GROUP_NAME_REGEX", defaults.ad_group_name_regex),
        image_prompt=overrides.get("image_prompt") or os.getenv("IMAGE_PROMPT", defaults.image_prompt),
        image_prompt_suffix=_pick(
            overrides, "image_prompt_suffix", os.getenv("IMAGE_PROMPT_SUFFIX", defaults.image_prompt_suffix)
        ),
        text_prompt_context=_pick(overrides, "text_prompt_context", os.getenv("TEXT_PROMPT_CONTEXT", "")),
        text_prompt=_pick(overrides, "text_prompt", os.getenv("TEXT_PROMPT", "")),
        text_prompt_suffix=_pick(overrides, "text_prompt_suffix", os.getenv("TEXT_PROMPT_SUFFIX", "")),
        prompt_translations=parse_translations(translations),
        policies=[str(policy) for policy in policies],
    )


def build_orchestration_config(overrides: Optional[Mapping[str, Any]] = None) -> OrchestrationConfig:
    overrides = overrides or {}

    def _number(key: str, env_name: str, default: float) -> float:
        value = overrides.get(key)
        if value is None:
            return validate_float_env(env_name, default=default, min_value=0)
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ConfigurationError(f"orchestration.{key} must be a number, got {value!r}") from None

    retry_attempts = overrides.get("retry_attempts")
    if retry_attempts is None:
        retry_attempts = validate_int_env("RETRY_ATTEMPTS", default=3, min_value=1, max_value=10)

    return OrchestrationConfig(
        threshold_seconds=_number("threshold_seconds", "EXECUTION_THRESHOLD_SECONDS", DEFAULT_THRESHOLD_SECONDS),
        ceiling_seconds=_number("ceiling_seconds", "EXECUTION_CEILING_SECONDS", DEFAULT_CEILING_SECONDS),
        continuation_delay_seconds=_number("continuation_delay_seconds", "CONTINUATION_DELAY_SECONDS", 120.0),
        retry_attempts=_integer("orchestration.retry_attempts", retry_attempts),
        property_backend=str(
            overrides.get("property_backend")
            or validate_choice_env("PROPERTY_BACKEND", list(PROPERTY_BACKENDS), default="memory")
        ).lower(),
        property_path=overrides.get("property_path") or os.getenv("PROPERTY_FILE") or None,
        property_table=overrides.get("property_table") or os.getenv("PROPERTY_TABLE") or None,
        trigger_backend=str(
            overrides.get("trigger_backend")
            or validate_choice_env("TRIGGER_BACKEND", list(TRIGGER_BACKENDS), default="memory")
        ).lower(),
        tasks_project=overrides.get("tasks_project") or os.getenv("TASKS_PROJECT") or os.getenv("GCP_PROJECT"),
        tasks_location=overrides.get("tasks_location") or os.getenv("TASKS_LOCATION") or None,
        tasks_queue=overrides.get("tasks_queue") or os.getenv("TASKS_QUEUE") or None,
        function_url=overrides.get("function_url") or os.getenv("FUNCTION_URL") or None,
        tasks_service_account=overrides.get("tasks_service_account") or os.getenv("TASKS_SERVICE_ACCOUNT") or None,
    )


def _section(overrides: Mapping[str, Any], name: str, label: str) -> Mapping[str, Any]:
    section = overrides.get(name)
    if section is None:
        return {}
    if not isinstance(section, Mapping):
        raise ConfigurationError(f"{label} configuration must be an object when provided")
    return section


def promotion_sections(
    sections: Mapping[str, Mapping[str, Any]],
    promotion: Mapping[str, Any],
) -> Dict[str, Mapping[str, Any]]:
    """Layer the promotion profile over the ``ads`` and ``storage`` sections.

    Precedence: ``promotion`` payload section, then ``PROMOTION_*`` env, then
    the regular section and its env.
    """
    layered = dict(sections)
    for name, env_names in PROMOTION_ENV.items():
        from_env = {key: os.environ[env] for key, env in env_names.items() if os.getenv(env)}
        layered[name] = {**sections[name], **from_env, **_section(promotion, name, f"promotion.{name}")}
    return layered


def load_config(
    overrides: Optional[Mapping[str, Any]] = None,
    *,
    promotion: bool = False,
) -> CreativeAutomationConfig:
    """Assemble the full configuration; sections of ``overrides`` win over env.

    With ``promotion`` the ads account and storage come from the promotion
    profile instead.
    """
    overrides = overrides or {}
    sections: Dict[str, Mapping[str, Any]] = {
        name: _section(overrides, name, name)
        for name in ("ads", "vertex", "storage", "generation", "orchestration")
    }
    if promotion:
        logger.info("Using the promotion configuration profile")
        sections = promotion_sections(sections, _section(overrides, "promotion", "promotion"))

    return CreativeAutomationConfig(
        ads=build_ads_config(sections["ads"]),
        vertex=build_vertex_config(sections["vertex"]),
        storage=build_storage_config(sections["storage"]),
        generation=build_generation_config(sections["generation"]),
        orchestration=build_orchestration_config(sections["orchestration"]),
    )
