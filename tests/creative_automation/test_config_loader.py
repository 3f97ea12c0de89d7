import pytest

from src.functions.creative_automation.core.config import MODE_AD_GROUP_NAME, MODE_KEYWORDS
from src.functions.creative_automation.core.config_loader import (
    load_config,
    normalize_mode,
    parse_translations,
)
from src.shared.batch.errors import ConfigurationError

CONFIG_ENV = [
    "ADS_DEVELOPER_TOKEN", "ADS_CUSTOMER_ID", "ADS_CAMPAIGN_IDS", "ADS_LOGIN_CUSTOMER_ID",
    "ADS_CLIENT_ID", "ADS_CLIENT_SECRET", "ADS_REFRESH_TOKEN",
    "GCP_PROJECT", "GCP_REGION", "VERTEX_API_ENDPOINT", "GEMINI_MODEL", "IMAGE_GENERATION_MODEL",
    "GCS_BUCKET", "GENERATED_DIR", "VALIDATED_DIR", "UPLOADED_DIR",
    "GENERATION_MODE", "IMAGES_PER_AD_GROUP", "AD_GROUP_NAME_REGEX", "IMAGE_PROMPT",
    "IMAGE_PROMPT_SUFFIX", "TEXT_PROMPT_CONTEXT", "TEXT_PROMPT", "TEXT_PROMPT_SUFFIX",
    "PROMPT_TRANSLATIONS", "VALIDATION_POLICIES", "VALIDATION_POLICIES_TEXT",
    "EXECUTION_THRESHOLD_SECONDS", "EXECUTION_CEILING_SECONDS", "CONTINUATION_DELAY_SECONDS",
    "RETRY_ATTEMPTS", "PROPERTY_BACKEND", "PROPERTY_FILE", "PROPERTY_TABLE", "TRIGGER_BACKEND",
    "TASKS_PROJECT", "TASKS_LOCATION", "TASKS_QUEUE", "FUNCTION_URL", "TASKS_SERVICE_ACCOUNT",
    "PROMOTION_ADS_DEVELOPER_TOKEN", "PROMOTION_ADS_CUSTOMER_ID", "PROMOTION_ADS_LOGIN_CUSTOMER_ID",
    "PROMOTION_ADS_CAMPAIGN_IDS", "PROMOTION_GCS_BUCKET", "PROMOTION_UPLOADED_DIR",
]


@pytest.fixture
def env(monkeypatch):
    for name in CONFIG_ENV:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("ADS_DEVELOPER_TOKEN", "dev-token")
    monkeypatch.setenv("ADS_CUSTOMER_ID", "123-456-7890")
    monkeypatch.setenv("ADS_CAMPAIGN_IDS", "111, 222")
    monkeypatch.setenv("GCS_BUCKET", "creatives")
    return monkeypatch


def test_defaults_from_minimal_environment(env):
    config = load_config()

    assert config.ads.customer_id == "1234567890"
    assert config.ads.campaign_ids == ["111", "222"]
    assert config.vertex is None
    assert config.storage.upload_source_dir == "generated"
    assert config.generation.mode == MODE_AD_GROUP_NAME
    assert config.generation.image_prompt == "${name}"
    assert config.generation.image_prompt_suffix == "HDR, taken by professional"
    assert config.orchestration.threshold_seconds == 300
    assert config.orchestration.ceiling_seconds == 360
    assert config.orchestration.continuation_delay_seconds == 120
    assert config.orchestration.retry_attempts == 3
    config.validate()


def test_environment_values_are_read(env):
    env.setenv("GCP_PROJECT", "demo")
    env.setenv("GENERATION_MODE", "keywords")
    env.setenv("IMAGES_PER_AD_GROUP", "8")
    env.setenv("PROMPT_TRANSLATIONS", '{"Schuhe": "shoes"}')
    env.setenv("VALIDATION_POLICIES_TEXT", "No text\nNo weapons\n")
    env.setenv("VALIDATED_DIR", "validated")
    env.setenv("PROPERTY_BACKEND", "FILE")
    env.setenv("PROPERTY_FILE", "/tmp/props.json")

    config = load_config()

    assert config.vertex.project_id == "demo"
    assert config.vertex.region == "us-central1"
    assert config.generation.mode == MODE_KEYWORDS
    assert config.generation.images_per_ad_group == 8
    assert config.generation.prompt_translations == [("Schuhe", "shoes")]
    assert config.generation.policies == ["No text", "No weapons"]
    assert config.storage.upload_source_dir == "validated"
    assert config.orchestration.property_backend == "file"
    assert config.orchestration.property_path == "/tmp/props.json"
    assert config.orchestration.tasks_project == "demo"


def test_payload_sections_override_environment(env):
    env.setenv("IMAGES_PER_AD_GROUP", "8")

    config = load_config(
        {
            "ads": {"campaign_ids": ["333"]},
            "generation": {"images_per_ad_group": 2, "policies": "One\nTwo"},
            "orchestration": {"threshold_seconds": "200"},
            "storage": {"validated_dir": ""},
        }
    )

    assert config.ads.campaign_ids == ["333"]
    assert config.generation.images_per_ad_group == 2
    assert config.generation.policies == ["One", "Two"]
    assert config.orchestration.threshold_seconds == 200.0



def test_promotion_profile_layers_over_regular_sections(env):
    env.setenv("PROMOTION_ADS_CUSTOMER_ID", "555")
    env.setenv("PROMOTION_ADS_CAMPAIGN_IDS", "901,902")
    env.setenv("PROMOTION_UPLOADED_DIR", "promo_uploaded")

    config = load_config(
        {
            "storage": {"uploaded_dir": "uploaded_now"},
            "promotion": {"ads": {"campaign_ids": ["903"]}},
        },
        promotion=True,
    )

    assert config.ads.customer_id == "555"
    assert config.ads.developer_token == "dev-token"
    assert config.ads.campaign_ids == ["903"]
    assert config.storage.bucket == "creatives"
    assert config.storage.uploaded_dir == "promo_uploaded"


def test_promotion_profile_is_ignored_for_regular_jobs(env):
    env.setenv("PROMOTION_ADS_CUSTOMER_ID", "555")

    config = load_config({"promotion": {"ads": {"campaign_ids": ["903"]}}})

    assert config.ads.customer_id == "1234567890"
    assert config.ads.campaign_ids == ["111", "222"]


def test_in_memory_backends_warn(env, caplog):
    config = load_config()

    with caplog.at_level("WARNING"):
        config.validate()

    messages = [record.getMessage() for record in caplog.records if record.levelname == "WARNING"]
    assert any("in-memory job properties" in message for message in messages)
    assert any("in-memory continuation triggers" in message for message in messages)


def test_missing_required_variable(env):
    env.delenv("GCS_BUCKET")

    with pytest.raises(ConfigurationError, match="GCS_BUCKET"):
        load_config()


def test_section_must_be_object(env):
    with pytest.raises(ConfigurationError):
        load_config({"generation": ["not", "an", "object"]})


def test_invalid_numbers_are_rejected(env):
    env.setenv("IMAGES_PER_AD_GROUP", "lots")
    with pytest.raises(ConfigurationError):
        load_config()

    env.delenv("IMAGES_PER_AD_GROUP")
    with pytest.raises(ConfigurationError):
        load_config({"orchestration": {"ceiling_seconds": "soon"}})

    with pytest.raises(ConfigurationError, match="images_per_ad_group"):
        load_config({"generation": {"images_per_ad_group": "many"}})


def test_threshold_must_stay_below_ceiling(env):
    config = load_config({"orchestration": {"threshold_seconds": 400}})

    with pytest.raises(ConfigurationError):
        config.validate()


def test_cloud_tasks_backend_requires_queue(env):
    env.setenv("TRIGGER_BACKEND", "cloud_tasks")
    config = load_config()

    with pytest.raises(ConfigurationError, match="tasks_queue"):
        config.validate()


def test_vertex_is_required_when_asked_for(env):
    config = load_config()

    with pytest.raises(ConfigurationError):
        config.validate(needs_vertex=True)


def test_non_numeric_campaign_id(env):
    env.setenv("ADS_CAMPAIGN_IDS", "111,abc")

    with pytest.raises(ConfigurationError):
        load_config().validate()


def test_partial_refresh_token_credentials(env):
    env.setenv("ADS_CLIENT_ID", "client")

    with pytest.raises(ConfigurationError):
        load_config().validate()


@pytest.mark.parametrize(
    "value,expected",
    [
        ("AdGroup Name", MODE_AD_GROUP_NAME),
        ("ad_group_name", MODE_AD_GROUP_NAME),
        ("AdGroup Keywords", MODE_KEYWORDS),
        ("KEYWORDS", MODE_KEYWORDS),
    ],
)
def test_normalize_mode(value, expected):
    assert normalize_mode(value) == expected


def test_unknown_mode():
    with pytest.raises(ConfigurationError):
        normalize_mode("random")


def test_translations_accept_pairs_and_objects():
    assert parse_translations([["a", "b"], ("c", "d")]) == [("a", "b"), ("c", "d")]
    assert parse_translations({"a": "b"}) == [("a", "b")]
    assert parse_translations(None) == []
    with pytest.raises(ConfigurationError):
        parse_translations([["a"]])
