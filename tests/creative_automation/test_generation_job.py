import pytest

from src.functions.creative_automation.core.config import (
    MODE_KEYWORDS,
    GenerationConfig,
    StorageConfig,
)
from src.functions.creative_automation.core.jobs import ImageGenerationJob
from src.shared.batch.errors import AuthenticationError
from src.shared.batch.runner import WorkUnit
from src.shared.clients.vertex_ai import GenerationApiError, MalformedOutputError

from tests.creative_automation.fakes import CUSTOMER_ID, FakeAdsClient, FakeStorage, FakeVertex, ad_group

NOW = 1700000000.0


def _job(vertex=None, ads=None, storage=None, **generation):
    generation.setdefault("images_per_ad_group", 6)
    ads = ads or FakeAdsClient([ad_group(5, "Shoes")])
    storage = storage or FakeStorage()
    vertex = vertex or FakeVertex()
    job = ImageGenerationJob(
        ads,
        storage,
        vertex,
        StorageConfig(bucket="creatives"),
        GenerationConfig(**generation),
        ["11"],
        clock=lambda: NOW,
    )
    return job, ads, storage, vertex


def _unit(job):
    return job.list_units()[0]


def test_tops_up_missing_images_in_batches_of_four():
    storage = FakeStorage()
    storage.put(CUSTOMER_ID, "5", "uploaded", "5|Shoes|1")
    job, _, storage, vertex = _job(storage=storage)

    assert job.process_unit(_unit(job)) is True

    prompt = "Shoes HDR, taken by professional"
    assert vertex.image_calls == [(prompt, 4), (prompt, 1)]
    assert storage.names(CUSTOMER_ID, "5", "generated") == [
        f"5|Shoes|{int(NOW * 1000) + offset}" for offset in range(5)
    ]


def test_ad_group_with_enough_images_is_skipped():
    storage = FakeStorage()
    for index in range(3):
        storage.put(CUSTOMER_ID, "5", "generated", f"5|Shoes|{index}")
    job, _, _, vertex = _job(storage=storage, images_per_ad_group=3)

    assert job.process_unit(_unit(job)) is False
    assert vertex.image_calls == []


def test_validated_images_count_towards_target():
    storage = FakeStorage()
    storage.put(CUSTOMER_ID, "5", "checked", "5|Shoes|1")
    job, ads, _, vertex = _job(storage=storage, images_per_ad_group=1)
    job.storage_config = StorageConfig(bucket="creatives", validated_dir="checked")

    assert job.process_unit(_unit(job)) is False


def test_name_regex_groups_fill_the_prompt_template():
    ads = FakeAdsClient([ad_group(7, "Acme - running shoes")])
    job, _, _, vertex = _job(
        ads=ads,
        images_per_ad_group=1,
        ad_group_name_regex=r"^(?<brand>\w+) - (?<product>.*)$",
        image_prompt="${product} by ${brand}",
        prompt_translations=[("running", "trail running")],
        image_prompt_suffix="",
    )

    job.process_unit(_unit(job))

    assert vertex.image_calls == [("trail running shoes by Acme", 1)]


def test_unmatched_name_uses_the_template_as_prompt():
    job, _, _, vertex = _job(
        images_per_ad_group=1,
        ad_group_name_regex=r"^Brand (?P<name>.*)$",
        image_prompt="A product photo",
        image_prompt_suffix="",
    )

    job.process_unit(_unit(job))

    assert vertex.image_calls == [("A product photo", 1)]


def test_keyword_mode_asks_text_model_for_prompt():
    ads = FakeAdsClient([ad_group(5, "Shoes")], keywords={"5": ["red shoes", "blue shoes"]})
    vertex = FakeVertex(text=lambda prompt, uri: "  A pair of red sneakers  ")
    job, _, storage, _ = _job(
        ads=ads,
        vertex=vertex,
        mode=MODE_KEYWORDS,
        images_per_ad_group=2,
        text_prompt="Write an image prompt about",
    )

    assert job.process_unit(_unit(job)) is True

    assert vertex.text_calls == [("Write an image prompt about red shoes,blue shoes", None)]
    assert vertex.image_calls == [("A pair of red sneakers HDR, taken by professional", 2)]
    assert len(storage.names(CUSTOMER_ID, "5", "generated")) == 2


def test_keyword_mode_without_keywords_skips_unit():
    job, _, _, vertex = _job(mode=MODE_KEYWORDS)

    assert job.process_unit(_unit(job)) is False
    assert vertex.text_calls == []


def test_prompt_generation_failures_move_on_to_next_unit():
    def broken(prompt, uri):
        raise MalformedOutputError("empty answer")

    ads = FakeAdsClient([ad_group(5, "Shoes")], keywords={"5": ["shoes"]})
    vertex = FakeVertex(text=broken)
    job, _, storage, _ = _job(ads=ads, vertex=vertex, mode=MODE_KEYWORDS)

    assert job.process_unit(_unit(job)) is True
    assert len(vertex.text_calls) == 3
    assert vertex.image_calls == []
    assert storage.files == {}


def test_blocked_generation_is_retried_then_abandoned():
    def blocked(prompt, count):
        raise GenerationApiError("content blocked")

    job, _, storage, vertex = _job(vertex=FakeVertex(images=blocked))

    job.process_unit(_unit(job))

    assert len(vertex.image_calls) == 3
    assert storage.files == {}


def test_fatal_model_error_propagates():
    def denied(prompt, count):
        raise AuthenticationError("token expired")

    job, _, _, vertex = _job(vertex=FakeVertex(images=denied))

    with pytest.raises(AuthenticationError):
        job.process_unit(_unit(job))
    assert len(vertex.image_calls) == 1


def test_empty_batches_use_up_the_retry_budget():
    job, _, storage, vertex = _job(vertex=FakeVertex(images=lambda prompt, count: []))

    assert job.process_unit(_unit(job)) is True
    assert len(vertex.image_calls) == 3
    assert storage.files == {}


def test_empty_batch_is_retried():
    answers = iter([[], [b"a", b"b"]])
    job, _, storage, vertex = _job(
        vertex=FakeVertex(images=lambda prompt, count: next(answers)),
        images_per_ad_group=2,
    )

    assert job.process_unit(_unit(job)) is True
    assert len(vertex.image_calls) == 2
    assert len(storage.names(CUSTOMER_ID, "5", "generated")) == 2


def test_rerunning_a_unit_only_generates_what_is_missing():
    job, _, storage, vertex = _job(images_per_ad_group=3)
    unit = WorkUnit("5", "Shoes", {"customer_id": CUSTOMER_ID})

    job.process_unit(unit)
    assert job.process_unit(unit) is False
    assert len(vertex.image_calls) == 1
    assert len(storage.names(CUSTOMER_ID, "5", "generated")) == 3
