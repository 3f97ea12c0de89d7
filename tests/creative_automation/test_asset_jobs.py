from src.functions.creative_automation.core.config import StorageConfig
from src.functions.creative_automation.core.jobs import ImageExtensionJob, ImagePauseJob, ImageUploadJob

from tests.creative_automation.fakes import CUSTOMER_ID, FakeAdsClient, FakeStorage, ad_group

STORAGE = StorageConfig(bucket="creatives")


def _unit(job):
    return job.list_units()[0]


def test_upload_sends_new_images_and_moves_everything():
    ads = FakeAdsClient([ad_group(5, "Shoes")])
    ads.add_library_asset("5|Shoes|1")
    storage = FakeStorage()
    storage.put(CUSTOMER_ID, "5", "generated", "5|Shoes|1", b"one")
    storage.put(CUSTOMER_ID, "5", "generated", "5|Shoes|2", b"two")
    job = ImageUploadJob(ads, storage, STORAGE, ["11"])

    assert job.process_unit(_unit(job)) is True

    assert ads.uploads == [("5|Shoes|2", b"two")]
    assert storage.names(CUSTOMER_ID, "5", "generated") == []
    assert storage.names(CUSTOMER_ID, "5", "uploaded") == ["5|Shoes|1", "5|Shoes|2"]


def test_upload_reads_from_validated_folder_when_configured():
    ads = FakeAdsClient([ad_group(5, "Shoes")])
    storage = FakeStorage()
    storage.put(CUSTOMER_ID, "5", "generated", "5|Shoes|1")
    storage.put(CUSTOMER_ID, "5", "validated", "5|Shoes|2")
    job = ImageUploadJob(ads, storage, StorageConfig(bucket="creatives", validated_dir="validated"), ["11"])

    job.process_unit(_unit(job))

    assert [name for name, _ in ads.uploads] == ["5|Shoes|2"]
    assert storage.names(CUSTOMER_ID, "5", "generated") == ["5|Shoes|1"]


def test_upload_without_images_is_skipped():
    ads = FakeAdsClient([ad_group(5, "Shoes")])
    job = ImageUploadJob(ads, FakeStorage(), STORAGE, ["11"])

    assert job.process_unit(_unit(job)) is False
    assert ads.uploads == []


def test_repeated_upload_pass_changes_nothing():
    ads = FakeAdsClient([ad_group(5, "Shoes")])
    storage = FakeStorage()
    storage.put(CUSTOMER_ID, "5", "generated", "5|Shoes|1")
    job = ImageUploadJob(ads, storage, STORAGE, ["11"])
    unit = _unit(job)

    job.process_unit(unit)
    assert job.process_unit(unit) is False
    assert len(ads.uploads) == 1


def _extension_setup(foreign_links):
    ads = FakeAdsClient([ad_group(5, "Shoes")])
    storage = FakeStorage()
    for name in ("5|Shoes|A", "5|Shoes|B", "5|Shoes|C"):
        storage.put(CUSTOMER_ID, "5", "uploaded", name)
        ads.add_library_asset(name)
    ads.add_link("5", "5|Shoes|B")
    ads.add_link("5", "5|Shoes|D")
    for index in range(foreign_links):
        ads.add_link("5", f"brand-logo-{index}")
    return ImageExtensionJob(ads, storage, STORAGE, ["11"]), ads


def _linked_names(ads):
    return sorted(link.asset_name for link in ads.get_managed_ad_group_assets("5"))


def test_extension_links_uploaded_and_unlinks_removed_assets():
    job, ads = _extension_setup(foreign_links=0)

    assert job.process_unit(_unit(job)) is True

    assert _linked_names(ads) == ["5|Shoes|A", "5|Shoes|B", "5|Shoes|C"]
    assert ads.calls[-1][0] == "link_assets"
    assert ads.calls[-1][1] == f"customers/{CUSTOMER_ID}/adGroups/5"


def test_extension_counts_removals_towards_capacity():
    job, ads = _extension_setup(foreign_links=17)

    job.process_unit(_unit(job))

    assert _linked_names(ads) == ["5|Shoes|A", "5|Shoes|B", "5|Shoes|C"]
    assert len(ads.get_all_ad_group_assets("5")) == 20


def test_extension_truncates_at_asset_limit():
    job, ads = _extension_setup(foreign_links=18)

    job.process_unit(_unit(job))

    assert _linked_names(ads) == ["5|Shoes|A", "5|Shoes|B"]
    assert len(ads.get_all_ad_group_assets("5")) == 20


def test_extension_picks_up_freed_capacity_on_next_pass():
    job, ads = _extension_setup(foreign_links=18)
    unit = _unit(job)
    job.process_unit(unit)

    foreign = [link for link in ads.get_all_ad_group_assets("5") if link.asset_name == "brand-logo-0"]
    ads.unlink_assets([foreign[0].resource_name])
    job.process_unit(unit)

    assert _linked_names(ads) == ["5|Shoes|A", "5|Shoes|B", "5|Shoes|C"]
    assert job.process_unit(unit) is False


def test_extension_ignores_uploads_missing_from_library():
    ads = FakeAdsClient([ad_group(5, "Shoes")])
    storage = FakeStorage()
    storage.put(CUSTOMER_ID, "5", "uploaded", "5|Shoes|A")
    job = ImageExtensionJob(ads, storage, STORAGE, ["11"])

    assert job.process_unit(_unit(job)) is False
    assert ads.links == {}


def test_pause_only_touches_enabled_uploaded_assets():
    ads = FakeAdsClient([ad_group(5, "Shoes")])
    storage = FakeStorage()
    storage.put(CUSTOMER_ID, "5", "uploaded", "5|Shoes|A")
    storage.put(CUSTOMER_ID, "5", "uploaded", "5|Shoes|B")
    enabled = ads.add_link("5", "5|Shoes|A")
    ads.add_link("5", "5|Shoes|B", status="PAUSED")
    ads.add_link("5", "5|Shoes|C")
    job = ImagePauseJob(ads, storage, STORAGE, ["11"])
    unit = _unit(job)

    assert job.process_unit(unit) is True
    assert ads.calls[-1] == ("pause_assets", [enabled.resource_name])
    statuses = {link.asset_name: link.status for link in ads.get_all_ad_group_assets("5")}
    assert statuses == {"5|Shoes|A": "PAUSED", "5|Shoes|B": "PAUSED", "5|Shoes|C": "ENABLED"}

    assert job.process_unit(unit) is False


def test_pause_without_uploaded_images_is_skipped():
    ads = FakeAdsClient([ad_group(5, "Shoes")])
    ads.add_link("5", "5|Shoes|A")
    job = ImagePauseJob(ads, FakeStorage(), STORAGE, ["11"])

    assert job.process_unit(_unit(job)) is False
