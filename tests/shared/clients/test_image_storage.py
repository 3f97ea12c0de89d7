from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from src.shared.clients.image_storage import ImageStorage, StoredImage, image_folder


def _storage():
    client = MagicMock()
    return ImageStorage("creatives", client=client), client


def test_list_images_skips_json_and_empty_directories():
    storage, client = _storage()
    client.list_blobs.return_value = [
        SimpleNamespace(name="acc/5/generated/"),
        SimpleNamespace(name="acc/5/generated/5|Shoes|1"),
        SimpleNamespace(name="acc/5/generated/policyViolations.json"),
        SimpleNamespace(name="acc/5/generated/5|Shoes|2"),
    ]

    images = storage.list_images("acc", "5", ["generated", ""])

    assert images == [
        StoredImage(name="5|Shoes|1", path="acc/5/generated/5|Shoes|1"),
        StoredImage(name="5|Shoes|2", path="acc/5/generated/5|Shoes|2"),
    ]
    client.list_blobs.assert_called_once_with("creatives", prefix="acc/5/generated/", delimiter="/")


def test_count_images_sums_directories():
    storage, client = _storage()
    client.list_blobs.side_effect = [
        [SimpleNamespace(name="acc/5/generated/a")],
        [SimpleNamespace(name="acc/5/uploaded/b"), SimpleNamespace(name="acc/5/uploaded/c")],
    ]

    assert storage.count_images("acc", "5", ["generated", "uploaded"]) == 3


def test_upload_image_writes_into_status_folder():
    storage, client = _storage()
    blob = client.bucket.return_value.blob.return_value

    path = storage.upload_image("acc", "5", "generated", "5|Shoes|1", b"png")

    assert path == "acc/5/generated/5|Shoes|1"
    client.bucket.return_value.blob.assert_called_with("acc/5/generated/5|Shoes|1")
    blob.upload_from_string.assert_called_once_with(b"png", content_type="image/png")


def test_move_image_copies_then_deletes():
    storage, client = _storage()
    bucket = client.bucket.return_value
    source = bucket.blob.return_value
    source.exists.return_value = True

    destination = storage.move_image("acc", "5", "5|Shoes|1", "generated", "uploaded")

    assert destination == "acc/5/uploaded/5|Shoes|1"
    bucket.copy_blob.assert_called_once_with(source, bucket, "acc/5/uploaded/5|Shoes|1")
    source.delete.assert_called_once_with()


def test_move_missing_image_is_noop():
    storage, client = _storage()
    source = client.bucket.return_value.blob.return_value
    source.exists.return_value = False

    assert storage.move_image("acc", "5", "gone", "generated", "uploaded") is None
    client.bucket.return_value.copy_blob.assert_not_called()
    source.delete.assert_not_called()


def test_upload_json_serializes_payload():
    storage, client = _storage()
    blob = client.bucket.return_value.blob.return_value

    storage.upload_json("acc/5/generated/policyViolations.json", [{"image": "x", "violations": []}])

    content = blob.upload_from_string.call_args.args[0]
    assert '"image": "x"' in content
    assert blob.upload_from_string.call_args.kwargs["content_type"] == "application/json"


def test_paths_and_uris():
    storage, _ = _storage()

    assert image_folder("acc", "5", "uploaded") == "acc/5/uploaded"
    assert storage.gcs_uri("acc/5/x") == "gs://creatives/acc/5/x"
    with pytest.raises(ValueError):
        ImageStorage("")
