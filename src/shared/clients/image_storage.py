"""Google Cloud Storage layout for generated creatives.

Images live at ``{account_id}/{ad_group_id}/{directory}/{file_name}`` where
the directory encodes the image status (generated, validated, uploaded...).
JSON metadata files share the folders and are excluded from image listings.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredImage:
    name: str
    path: str


def image_folder(account_id: str, ad_group_id: str, directory: str) -> str:
    return f"{account_id}/{ad_group_id}/{directory}"


class ImageStorage:
    """Blob store keyed by path, backed by a GCS bucket."""

    def __init__(self, bucket_name: str, client=None):
        if not bucket_name:
            raise ValueError("bucket_name is required")
        self.bucket_name = bucket_name
        self._client = client

    @property
    def client(self):
        """Lazy-load the storage client."""
        if self._client is None:
            from google.cloud import storage

            self._client = storage.Client()
        return self._client

    @property
    def bucket(self):
        return self.client.bucket(self.bucket_name)

    def gcs_uri(self, path: str) -> str:
        return f"gs://{self.bucket_name}/{path}"

    def list_images(self, account_id: str, ad_group_id: str, directories: Sequence[str]) -> List[StoredImage]:
        images: List[StoredImage] = []
        for directory in directories:
            if not directory:
                continue
            prefix = image_folder(account_id, ad_group_id, directory) + "/"
            for blob in self.client.list_blobs(self.bucket_name, prefix=prefix, delimiter="/"):
                file_name = blob.name[len(prefix):]
                if not file_name or file_name.lower().endswith(".json"):
                    continue
                images.append(StoredImage(name=file_name, path=blob.name))
        return images

    def count_images(self, account_id: str, ad_group_id: str, directories: Sequence[str]) -> int:
        return len(self.list_images(account_id, ad_group_id, directories))

    def upload_image(
        self,
        account_id: str,
        ad_group_id: str,
        directory: str,
        file_name: str,
        content: bytes,
        content_type: str = "image/png",
    ) -> str:
        path = f"{image_folder(account_id, ad_group_id, directory)}/{file_name}"
        self.bucket.blob(path).upload_from_string(content, content_type=content_type)
        logger.debug("Uploaded %s (%d bytes)", path, len(content))
        return path

    def download(self, path: str) -> bytes:
        return self.bucket.blob(path).download_as_bytes()

    def upload_json(self, path: str, payload: Any) -> str:
        self.bucket.blob(path).upload_from_string(
            json.dumps(payload, ensure_ascii=False, indent=2),
            content_type="application/json",
        )
        return path

    def move_image(
        self,
        account_id: str,
        ad_group_id: str,
        file_name: str,
        from_directory: str,
        to_directory: str,
    ) -> Optional[str]:
        """Move an image between status folders.

        Returns the new path, or None when the source no longer exists.
        """
        bucket = self.bucket
        source = bucket.blob(f"{image_folder(account_id, ad_group_id, from_directory)}/{file_name}")
        destination = f"{image_folder(account_id, ad_group_id, to_directory)}/{file_name}"
        if not source.exists():
            logger.info("Nothing to move for %s; source already gone", source.name)
            return None
        bucket.copy_blob(source, bucket, destination)
        source.delete()
        return destination
