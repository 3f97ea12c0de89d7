"""Upload generated images to the ads asset library."""

from __future__ import annotations

import logging

from src.shared.batch.runner import WorkUnit

from .base import AdGroupJob

logger = logging.getLogger(__name__)


class ImageUploadJob(AdGroupJob):
    """Uploads validated (or generated) images and moves them to the uploaded folder.

    Asset names already in the library are not uploaded again, so a unit
    interrupted between the upload and the move is safe to repeat.
    """

    name = "ImageUpload"

    def process_unit(self, unit: WorkUnit) -> bool:
        account_id = self.account_id(unit)
        source_dir = self.storage_config.upload_source_dir
        images = self.storage.list_images(account_id, unit.unit_id, [source_dir])
        if not images:
            logger.info("No images to upload.")
            return False

        existing = {asset.name for asset in self.ads.get_image_assets(unit.unit_id)}
        pending = [image for image in images if image.name not in existing]
        if len(pending) < len(images):
            logger.info(
                "%d images of %s are already in the asset library",
                len(images) - len(pending),
                unit.label(),
            )
        if pending:
            self.ads.upload_image_assets(
                (image.name, self.storage.download(image.path)) for image in pending
            )

        for image in images:
            self.storage.move_image(
                account_id, unit.unit_id, image.name, source_dir, self.storage_config.uploaded_dir
            )
        return True
