"""Pause linked image assets whose images were uploaded by this system."""

from __future__ import annotations

import logging

from src.shared.batch.runner import WorkUnit

from .base import AdGroupJob

logger = logging.getLogger(__name__)

PAUSED = "PAUSED"


class ImagePauseJob(AdGroupJob):
    name = "ImagePause"

    def process_unit(self, unit: WorkUnit) -> bool:
        uploaded = self.image_names(unit, self.storage_config.uploaded_dir)
        if not uploaded:
            logger.info("No uploaded images found for ad group %s.", unit.unit_id)
            return False

        to_pause = [
            link.resource_name
            for link in self.ads.get_managed_ad_group_assets(unit.unit_id)
            if link.asset_name in uploaded and link.status != PAUSED
        ]
        if not to_pause:
            logger.info("No assets to pause for ad group %s.", unit.unit_id)
            return False

        logger.info("Pausing %d ad group assets for ad group %s...", len(to_pause), unit.unit_id)
        self.ads.pause_assets(to_pause)
        return True


class PromotionImagePauseJob(ImagePauseJob):
    """Pause run against the promotion account and bucket.

    Runs under its own name so its checkpoint, trigger and lease never mix
    with the regular pause job.
    """

    name = "PromotionImagePause"
