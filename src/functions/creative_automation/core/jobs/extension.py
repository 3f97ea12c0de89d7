"""Keep the linked image assets of each ad group in sync with the uploaded folder."""

from __future__ import annotations

import logging

from src.shared.batch.reconcile import reconcile
from src.shared.batch.runner import WorkUnit

from ..config import MAX_AD_GROUP_ASSETS
from .base import AdGroupJob

logger = logging.getLogger(__name__)


class ImageExtensionJob(AdGroupJob):
    """Links uploaded assets to their ad group and unlinks the ones removed from storage.

    Only assets named ``{adGroupId}|...`` are managed here. Links created by
    other means still count against the per-group asset limit.
    """

    name = "ImageExtension"
    max_assets = MAX_AD_GROUP_ASSETS

    def process_unit(self, unit: WorkUnit) -> bool:
        uploaded = self.image_names(unit, self.storage_config.uploaded_dir)
        library = {asset.name: asset.resource_name for asset in self.ads.get_image_assets(unit.unit_id)}
        desired = {name for name in uploaded if name in library}

        managed_links = self.ads.get_managed_ad_group_assets(unit.unit_id)
        actual = {link.asset_name for link in managed_links}

        removals = reconcile(desired, actual).to_delete
        linked_total = len(self.ads.get_all_ad_group_assets(unit.unit_id))
        capacity = self.max_assets - (linked_total - len(removals))
        delta = reconcile(desired, actual, capacity=capacity)

        if delta.is_empty:
            logger.info("Ad group assets of %s are up to date.", unit.label())
            return False

        if delta.to_delete:
            doomed = set(delta.to_delete)
            resource_names = [link.resource_name for link in managed_links if link.asset_name in doomed]
            logger.info(
                "Deleting %d ad group assets for ad group %s...", len(resource_names), unit.unit_id
            )
            self.ads.unlink_assets(resource_names)

        if delta.to_create:
            logger.info(
                "Creating %d ad group assets for ad group %s...", len(delta.to_create), unit.unit_id
            )
            self.ads.link_assets(
                unit.payload.get("resource_name")
                or f"customers/{self.account_id(unit)}/adGroups/{unit.unit_id}",
                [library[name] for name in delta.to_create],
            )

        if delta.truncated:
            logger.info(
                "Ad group %s is at its limit of %d assets; %d uploaded images stay unlinked for now.",
                unit.unit_id,
                self.max_assets,
                delta.truncated,
            )
        return True
