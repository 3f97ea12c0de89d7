"""Shared plumbing for jobs that iterate over ad groups."""

from __future__ import annotations

import logging
from typing import List, Sequence, Set

from src.shared.batch.runner import BatchJob, WorkUnit
from src.shared.clients.google_ads import GoogleAdsClient
from src.shared.clients.image_storage import ImageStorage

from ..config import StorageConfig

logger = logging.getLogger(__name__)


class AdGroupJob(BatchJob):
    """A job whose work units are the enabled ad groups of the configured campaigns."""

    def __init__(
        self,
        ads: GoogleAdsClient,
        storage: ImageStorage,
        storage_config: StorageConfig,
        campaign_ids: Sequence[str],
    ):
        self.ads = ads
        self.storage = storage
        self.storage_config = storage_config
        self.campaign_ids = list(campaign_ids)

    def list_units(self) -> List[WorkUnit]:
        return [
            WorkUnit(
                unit_id=ad_group.id,
                name=ad_group.name,
                payload={
                    "resource_name": ad_group.resource_name,
                    "customer_id": ad_group.customer_id,
                },
            )
            for ad_group in self.ads.get_ad_groups(self.campaign_ids)
        ]

    def account_id(self, unit: WorkUnit) -> str:
        return unit.payload.get("customer_id") or self.ads.customer_id

    def image_names(self, unit: WorkUnit, directory: str) -> Set[str]:
        images = self.storage.list_images(self.account_id(unit), unit.unit_id, [directory])
        return {image.name for image in images}
