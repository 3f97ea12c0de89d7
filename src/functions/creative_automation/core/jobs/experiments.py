"""A/B experiments comparing campaigns with and without ad group image assets."""

from __future__ import annotations

import logging
import time
from typing import Callable, List, Sequence, Set

from src.shared.batch.errors import PlatformQueryError
from src.shared.batch.runner import BatchJob, WorkUnit
from src.shared.clients.google_ads import GoogleAdsClient

logger = logging.getLogger(__name__)


class ExperimentsJob(BatchJob):
    """Creates one experiment per configured campaign.

    The control arm keeps the campaign as it is. The treatment arm runs a
    draft copy of the campaign whose ad group image assets are removed
    before the experiment is scheduled.
    """

    name = "Experiments"

    def __init__(
        self,
        ads: GoogleAdsClient,
        campaign_ids: Sequence[str],
        *,
        clock: Callable[[], float] = time.time,
    ):
        self.ads = ads
        self.campaign_ids = list(campaign_ids)
        self.clock = clock
        self._busy: Set[str] = set()

    def list_units(self) -> List[WorkUnit]:
        self._busy = self.ads.campaigns_with_experiments()
        busy = [campaign_id for campaign_id in self.campaign_ids if campaign_id in self._busy]
        if busy:
            logger.info(
                "Experiments for campaigns %s already exist, cannot create new ones. "
                "Switch those experiments off or wait until they finish.",
                ", ".join(busy),
            )
        return [WorkUnit(unit_id=campaign_id, name=f"campaign {campaign_id}") for campaign_id in self.campaign_ids]

    def process_unit(self, unit: WorkUnit) -> bool:
        if unit.unit_id in self._busy:
            return False

        logger.info("Creating experiment for campaign %s.", unit.unit_id)
        experiment = self.ads.create_experiment(
            f"Creative experiment for campaign {unit.unit_id} (timestamp:{int(self.clock() * 1000)})"
        )
        logger.info("Experiment draft was created: %s", experiment)

        arms = self.ads.create_experiment_arms(unit.unit_id, experiment)
        try:
            campaign_copy = arms[1]["experimentArm"]["inDesignCampaigns"][0]
        except (IndexError, KeyError, TypeError):
            raise PlatformQueryError(
                f"Experiment {experiment} has no draft campaign in its treatment arm", payload=arms
            ) from None
        logger.info("Draft copy of campaign %s: %s", unit.unit_id, campaign_copy)

        to_remove = [link.resource_name for link in self.ads.get_campaign_ad_group_assets(campaign_copy)]
        logger.info("Removing %d ad group assets from %s", len(to_remove), campaign_copy)
        self.ads.unlink_assets(to_remove)

        self.ads.schedule_experiment(experiment)
        logger.info("Scheduled experiment %s", experiment)
        # A campaign can only be in one experiment at a time.
        self._busy.add(unit.unit_id)
        return True
