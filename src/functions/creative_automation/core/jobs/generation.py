"""Generate the missing images for every ad group."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Sequence

from src.shared.batch.errors import RetryExhaustedError
from src.shared.batch.retry import call_with_retry
from src.shared.batch.runner import WorkUnit
from src.shared.clients.google_ads import GoogleAdsClient
from src.shared.clients.image_storage import ImageStorage
from src.shared.clients.vertex_ai import IMAGE_GENERATION_API_LIMIT, VertexAiClient

from ..config import MODE_AD_GROUP_NAME, GenerationConfig, StorageConfig
from ..prompts import (
    build_text_prompt,
    compile_name_regex,
    fill_template,
    finalize_image_prompt,
    image_file_name,
    match_groups,
)
from .base import AdGroupJob

logger = logging.getLogger(__name__)


class ImageGenerationJob(AdGroupJob):
    """Tops every ad group up to ``images_per_ad_group`` generated images.

    Images already generated, validated or uploaded count towards the target,
    so re-running a unit only generates what is still missing.
    """

    name = "ImageGeneration"

    def __init__(
        self,
        ads: GoogleAdsClient,
        storage: ImageStorage,
        vertex: VertexAiClient,
        storage_config: StorageConfig,
        generation_config: GenerationConfig,
        campaign_ids: Sequence[str],
        *,
        retry_attempts: int = 3,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(ads, storage, storage_config, campaign_ids)
        self.vertex = vertex
        self.config = generation_config
        self.retry_attempts = retry_attempts
        self.clock = clock
        self.name_regex = compile_name_regex(generation_config.ad_group_name_regex)
        self._last_stamp = 0

    def process_unit(self, unit: WorkUnit) -> bool:
        account_id = self.account_id(unit)
        target = self.config.images_per_ad_group
        existing = self.storage.count_images(
            account_id,
            unit.unit_id,
            [
                self.storage_config.generated_dir,
                self.storage_config.uploaded_dir,
                self.storage_config.validated_dir,
            ],
        )
        if existing >= target:
            logger.info("Ad group %s has enough generated images, skipping...", unit.label())
            return False

        missing = target - existing
        keywords = None
        if self.config.mode != MODE_AD_GROUP_NAME:
            keywords = self.ads.get_keywords(unit.unit_id)
            if not keywords:
                logger.info("No positive keywords: skipping ad group %s", unit.unit_id)
                return False
            logger.info("Positive keyword list: %s", ",".join(keywords))

        logger.info("Generating %d images for %s...", missing, unit.label())
        generated = 0
        empty_batches = 0
        while generated < missing:
            batch_size = min(IMAGE_GENERATION_API_LIMIT, missing - generated)
            prompt = self.image_prompt(unit, keywords)
            if prompt is None:
                break
            logger.info("Image prompt for ad group %s: %r", unit.name or unit.unit_id, prompt)

            try:
                images = call_with_retry(
                    lambda: self.vertex.generate_images(prompt, batch_size),
                    max_attempts=self.retry_attempts,
                    description=f"Image generation for {unit.unit_id}",
                )
            except RetryExhaustedError:
                logger.warning(
                    "Not able to generate images for %s, this might be because of blocked content. "
                    "Moving on to the next ad group.",
                    unit.label(),
                )
                break

            logger.info("Received %d images for %s...", len(images), unit.label())
            if not images:
                # Blocked prompts come back empty.
                empty_batches += 1
                if empty_batches >= self.retry_attempts:
                    logger.warning(
                        "Image generation for %s returned no images %d times, moving on to the next ad group.",
                        unit.label(),
                        empty_batches,
                    )
                    break
                continue

            for content in images:
                file_name = image_file_name(unit.unit_id, unit.name, self._next_stamp())
                self.storage.upload_image(
                    account_id, unit.unit_id, self.storage_config.generated_dir, file_name, content
                )
            generated += len(images)

        if generated < missing:
            logger.info("Generated %d of %d missing images for %s this pass", generated, missing, unit.label())
        return True

    def image_prompt(self, unit: WorkUnit, keywords: Optional[Sequence[str]]) -> Optional[str]:
        """Build the prompt for the next batch; None when the text model gave up."""
        if keywords is None:
            groups = match_groups(unit.name, self.name_regex)
            if groups:
                raw_prompt = fill_template(self.config.image_prompt, groups)
            else:
                logger.info(
                    "No matching groups found for %s with %s. Using full prompt.",
                    unit.name,
                    self.name_regex.pattern,
                )
                raw_prompt = self.config.image_prompt
        else:
            text_prompt = build_text_prompt(
                self.config.text_prompt_context,
                self.config.text_prompt,
                keywords,
                self.config.text_prompt_suffix,
            )
            logger.debug("Prompt to generate the image prompt: %s", text_prompt)
            try:
                raw_prompt = call_with_retry(
                    lambda: self.vertex.generate_text(text_prompt),
                    max_attempts=self.retry_attempts,
                    description=f"Image prompt generation for {unit.unit_id}",
                )
            except RetryExhaustedError:
                return None

        return finalize_image_prompt(
            raw_prompt, self.config.prompt_translations, self.config.image_prompt_suffix
        )

    def _next_stamp(self) -> int:
        # File names must stay unique within one batch.
        stamp = max(int(self.clock() * 1000), self._last_stamp + 1)
        self._last_stamp = stamp
        return stamp
