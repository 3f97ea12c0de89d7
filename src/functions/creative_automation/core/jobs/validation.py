"""Check generated images against the configured ad policies."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Sequence

from src.shared.batch.errors import RetryExhaustedError
from src.shared.batch.retry import call_with_retry
from src.shared.batch.runner import WorkUnit
from src.shared.clients.google_ads import GoogleAdsClient
from src.shared.clients.image_storage import ImageStorage, image_folder
from src.shared.clients.vertex_ai import VertexAiClient

from ..config import GenerationConfig, StorageConfig
from ..prompts import build_policy_prompt, parse_policy_violations
from .base import AdGroupJob

logger = logging.getLogger(__name__)

VIOLATIONS_FILE = "policyViolations.json"


class ImageValidationJob(AdGroupJob):
    """Asks the text model about policy violations in each generated image.

    Violations are written to ``policyViolations.json`` in the generated
    folder of the ad group. Images whose check kept failing are reported as
    not validated and are checked again on the next pass.
    """

    name = "ImageValidation"

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
    ):
        super().__init__(ads, storage, storage_config, campaign_ids)
        self.vertex = vertex
        self.retry_attempts = retry_attempts
        self.prompt = build_policy_prompt(generation_config.policies)

    def process_unit(self, unit: WorkUnit) -> bool:
        account_id = self.account_id(unit)
        generated_dir = self.storage_config.generated_dir
        images = self.storage.list_images(account_id, unit.unit_id, [generated_dir])
        if not images:
            logger.info("No images to validate.")
            return False

        report: List[Dict[str, Any]] = []
        not_validated: List[str] = []
        for image in images:
            uri = self.storage.gcs_uri(image.path)
            logger.info("Validating %s", uri)
            try:
                violations = call_with_retry(
                    lambda: parse_policy_violations(self.vertex.generate_text(self.prompt, image_uri=uri)),
                    max_attempts=self.retry_attempts,
                    description=f"Policy check of {image.name}",
                )
            except RetryExhaustedError:
                not_validated.append(image.name)
                continue
            if violations:
                report.append({"image": image.name, "violations": violations})

        if report:
            path = f"{image_folder(account_id, unit.unit_id, generated_dir)}/{VIOLATIONS_FILE}"
            logger.info("Saving %d policy violation reports on GCS: %s", len(report), path)
            self.storage.upload_json(path, report)
        if not_validated:
            logger.warning(
                "%d images of %s were not validated this pass: %s",
                len(not_validated),
                unit.label(),
                ", ".join(not_validated),
            )
        return True
