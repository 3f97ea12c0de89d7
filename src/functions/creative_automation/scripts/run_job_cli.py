"""CLI for running a creative automation job outside of Cloud Functions."""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from pathlib import Path
from typing import Any, Dict

# Ensure project root is on sys.path
project_root = Path(__file__).parent.parent.parent.parent.parent.absolute()
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from src.shared.batch.errors import ConfigurationError
from src.shared.batch.runner import RunStatus
from src.shared.utils.env import load_env
from src.shared.utils.logging import setup_logging

from src.functions.creative_automation.core.factory import request_from_payload
from src.functions.creative_automation.core.registry import JOBS, JobServices, build_runner

logger = logging.getLogger(__name__)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a creative automation job.")
    parser.add_argument("job", help=f"Job to run: {', '.join(JOBS)} (snake_case accepted).")
    parser.add_argument("--config", type=Path, help="Path to JSON payload matching the HTTP API.")
    parser.add_argument(
        "--resume",
        action="store_true",
        help="Resume from the stored checkpoint instead of starting a fresh pass.",
    )
    parser.add_argument(
        "--follow",
        action="store_true",
        help="Keep resuming in this process until the job completes.",
    )
    parser.add_argument("--images-per-ad-group", type=int, help="Override the image target per ad group.")
    parser.add_argument("--campaign-ids", help="Comma separated campaign ids.")
    parser.add_argument("--property-file", help="Store job properties in this JSON file.")
    parser.add_argument("--output", type=Path, help="Optional path to write the JSON result.")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging.")
    return parser.parse_args()


def load_payload(args: argparse.Namespace) -> Dict[str, Any]:
    payload: Dict[str, Any] = {}
    if args.config:
        with args.config.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)

    payload["job"] = args.job
    payload["mode"] = "triggered" if args.resume else "manual"
    if args.images_per_ad_group is not None:
        payload.setdefault("generation", {})["images_per_ad_group"] = args.images_per_ad_group
    if args.campaign_ids:
        payload.setdefault("ads", {})["campaign_ids"] = args.campaign_ids
    if args.property_file:
        orchestration = payload.setdefault("orchestration", {})
        orchestration["property_backend"] = "file"
        orchestration["property_path"] = args.property_file
    if args.follow:
        # Continuations are run in-process instead of being scheduled remotely.
        payload.setdefault("orchestration", {})["trigger_backend"] = "memory"
    return payload


def main() -> int:
    args = parse_args()
    load_env()
    setup_logging(level="DEBUG" if args.verbose else "INFO")

    try:
        request_model = request_from_payload(load_payload(args))
    except (ValueError, ConfigurationError) as exc:
        logger.error("Invalid arguments: %s", exc)
        return 2

    services = JobServices(request_model.config)
    runner = build_runner(
        request_model.job_name,
        request_model.config,
        services,
        continuation_payload=request_model.continuation_payload(),
    )
    result = runner.manually_run() if request_model.fresh else runner.triggered_run()

    while args.follow and result.status is RunStatus.PAUSED:
        delay = request_model.config.orchestration.continuation_delay_seconds
        logger.info("Waiting %.0fs before resuming %s...", delay, request_model.job_name)
        time.sleep(delay)
        result = runner.triggered_run()

    body = result.to_dict()
    if args.output:
        args.output.write_text(json.dumps(body, indent=2), encoding="utf-8")
        logger.info("Wrote result to %s", args.output)
    else:
        print(json.dumps(body, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
