#!/usr/bin/env python3
"""Inspect or clear the persisted run state of a creative job.

A paused job leaves a checkpoint, a continuation trigger id, an execution
window and possibly a lease behind. This script shows them and, when asked,
deletes them so the next run starts from the first ad group.

Examples:
    # Show the state of every job
    python scripts/reset_job_state.py

    # Show what a reset of ImageGeneration would remove (dry-run)
    python scripts/reset_job_state.py --job ImageGeneration --reset --dry-run

    # Clear the state of ImagePause without asking
    python scripts/reset_job_state.py --job image_pause --reset --yes
"""

import argparse
import datetime as dt
import logging
import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT))

from src.shared.batch.checkpoint import CheckpointStore
from src.shared.batch.continuation import ContinuationScheduler, create_trigger_backend
from src.shared.batch.lease import JobLease
from src.shared.batch.properties import create_property_store
from src.shared.batch.time_guard import ExecutionTimeGuard
from src.shared.utils.env import load_env
from src.shared.utils.logging import setup_logging
from src.functions.creative_automation.core.config_loader import build_orchestration_config
from src.functions.creative_automation.core.registry import JOBS, resolve_job_name

logger = logging.getLogger(__name__)


def _format_time(timestamp):
    if timestamp is None:
        return "-"
    return dt.datetime.fromtimestamp(timestamp, tz=dt.timezone.utc).isoformat(timespec="seconds")


def main():
    parser = argparse.ArgumentParser(description="Inspect or clear the run state of creative jobs")
    parser.add_argument(
        "--job",
        type=str,
        help="Job to inspect (e.g. ImageGeneration or image_generation). Default: all jobs",
    )
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Delete checkpoint, continuation trigger, window and lease",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be deleted without doing it",
    )
    parser.add_argument(
        "--yes",
        action="store_true",
        help="Do not ask for confirmation",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    args = parser.parse_args()

    # Setup
    load_env()
    setup_logging(level="DEBUG" if args.verbose else "INFO")

    orchestration = build_orchestration_config()
    store = create_property_store(
        orchestration.property_backend,
        path=orchestration.property_path,
        table=orchestration.property_table,
    )
    if orchestration.property_backend == "memory":
        logger.warning("PROPERTY_BACKEND is memory; there is no persisted state to inspect.")

    checkpoints = CheckpointStore(store)
    time_guard = ExecutionTimeGuard(store, threshold_seconds=orchestration.threshold_seconds)
    lease = JobLease(store, ttl_seconds=orchestration.ceiling_seconds)

    job_names = [resolve_job_name(args.job)] if args.job else list(JOBS)

    logger.info("=" * 60)
    logger.info("JOB STATE - %s backend", orchestration.property_backend)
    logger.info("=" * 60)

    paused = []
    for job_name in job_names:
        checkpoint = checkpoints.get(job_name)
        trigger_id = store.get(ContinuationScheduler.key_for(job_name))
        window = time_guard.window(job_name)
        holder = lease.current(job_name)
        print(f"\n{job_name}")
        print(f"   Last processed unit: {checkpoint or '-'}")
        print(f"   Continuation trigger: {trigger_id or '-'}")
        print(f"   Last window start: {_format_time(window.started_at if window else None)}")
        if holder:
            print(f"   Lease: {holder.holder} until {_format_time(holder.expires_at)}")
        else:
            print("   Lease: -")
        if checkpoint or trigger_id or window or holder:
            paused.append(job_name)

    print("\n" + "=" * 60)

    if not args.reset:
        return
    if not paused:
        logger.info("Nothing to reset")
        return
    if args.dry_run:
        logger.info("DRY RUN - No changes made")
        logger.info("Would reset %d jobs: %s", len(paused), ", ".join(paused))
        return

    if not args.yes:
        response = input(f"\nReset the state of {len(paused)} jobs? [y/N]: ")
        if response.lower() != "y":
            logger.info("Cancelled by user")
            return

    scheduler = None
    if orchestration.trigger_backend != "memory":
        backend = create_trigger_backend(
            orchestration.trigger_backend,
            project=orchestration.tasks_project,
            location=orchestration.tasks_location,
            queue=orchestration.tasks_queue,
            target_url=orchestration.function_url,
            service_account_email=orchestration.tasks_service_account,
        )
        scheduler = ContinuationScheduler(store, backend)

    for job_name in paused:
        logger.info("Resetting %s...", job_name)
        if scheduler is not None:
            scheduler.cancel_pending(job_name)
        else:
            store.delete(ContinuationScheduler.key_for(job_name))
        checkpoints.clear(job_name)
        store.delete(ExecutionTimeGuard.key_for(job_name))
        store.delete(JobLease.key_for(job_name))

    logger.info("Reset %d jobs", len(paused))


if __name__ == "__main__":
    main()
