"""Cloud Function entry point for the creative automation jobs."""

from __future__ import annotations

import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

import flask
import functions_framework

# Ensure project root is on sys.path before importing project modules
project_root = Path(__file__).parent.parent.parent.parent.parent.absolute()
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from src.shared.batch.errors import ConfigurationError, FatalError, JobAlreadyRunningError
from src.shared.utils.env import load_env
from src.shared.utils.logging import setup_logging

from src.functions.creative_automation.core.factory import InvalidRequestError, request_from_payload
from src.functions.creative_automation.core.registry import JobServices, build_runner

load_env()
setup_logging(level=os.getenv("LOG_LEVEL", "INFO"))
logger = logging.getLogger(__name__)


def handle_request(payload: Dict[str, Any], services: Optional[JobServices] = None) -> Dict[str, Any]:
    """Run one invocation of the requested job and describe its outcome."""

    request_model = request_from_payload(payload)
    logger.info("Incoming %s run of %s", request_model.mode, request_model.job_name)

    if services is None:
        services = JobServices(request_model.config)
    runner = build_runner(
        request_model.job_name,
        request_model.config,
        services,
        continuation_payload=request_model.continuation_payload(),
    )
    if request_model.fresh:
        result = runner.manually_run()
    else:
        result = runner.triggered_run()
    return {"status": "success", "mode": request_model.mode, **result.to_dict()}


def error_status(exc: Exception) -> int:
    """HTTP status for an error raised while handling a run."""

    if isinstance(exc, (ConfigurationError, InvalidRequestError)):
        return 400
    if isinstance(exc, JobAlreadyRunningError):
        return 409
    if isinstance(exc, FatalError):
        return 502
    return 500


def creative_automation_handler(request: flask.Request) -> flask.Response:
    """HTTP handler that runs a creative automation job."""

    if request.method == "OPTIONS":
        return _cors_response({}, status=204)

    if request.method != "POST":
        logger.warning("Unsupported HTTP method: %s", request.method)
        return _error_response("Method not allowed. Use POST.", status=405)

    try:
        payload = request.get_json(silent=True) or {}
        return _cors_response(handle_request(payload))
    except Exception as exc:  # noqa: BLE001
        status = error_status(exc)
        if status == 400:
            logger.warning("Invalid request: %s", exc)
        elif status == 409:
            logger.warning("%s", exc)
        elif status == 502:
            logger.error("Run aborted: %s", exc)
        else:
            logger.error("Unexpected failure", exc_info=True)
        message = str(exc) if status != 500 else "Internal server error"
        return _error_response(message, status=status)


def health_check_handler(request: flask.Request) -> flask.Response:
    """Health check endpoint."""

    return _cors_response({"status": "healthy", "service": "creative_automation"})


def _cors_response(body: dict[str, Any] | Iterable[Any], status: int = 200) -> flask.Response:
    response = flask.make_response(json.dumps(body, ensure_ascii=False), status)
    headers = response.headers
    headers["Content-Type"] = "application/json"
    headers["Access-Control-Allow-Origin"] = "*"
    headers["Access-Control-Allow-Methods"] = "POST,OPTIONS"
    headers["Access-Control-Allow-Headers"] = "Content-Type"
    return response


def _error_response(message: str, status: int) -> flask.Response:
    return _cors_response({"status": "error", "message": message}, status=status)


@functions_framework.http
def run_creative_job(request: flask.Request):
    return creative_automation_handler(request)


@functions_framework.http
def health_check(request: flask.Request):
    return health_check_handler(request)
