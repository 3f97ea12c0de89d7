"""Deployment wrapper for the creative automation Cloud Function."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict

import flask

project_root = Path(__file__).resolve().parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from src.functions.creative_automation.functions.main import error_status, handle_request

logger = logging.getLogger(__name__)


def creative_automation_handler(request: flask.Request) -> flask.Response:
    if request.method == "OPTIONS":
        return _cors_response({}, status=204)

    if request.method != "POST":
        return _cors_response({"status": "error", "message": "Method not allowed. Use POST."}, status=405)

    try:
        payload: Dict[str, Any] = request.get_json(silent=True) or {}
        return _cors_response(handle_request(payload))
    except Exception as exc:
        status = error_status(exc)
        if status == 500:
            logger.exception("Unexpected error in creative automation handler")
            return _cors_response({"status": "error", "message": "Internal server error"}, status=500)
        logger.warning("Creative automation run rejected (%d): %s", status, exc)
        return _cors_response({"status": "error", "message": str(exc)}, status=status)


def _cors_response(body: Dict[str, Any] | list[Any], status: int = 200) -> flask.Response:
    response = flask.make_response(json.dumps(body, ensure_ascii=False), status)
    headers = response.headers
    headers["Content-Type"] = "application/json; charset=utf-8"
    headers["Access-Control-Allow-Origin"] = "*"
    headers["Access-Control-Allow-Methods"] = "POST,OPTIONS"
    headers["Access-Control-Allow-Headers"] = "Content-Type,Authorization"
    return response
