"""Local development server for the creative automation Cloud Function.

Continuation triggers created with the in-memory backend are fired by a
background poller, so paused runs resume the way they do in the cloud.
"""

from __future__ import annotations

import logging
import os
import sys
import threading
from pathlib import Path

from flask import Flask, request

# Ensure project root is on sys.path
project_root = Path(__file__).parent.parent.parent.parent.parent.absolute()
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from src.functions.creative_automation.core.registry import process_trigger_backend
from src.functions.creative_automation.functions.main import (
    creative_automation_handler,
    handle_request,
    health_check_handler,
)

logger = logging.getLogger(__name__)

app = Flask(__name__)


@app.route("/", methods=["POST", "OPTIONS"])
def local_handler():
    """Proxy HTTP requests to the Cloud Function handler."""
    return creative_automation_handler(request)


@app.route("/health", methods=["GET"])
def local_health():
    return health_check_handler(request)


def fire_due_triggers(stop: threading.Event, poll_seconds: float = 5.0) -> None:
    """Run every in-memory continuation trigger whose time has come."""
    backend = process_trigger_backend()
    while not stop.wait(poll_seconds):
        for trigger in backend.due():
            backend.delete_trigger(trigger.trigger_id)
            logger.info("Firing continuation %s for %s", trigger.trigger_id, trigger.job_name)
            try:
                handle_request(dict(trigger.payload))
            except Exception:  # noqa: BLE001
                logger.error("Continuation %s failed", trigger.trigger_id, exc_info=True)


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8080))
    stop_event = threading.Event()
    threading.Thread(target=fire_due_triggers, args=(stop_event,), daemon=True).start()
    print(f"Starting local creative automation server on http://localhost:{port}")
    print(
        "Test with: curl -X POST http://localhost:{port} -H 'Content-Type: application/json' "
        "-d '{\"job\": \"ImageGeneration\", \"mode\": \"manual\"}'".replace("{port}", str(port))
    )
    print("")
    try:
        app.run(host="0.0.0.0", port=port, debug=False)
    finally:
        stop_event.set()
