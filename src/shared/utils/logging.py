"""Shared logging configuration for the Cloud Function entry points and CLIs."""

from __future__ import annotations

import logging
import os
import sys
from typing import Optional

NOISY_LOGGERS = ("urllib3", "httpx", "httpcore", "google", "supabase", "postgrest")


def setup_logging(
    level: Optional[str] = None,
    format_string: Optional[str] = None,
    include_timestamp: bool = True,
) -> None:
    """Configure root logger with a stdout handler.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
               If None, reads from LOG_LEVEL env var or defaults to INFO.
        format_string: Custom format string. If None, uses default format.
        include_timestamp: Whether to include timestamp in log messages.
    """
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO")
    level = level.upper()

    if format_string is None:
        if include_timestamp:
            format_string = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
        else:
            format_string = "[%(levelname)s] %(name)s: %(message)s"

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format=format_string,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        force=True,
    )

    for logger_name in NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)
