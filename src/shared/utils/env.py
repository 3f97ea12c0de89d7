"""Environment variable loading utilities."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)


def load_env(env_file: Optional[str] = None, override: bool = False) -> List[Path]:
    """Load environment variables from .env files.

    Args:
        env_file: Path to a .env file. If None, loads every .env found from
                  the filesystem root down to the current directory, so the
                  closest file wins when ``override`` is set.
        override: Whether to override existing environment variables.

    Returns:
        The files that were loaded.
    """
    if env_file:
        candidates = [Path(env_file)]
    else:
        current = Path.cwd()
        candidates = [parent / ".env" for parent in reversed(current.parents)]
        candidates.append(current / ".env")

    loaded: List[Path] = []
    for path in candidates:
        if path.exists() and path not in loaded:
            load_dotenv(path, override=override)
            loaded.append(path)
            logger.debug("Loaded environment from %s", path)

    if not loaded:
        logger.debug("No .env file found, using system environment")
    return loaded
