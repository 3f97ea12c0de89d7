"""
Configuration validation utilities.

Typed readers for environment variables that fail with a ConfigurationError
naming the offending variable.
"""

import json
import os
from typing import Any, List, Optional

from src.shared.batch.errors import ConfigurationError


def require_env(name: str, description: Optional[str] = None) -> str:
    """
    Require an environment variable to be set.

    Raises:
        ConfigurationError: If the environment variable is not set or empty
    """
    value = os.getenv(name)
    if not value:
        desc_msg = f" ({description})" if description else ""
        raise ConfigurationError(
            f"Missing required environment variable: {name}{desc_msg}\n"
            f"Please set {name} in your .env file or environment."
        )
    return value


def validate_int_env(name: str, default: Optional[int] = None, min_value: Optional[int] = None,
                     max_value: Optional[int] = None) -> int:
    """
    Validate an integer environment variable.

    Raises:
        ConfigurationError: If the value is missing without default or out of range
    """
    value_str = os.getenv(name)
    if not value_str:
        if default is None:
            raise ConfigurationError(f"Missing required integer environment variable: {name}")
        return default

    try:
        value = int(value_str)
    except ValueError:
        raise ConfigurationError(
            f"Invalid integer value for {name}: '{value_str}'\n"
            f"Expected an integer value."
        )
    _check_range(name, value, min_value, max_value)
    return value


def validate_float_env(name: str, default: Optional[float] = None, min_value: Optional[float] = None,
                       max_value: Optional[float] = None) -> float:
    """
    Validate a float environment variable (used for durations in seconds).

    Raises:
        ConfigurationError: If the value is missing without default or out of range
    """
    value_str = os.getenv(name)
    if not value_str:
        if default is None:
            raise ConfigurationError(f"Missing required numeric environment variable: {name}")
        return default

    try:
        value = float(value_str)
    except ValueError:
        raise ConfigurationError(
            f"Invalid numeric value for {name}: '{value_str}'\n"
            f"Expected a number."
        )
    _check_range(name, value, min_value, max_value)
    return value


def validate_choice_env(name: str, choices: List[str], default: Optional[str] = None) -> str:
    """
    Validate an environment variable against a list of allowed choices (case-insensitive).

    Raises:
        ConfigurationError: If the value is not in choices
    """
    value = os.getenv(name)
    if not value:
        if default is None:
            raise ConfigurationError(f"Missing required environment variable: {name}")
        return default

    if value.lower() not in [c.lower() for c in choices]:
        raise ConfigurationError(
            f"Invalid value for {name}: '{value}'\n"
            f"Allowed values: {', '.join(choices)}"
        )
    return value.lower()


def parse_list_env(name: str, separator: str = ",") -> List[str]:
    """Split a delimited environment variable into trimmed, non-empty items."""
    value = os.getenv(name, "")
    return [item.strip() for item in value.split(separator) if item.strip()]


def parse_json_env(name: str, default: Optional[Any] = None) -> Any:
    """
    Parse a JSON environment variable.

    Raises:
        ConfigurationError: If the value is not valid JSON
    """
    value = os.getenv(name)
    if not value:
        return default
    try:
        return json.loads(value)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Invalid JSON in {name}: {exc}")


def _check_range(name: str, value: float, min_value: Optional[float], max_value: Optional[float]) -> None:
    if min_value is not None and value < min_value:
        raise ConfigurationError(
            f"Value for {name} ({value}) is below minimum allowed value ({min_value})"
        )
    if max_value is not None and value > max_value:
        raise ConfigurationError(
            f"Value for {name} ({value}) exceeds maximum allowed value ({max_value})"
        )
