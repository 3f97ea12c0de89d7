"""Retry wrapper that branches on the error class of a single external call."""

from __future__ import annotations

import logging
from typing import Callable, TypeVar

from tenacity import RetryCallState, RetryError, Retrying, retry_if_exception, stop_after_attempt

from .errors import RetryExhaustedError, is_transient as default_is_transient

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3


def call_with_retry(
    func: Callable[[], T],
    is_transient: Callable[[BaseException], bool] = default_is_transient,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    *,
    description: str = "call",
) -> T:
    """Invoke ``func``, repeating it immediately on transient failures.

    Calls are already rate-limited by the remote side, so there is no wait
    between attempts.

    Args:
        func: Callable to invoke (should take no arguments)
        is_transient: Classifier deciding whether an error may be retried
        max_attempts: Total number of attempts, including the first one
        description: Label used in log messages

    Returns:
        Function result

    Raises:
        RetryExhaustedError: If every attempt failed with a transient error
        Exception: The original error when it is not transient

    Example:
        prompt = call_with_retry(
            lambda: vertex.generate_text(text_prompt),
            description="image prompt generation",
        )
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    def _log_retry(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "%s failed (attempt %d/%d): %s. Retrying...",
            description,
            retry_state.attempt_number,
            max_attempts,
            error,
        )

    retrying = Retrying(
        stop=stop_after_attempt(max_attempts),
        retry=retry_if_exception(is_transient),
        before_sleep=_log_retry,
        reraise=False,
    )
    try:
        return retrying(func)
    except RetryError as exc:
        last_error = exc.last_attempt.exception() if exc.last_attempt else None
        logger.error("%s failed after %d attempts: %s", description, max_attempts, last_error)
        raise RetryExhaustedError(description, max_attempts, last_error) from last_error
