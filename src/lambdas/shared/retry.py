"""Retry policy for transient provider failures.

For On-Call Engineers:
    - Retries are for TRANSIENT failures only (5xx, 429, timeouts)
    - Rejected requests (bad template id, invalid API key) are NOT retried
    - Each retry is logged at WARNING with the attempt number
    - Default: 3 attempts with exponential backoff (0.5s, 1s)
"""

import logging

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

MAX_BACKOFF_SECONDS = 8


def provider_retrying(
    retry_on: tuple[type[BaseException], ...],
    max_attempts: int = 3,
    backoff_seconds: float = 0.5,
) -> Retrying:
    """Build a bounded retry controller.

    Use as an iterator so each attempt is counted by the caller::

        for attempt in provider_retrying((TransientEmailError,)):
            with attempt:
                send()

    Args:
        retry_on: Exception types considered transient
        max_attempts: Total attempts including the first one
        backoff_seconds: Wait before the first retry; doubles afterwards

    The last exception is re-raised once attempts are exhausted.
    """
    return Retrying(
        stop=stop_after_attempt(max(1, max_attempts)),
        wait=wait_exponential(multiplier=backoff_seconds, max=MAX_BACKOFF_SECONDS),
        retry=retry_if_exception_type(retry_on),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
