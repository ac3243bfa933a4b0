"""
Bounded retry with exponential backoff for upstream calls.
"""
import time
import random
import logging
from typing import Callable, TypeVar

from .exceptions import UpstreamError, UpstreamTimeoutError
from ._rate_limited_log import rate_limited_log

T = TypeVar('T')

logger = logging.getLogger(__name__)


def call_with_retries(
    operation: Callable[[], T],
    description: str,
    max_retries: int = 3,
    backoff_base: float = 0.5
) -> T:
    """
    Run an upstream operation, retrying UpstreamError with backoff.

    Only retryable UpstreamErrors are retried; any other exception
    propagates on the first attempt.

    Args:
        operation: Zero-argument callable performing the upstream call
        description: Short label used in log messages
        max_retries: Maximum number of retries after the first attempt
        backoff_base: Base delay for exponential backoff in seconds

    Returns:
        The operation's result

    Raises:
        UpstreamError: When every attempt failed
    """
    retry_count = 0
    while True:
        try:
            return operation()
        except UpstreamError as e:
            if not e.retryable or retry_count >= max_retries:
                rate_limited_log(
                    f"{description} failed after {retry_count + 1} attempts: {e}",
                    level="error",
                    logger_instance=logger
                )
                raise
            retry_count += 1
            delay = backoff_base * (2 ** (retry_count - 1))
            # Up to 10% jitter to avoid thundering herd
            actual_delay = delay + delay * random.uniform(0, 0.1)
            kind = "timed out" if isinstance(e, UpstreamTimeoutError) else "failed"
            logger.warning(
                f"{description} {kind} (attempt {retry_count}/{max_retries + 1}), "
                f"retrying in {actual_delay:.2f}s: {e}"
            )
            time.sleep(actual_delay)
