"""
Retry utility functions with exponential backoff.
Categorizes errors as transient (retryable) or permanent (non-retryable).
Authentication failures (401/403) are always permanent.
"""

import functools
from collections.abc import Awaitable, Callable
from typing import TypeVar

import httpx
import structlog
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from app.integrations.errors import (
    TRANSIENT_STATUS_CODES,
    BrokerError,
    TransientNetworkError,
)

logger = structlog.get_logger()

T = TypeVar("T")


def is_transient_error(exception: BaseException) -> bool:
    """
    Determine if an exception represents a transient error that should be retried.

    Args:
        exception: The exception to check

    Returns:
        True if error is transient (retryable), False otherwise
    """
    # Broker errors carry their own classification
    if isinstance(exception, TransientNetworkError):
        return exception.retryable
    if isinstance(exception, BrokerError):
        return False

    # Connection never established, safe to replay
    if isinstance(exception, httpx.ConnectError | httpx.ConnectTimeout | httpx.PoolTimeout):
        return True

    if isinstance(exception, httpx.HTTPStatusError):
        return exception.response.status_code in TRANSIENT_STATUS_CODES

    # Default to non-retryable for unknown errors
    return False


def retry_with_backoff(
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    multiplier: float = 2.0,
    max_delay: float = 30.0,
):
    """
    Decorator for retrying async functions with exponential backoff.
    Only retries on transient errors; the last exception is re-raised unchanged.

    Args:
        max_attempts: Maximum number of attempts (first call included)
        initial_delay: Delay before the first retry in seconds
        multiplier: Base of the exponential backoff
        max_delay: Maximum delay in seconds

    Returns:
        Decorated function with retry logic
    """

    def retry_decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @retry(
            stop=stop_after_attempt(max_attempts),
            wait=wait_exponential(multiplier=initial_delay, exp_base=multiplier, max=max_delay),
            retry=retry_if_exception(is_transient_error),
            reraise=True,
            before_sleep=_log_retry_attempt,
        )
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            return await func(*args, **kwargs)

        return wrapper

    return retry_decorator


def _log_retry_attempt(retry_state: RetryCallState):
    """Log retry attempt before sleeping."""
    if retry_state.outcome is not None:
        exception = retry_state.outcome.exception()
        logger.warning(
            "Retrying after transient error",
            function=getattr(retry_state.fn, "__name__", None),
            attempt=retry_state.attempt_number,
            error_type=type(exception).__name__,
            wait_time=retry_state.next_action.sleep if retry_state.next_action else 0,
        )
