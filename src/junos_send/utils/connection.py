"""Retry helpers for device connections and recoverable RPCs."""
import asyncio
import logging
from functools import wraps
from typing import Any, Callable, TypeVar

from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


# Socket-level failures worth another attempt. Authentication failures
# are not retried.
RETRYABLE_EXCEPTIONS = (
    ConnectionRefusedError,
    ConnectionResetError,
    TimeoutError,
    EOFError,
)


def with_retry(
    max_attempts: int = 3,
    min_wait: float = 1,
    max_wait: float = 10,
    exceptions: tuple = RETRYABLE_EXCEPTIONS,
) -> Callable:
    """Decorator factory for retry logic with exponential backoff.

    Works on both plain and coroutine functions. The last exception is
    re-raised once attempts are exhausted.

    Args:
        max_attempts: Maximum number of attempts (1 disables retrying)
        min_wait: Minimum wait time between attempts (seconds)
        max_wait: Maximum wait time between attempts (seconds)
        exceptions: Tuple of exception types to retry on
    """
    policy = dict(
        stop=stop_after_attempt(max(1, max_attempts)),
        wait=wait_exponential(multiplier=1, min=min_wait, max=max_wait),
        retry=retry_if_exception_type(exceptions),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @retry(**policy)
        @wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> T:
            return await func(*args, **kwargs)  # type: ignore[misc]

        @retry(**policy)
        @wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> T:
            return func(*args, **kwargs)

        if asyncio.iscoroutinefunction(func):
            return async_wrapper  # type: ignore[return-value]
        return sync_wrapper

    return decorator
