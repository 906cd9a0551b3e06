"""
Retry mechanisms with exponential backoff for handling transient failures.
"""

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, Optional
from functools import wraps
from dataclasses import dataclass

from ..utils.exceptions import ConcurrencyError

logger = logging.getLogger(__name__)


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 60.0
    exponential_base: float = 2.0
    jitter: bool = True

    def delay_for(self, attempt: int) -> float:
        """Backoff delay before the attempt following ``attempt`` (zero-based)."""
        delay = min(self.base_delay * (self.exponential_base ** attempt), self.max_delay)
        # Jitter spreads out competing writers on the same show
        if self.jitter:
            delay = delay * (0.5 + random.random() * 0.5)
        return delay


async def retry_async(
    func: Callable[[], Awaitable[Any]],
    config: RetryConfig,
    retryable_exceptions: tuple = (Exception,),
    non_retryable_exceptions: tuple = (),
    operation_name: Optional[str] = None,
) -> Any:
    """
    Retry an async callable with exponential backoff.

    Args:
        func: Zero-argument coroutine function to retry
        config: Retry configuration
        retryable_exceptions: Exceptions that should trigger retries
        non_retryable_exceptions: Exceptions that should not trigger retries
        operation_name: Name used in log messages

    Returns:
        The result of the function call

    Raises:
        The last exception if all retries are exhausted
    """
    name = operation_name or getattr(func, "__name__", "operation")
    last_exception: Optional[BaseException] = None

    for attempt in range(config.max_attempts):
        try:
            result = await func()

            if attempt > 0:
                logger.info(f"Function {name} succeeded on attempt {attempt + 1}")

            return result

        except non_retryable_exceptions as e:
            logger.error(f"Non-retryable error in {name}: {e}")
            raise

        except retryable_exceptions as e:
            last_exception = e

            if attempt == config.max_attempts - 1:
                break

            delay = config.delay_for(attempt)
            logger.warning(
                f"Attempt {attempt + 1} failed for {name}: {e}. "
                f"Retrying in {delay:.2f}s..."
            )
            await asyncio.sleep(delay)

    logger.error(f"All {config.max_attempts} attempts failed for {name}")
    raise last_exception


def retry_on_concurrency_error(
    max_attempts: Optional[int] = None,
    base_delay: float = 0.05,
    max_delay: float = 1.0,
    jitter: bool = True
):
    """
    Decorator for retrying operations that may fail due to concurrency issues.

    When ``max_attempts`` is omitted the ``ledger_retry_attempts`` setting is used.
    """

    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            attempts = max_attempts
            if attempts is None:
                from ..config import get_settings
                attempts = get_settings().ledger_retry_attempts

            config = RetryConfig(
                max_attempts=attempts,
                base_delay=base_delay,
                max_delay=max_delay,
                jitter=jitter
            )
            return await retry_async(
                lambda: func(*args, **kwargs),
                config,
                retryable_exceptions=(ConcurrencyError,),
                non_retryable_exceptions=(ValueError, TypeError),
                operation_name=func.__qualname__,
            )
        return wrapper

    return decorator
