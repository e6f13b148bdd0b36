"""
Retry utilities with exponential backoff.

Provides helpers for retrying failed async operations, used for the
remote image service and the text-completion service.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Tuple, Type, TypeVar

from storyreel.core.logging_config import get_logger

logger = get_logger("core.retry")

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_attempts: int = 5  # Total attempts, including the first one
    base_delay: float = 1.0  # Base delay in seconds
    max_delay: float = 10.0  # Maximum delay in seconds
    exponential_base: float = 2.0  # Multiplier for exponential backoff
    retryable_exceptions: Tuple[Type[Exception], ...] = (
        Exception,  # Default: retry all exceptions
    )


DEFAULT_RETRY_CONFIG = RetryConfig()


def calculate_delay(attempt: int, config: RetryConfig) -> float:
    """
    Calculate the delay to wait before an attempt.

    Uses exponential backoff: min(base_delay * exponential_base ** attempt, max_delay).

    Args:
        attempt: Attempt about to be made (0-indexed; attempt 0 never waits)
        config: Retry configuration

    Returns:
        Delay in seconds
    """
    if attempt <= 0:
        return 0.0

    delay = config.base_delay * (config.exponential_base ** attempt)
    return min(delay, config.max_delay)


async def retry_async_call(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    config: Optional[RetryConfig] = None,
    description: str = "call",
    **kwargs: Any
) -> T:
    """
    Retry an async function call with exponential backoff.

    Only exceptions listed in config.retryable_exceptions are retried; any
    other exception propagates from the attempt that raised it. The
    exception from the final attempt is re-raised unchanged.

    Args:
        func: Async function to call
        *args: Positional arguments for the function
        config: Retry configuration (uses defaults if not provided)
        description: Label used in log messages
        **kwargs: Keyword arguments for the function

    Returns:
        Result of the function call

    Example:
        path = await retry_async_call(
            fetcher.fetch_once,
            prompt, 7, out_dir,
            config=RetryConfig(max_attempts=5)
        )
    """
    config = config or DEFAULT_RETRY_CONFIG
    attempts = max(1, config.max_attempts)

    for attempt in range(attempts):
        try:
            return await func(*args, **kwargs)
        except config.retryable_exceptions as e:
            if attempt == attempts - 1:
                logger.error(f"{description}: all {attempts} attempts failed. Last error: {e}")
                raise

            delay = calculate_delay(attempt + 1, config)
            logger.warning(
                f"{description}: attempt {attempt + 1}/{attempts} failed: {e}. "
                f"Retrying in {delay:.2f}s..."
            )
            await asyncio.sleep(delay)

    # Unreachable: the loop either returns or raises
    raise RuntimeError("Retry logic failed unexpectedly")
