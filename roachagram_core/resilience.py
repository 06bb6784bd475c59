"""
Resilience - Retries with exponential backoff

Bounded retry loop used by the API client. Delays are awaited with a
non-blocking sleep that callers may replace (tests record delays instead of
waiting).

Author: Olivier Vitrac, PhD, HDR | olivier.vitrac@adservio.fr | Adservio | 2026-10-19
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFunc = Callable[[float], Awaitable[Any]]


@dataclass
class RetryConfig:
    """
    Configuration for retry behavior.

    max_attempts counts the first call: 4 means one call plus three retries.
    """
    max_attempts: int = 4
    base_delay: float = 2.0
    max_delay: float = 60.0
    retry_exceptions: tuple = (Exception,)
    on_retry: Optional[Callable[[int, float, Exception], None]] = None


def calculate_delay(
    attempt: int,
    config: RetryConfig,
) -> float:
    """
    Calculate delay before next retry.

    Args:
        attempt: Attempt that just failed (1-based)
        config: Retry configuration

    Returns:
        Delay in seconds, doubling from base_delay (2, 4, 8 with base 2)
    """
    delay = config.base_delay * (2 ** (attempt - 1))
    return min(delay, config.max_delay)


def should_retry(
    exception: Exception,
    config: RetryConfig,
) -> bool:
    """
    Check if exception should trigger retry.

    Args:
        exception: The exception that occurred
        config: Retry configuration

    Returns:
        True if should retry
    """
    return isinstance(exception, config.retry_exceptions)


async def call_with_retry(
    func: Callable[[], Awaitable[T]],
    config: Optional[RetryConfig] = None,
    sleep: SleepFunc = asyncio.sleep,
) -> T:
    """
    Await func until it succeeds or the attempt budget is spent.

    Exceptions that should not be retried propagate on the first occurrence.
    Once max_attempts is reached the last exception is re-raised.

    Args:
        func: Zero-argument coroutine function
        config: Retry configuration (defaults if not provided)
        sleep: Awaitable sleep used between attempts

    Returns:
        Result of the first successful call
    """
    if config is None:
        config = RetryConfig()

    name = getattr(func, "__name__", "operation")
    attempt = 0
    while True:
        attempt += 1
        try:
            return await func()

        except Exception as e:
            if not should_retry(e, config):
                logger.debug(f"Not retrying {name}: {e}")
                raise

            if attempt >= config.max_attempts:
                logger.warning(
                    f"Max attempts ({config.max_attempts}) exceeded for {name}"
                )
                raise

            delay = calculate_delay(attempt, config)
            logger.info(
                f"Retry {attempt}/{config.max_attempts - 1} for {name} "
                f"in {delay:.2f}s: {e}"
            )

            if config.on_retry:
                config.on_retry(attempt, delay, e)

            await sleep(delay)
