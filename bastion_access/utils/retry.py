"""Bounded retry for async operations."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def retry(
    operation: Callable[[], Awaitable[T]],
    *,
    delay: float,
    max_retries: int,
    should_retry: Callable[[Exception], bool],
) -> T:
    """Run an operation, retrying failures accepted by should_retry.

    The operation is attempted at most ``max_retries + 1`` times. The last
    error is propagated unchanged.

    Args:
        operation: Zero-argument coroutine function to run
        delay: Seconds to wait between attempts
        max_retries: Number of retries allowed after the first attempt
        should_retry: Predicate deciding whether an error is retryable

    Returns:
        Result of the first successful attempt
    """
    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as error:
            if attempt >= max_retries or not should_retry(error):
                raise
            attempt += 1
            logger.debug(f"Retrying after {type(error).__name__} in {delay}s (retry {attempt}/{max_retries})")
            await asyncio.sleep(delay)
