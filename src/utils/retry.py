"""Bounded retry with fixed delay.

Used for provider calls that fail transiently right after a resource is
created (eventual consistency) or while the API is throttling.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Tuple, Type, TypeVar

from ..errors import RetryExhaustedError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def retry_call(
    func: Callable[[], T],
    description: str,
    attempts: int = 3,
    delay: float = 5.0,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
) -> T:
    """Call ``func`` until it succeeds or ``attempts`` calls have failed.

    Args:
        func: Zero-argument callable to invoke
        description: What the call does, used in log and error messages
        attempts: Maximum number of calls (must be >= 1)
        delay: Seconds to sleep between attempts
        retry_on: Exception types that count as a retryable failure

    Returns:
        Whatever ``func`` returns on its first successful call

    Raises:
        RetryExhaustedError: If every attempt raised a retryable exception
        ValueError: If attempts < 1
    """
    if attempts < 1:
        raise ValueError("attempts must be at least 1")

    last_error: Optional[BaseException] = None
    for attempt in range(1, attempts + 1):
        try:
            return func()
        except retry_on as e:
            last_error = e
            if attempt == attempts:
                break
            logger.warning(f"Could not {description}, retrying in {delay:g}s (attempt {attempt}/{attempts}): {e}")
            time.sleep(delay)

    logger.error(f"Failed to {description} after {attempts} attempts")
    raise RetryExhaustedError(description, attempts, last_error)
