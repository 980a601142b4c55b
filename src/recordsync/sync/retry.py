"""Fixed-delay retry for per-record processing.

This module provides:
- retry_call: run a function up to N times with a delay between attempts
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_DELAY = 5.0  # seconds


def retry_call(
    func: Callable[[], Any],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    delay: float = DEFAULT_DELAY,
    retryable_exceptions: tuple[type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
    description: str = "call",
) -> Any:
    """Execute a function, retrying on failure.

    Args:
        func: Function to execute.
        max_attempts: Total attempts; values below 1 mean a single attempt.
        delay: Seconds to wait between attempts.
        retryable_exceptions: Exception types that trigger another attempt.
        sleep: Sleep function (replaced in tests).
        description: What is being retried, for log messages.

    Returns:
        Result of the first successful attempt.

    Raises:
        The exception of the last attempt if every attempt fails.
    """
    attempts = max(1, max_attempts)

    for attempt in range(1, attempts + 1):
        try:
            return func()
        except retryable_exceptions as e:
            if attempt == attempts:
                if attempts > 1:
                    logger.warning("All %d attempts of %s failed: %s", attempts, description, e)
                raise

            logger.info(
                "Attempt %d/%d of %s failed: %s. Retrying in %.1fs",
                attempt,
                attempts,
                description,
                e,
                delay,
            )
            if delay > 0:
                sleep(delay)

    raise RuntimeError("Unexpected retry loop exit")
