"""Bounded retry with exponential backoff for transient network failures.

The token exchanger and resource client never retry on their own. Workflows
wrap individual remote calls with :func:`call_with_retry` instead.
"""

import logging
import random
import time
from collections.abc import Callable
from typing import TypeVar

from oicmig.core.errors import NetworkError
from oicmig.core.settings import RetrySettings

logger = logging.getLogger(__name__)

R = TypeVar("R")


def backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Return ``min(max_delay, base * 2**attempt)`` scaled by uniform(0.5, 1.0)."""
    delay = min(max_delay, base_delay * (2**attempt))
    return delay * random.uniform(0.5, 1.0)


def call_with_retry(
    func: Callable[[], R],
    policy: RetrySettings,
    retry_on: tuple[type[Exception], ...] = (NetworkError,),
    label: str = "",
) -> R:
    """Call ``func`` up to ``policy.max_attempts`` times; re-raise the last error."""
    attempts = max(1, policy.max_attempts)
    name = label or getattr(func, "__name__", repr(func))

    for attempt in range(attempts):
        try:
            return func()
        except retry_on as exc:
            if attempt + 1 >= attempts:
                raise
            delay = backoff_delay(attempt, policy.base_delay, policy.max_delay)
            logger.warning(
                "Retry %d/%d for %s (%s: %s), waiting %.1fs",
                attempt + 1,
                attempts - 1,
                name,
                type(exc).__name__,
                exc,
                delay,
            )
            time.sleep(delay)
    raise AssertionError("unreachable")
