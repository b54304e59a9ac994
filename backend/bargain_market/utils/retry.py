"""
Bounded retry for lost races.

WHAT: Re-run an operation that failed with ConcurrentModificationException
WHY: The losing side of a race may simply retry against the new state
HOW: Fixed attempt budget from settings with exponential backoff between tries
"""

import time
from typing import Callable, TypeVar

from ..core.config import settings
from .exceptions import ConcurrentModificationException
from .logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def retry_on_conflict(
    operation: Callable[[], T],
    attempts: int | None = None,
    base_delay: float = 0.05
) -> T:
    """
    Call ``operation`` until it stops raising ConcurrentModificationException.

    Args:
        operation: Zero-argument callable
        attempts: Total tries, defaults to CONCURRENT_MODIFICATION_RETRIES
        base_delay: Seconds before the second try, doubled afterwards

    Returns:
        Whatever ``operation`` returns

    Raises:
        ConcurrentModificationException: still conflicting after the last try
    """
    max_attempts = attempts or settings.CONCURRENT_MODIFICATION_RETRIES
    for attempt in range(1, max_attempts + 1):
        try:
            return operation()
        except ConcurrentModificationException as e:
            if attempt == max_attempts:
                logger.error(f"Giving up after {attempt} conflicting attempts: {e.message}")
                raise
            delay = base_delay * (2 ** (attempt - 1))
            logger.warning(f"Conflict on attempt {attempt}/{max_attempts}, retrying in {delay:.2f}s")
            time.sleep(delay)

    raise RuntimeError("unreachable")  # pragma: no cover
