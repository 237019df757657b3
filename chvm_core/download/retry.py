"""Retry helper with exponential backoff."""

from __future__ import annotations

import logging
import time
from typing import Callable, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def retry_with_backoff(
    operation: Callable[[], T],
    *,
    max_retries: int = 3,
    initial_delay: float = 1.0,
    backoff_factor: float = 2.0,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``operation`` up to ``max_retries + 1`` times and re-raise the last error."""
    retries = max(int(max_retries), 0)
    attempt = 0
    while True:
        try:
            return operation()
        except retry_on as exc:
            if attempt >= retries:
                raise
            delay = initial_delay * (backoff_factor ** attempt)
            logger.debug("attempt %s/%s failed (%s); retrying in %.2fs", attempt + 1, retries + 1, exc, delay)
            sleep(delay)
        attempt += 1
