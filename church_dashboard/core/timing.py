"""Timing utilities for profiling backend list and lookup calls."""

import time
from collections.abc import Generator
from contextlib import contextmanager

from church_dashboard.core.logging import get_logger

logger = get_logger(__name__)

SLOW_REQUEST_MS = 500
VERY_SLOW_REQUEST_MS = 2000


@contextmanager
def timed(operation: str) -> Generator[None]:
    """Log how long the wrapped block took.

    Args:
        operation: Description of the operation being timed.

    Usage:
        with timed("fetch units page 2"):
            payload = await endpoint.fetch(token, params)
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        duration_ms = (time.perf_counter() - start) * 1000
        if duration_ms < SLOW_REQUEST_MS:
            logger.debug(f"[{duration_ms:.2f}ms] {operation}")
        elif duration_ms < VERY_SLOW_REQUEST_MS:
            logger.info(f"[{duration_ms:.2f}ms] {operation} (slow)")
        else:
            logger.warning(f"[{duration_ms:.2f}ms] {operation} (very slow)")
