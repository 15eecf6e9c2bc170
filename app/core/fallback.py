"""Timeout/retry wrapper that degrades to fallback data.

Used by read paths that should render something (mock or empty data) when
the database is slow or unavailable, instead of failing the page.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, TypeVar

from loguru import logger

T = TypeVar("T")


class OperationTimeoutError(TimeoutError):
    """Raised when a wrapped operation exceeds its timeout."""


def _run_with_timeout(operation: Callable[[], T], timeout_seconds: float) -> T:
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="fallback")
    try:
        future = executor.submit(operation)
        try:
            return future.result(timeout=timeout_seconds)
        except FutureTimeoutError as e:
            future.cancel()
            raise OperationTimeoutError(f"Operation timed out after {timeout_seconds}s") from e
    finally:
        # Do not block on a timed-out worker
        executor.shutdown(wait=False)


def execute_with_fallback(
    operation: Callable[[], T],
    fallback: T | Callable[[], T],
    *,
    timeout_seconds: float = 10.0,
    retries: int = 2,
    retry_delay_seconds: float = 1.0,
    label: str = "query",
) -> T | Any:
    """Run operation with a timeout and fixed-delay retries, falling back on failure.

    The operation is attempted ``retries + 1`` times. Every error class is
    treated the same way. When all attempts fail the fallback is returned;
    a callable fallback is invoked lazily.

    Args:
        operation: Zero-argument callable doing the real work
        fallback: Value (or factory) returned after the last failed attempt
        timeout_seconds: Per-attempt timeout
        retries: Number of retries after the first attempt
        retry_delay_seconds: Fixed delay between attempts
        label: Name used in log messages

    Returns:
        The operation result, or the fallback data
    """
    last_error: Exception | None = None

    for attempt in range(retries + 1):
        if attempt > 0:
            logger.info(f"[FALLBACK] Retry attempt {attempt}/{retries} for {label} after {retry_delay_seconds}s delay")
            time.sleep(retry_delay_seconds)
        try:
            return _run_with_timeout(operation, timeout_seconds)
        except Exception as e:
            last_error = e
            logger.warning(f"[FALLBACK] {label} failed (attempt {attempt + 1}/{retries + 1}): {type(e).__name__}: {e}")

    logger.error(f"[FALLBACK] {label} failed after all retry attempts, using fallback data. Last error: {last_error}")
    if callable(fallback):
        return fallback()
    return fallback
