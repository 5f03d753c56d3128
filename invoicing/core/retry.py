"""Retry helper for transient invoicing failures."""
import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from invoicing.core.exceptions import InvoicingError


logger = logging.getLogger(__name__)

T = TypeVar("T")


async def retry_async(
    func: Callable[[], Awaitable[T]],
    attempts: int,
    backoff_seconds: float = 0.0,
    operation: str = "operation",
) -> T:
    """
    Run ``func`` up to ``attempts`` times.

    Only InvoicingError subclasses flagged ``retryable`` are retried; anything
    else propagates on the first failure. The delay before retry ``n`` is
    ``backoff_seconds * n``.

    Raises:
        The last exception once attempts are exhausted
    """
    attempts = max(1, attempts)

    for attempt in range(1, attempts + 1):
        try:
            return await func()
        except InvoicingError as e:
            if not e.retryable:
                raise
            if attempt >= attempts:
                logger.error(f"{operation} failed after {attempt} attempts: {e.message}")
                raise
            logger.warning(f"{operation} failed (attempt {attempt}/{attempts}), retrying: {e.message}")
            if backoff_seconds > 0:
                await asyncio.sleep(backoff_seconds * attempt)

    raise RuntimeError("unreachable")  # pragma: no cover
