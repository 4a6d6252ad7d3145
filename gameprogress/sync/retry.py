"""Bounded retry for progress store calls.

Every store call the coordinator makes goes through call_with_retry: one
timeout per attempt, at most max_retries retries, exponential backoff
between them. Only transient failures are retried; anything else
propagates on the first occurrence.

Tier 2 service module: imports from errors (Tier 1) and stdlib.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from gameprogress.errors import TransientStoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_RETRYABLE = (TransientStoreError, TimeoutError, asyncio.TimeoutError, ConnectionError)


def is_retryable(exc: BaseException) -> bool:
    """Checks whether a store error is transient and worth retrying.

    Retries on:
    - TransientStoreError raised by a store implementation
    - TimeoutError (including our own per-attempt timeout)
    - ConnectionError and subclasses (reset, refused, aborted)
    """
    return isinstance(exc, _RETRYABLE)


async def call_with_retry(
    label: str,
    func: Callable[..., Awaitable[T]],
    *args: Any,
    timeout: float,
    max_retries: int,
    backoff_base: float,
) -> T:
    """Awaits ``func(*args)`` with a timeout, retrying transient failures.

    Args:
        label: Short name of the call, for logs ("select_rows").
        func: Async callable to invoke.
        *args: Positional arguments for func.
        timeout: Seconds allowed per attempt.
        max_retries: Retries after the first attempt (total = max_retries + 1).
        backoff_base: Seconds before the first retry; doubles each retry.

    Returns:
        Whatever func returns.

    Raises:
        TransientStoreError: All attempts failed transiently. Chained to
            the last underlying error.
    """
    last_exc: BaseException | None = None
    for attempt in range(max_retries + 1):
        if attempt > 0:
            backoff = backoff_base * (2 ** (attempt - 1))
            logger.warning(
                "Store %s retry %d/%d after %.1fs backoff (%s)",
                label,
                attempt,
                max_retries,
                backoff,
                type(last_exc).__name__,
            )
            await asyncio.sleep(backoff)
        try:
            return await asyncio.wait_for(func(*args), timeout=timeout)
        except Exception as exc:
            if not is_retryable(exc):
                raise
            last_exc = exc

    logger.error("Store %s failed after %d attempts", label, max_retries + 1)
    raise TransientStoreError(
        f"Store call {label!r} failed after {max_retries + 1} attempts"
    ) from last_exc
