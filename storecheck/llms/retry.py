from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[Any]]

TRANSIENT_STATUSES = {429, 500, 502, 503, 504}
TRANSIENT_MARKERS = (
    "rate limit",
    "rate-limit",
    "too many requests",
    "resource_exhausted",
    "resource exhausted",
    "overloaded",
    "unavailable",
    "429",
    "503",
)


def is_transient_error(err: BaseException) -> bool:
    """Rate-limited / overloaded / unavailable failures are worth retrying."""
    if isinstance(err, asyncio.TimeoutError):
        return True
    status = getattr(err, "status", None) or getattr(err, "status_code", None)
    if isinstance(status, int) and status in TRANSIENT_STATUSES:
        return True
    msg = str(err).lower()
    return any(m in msg for m in TRANSIENT_MARKERS)


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    initial_delay: float = 1.0,
    *,
    should_retry: Callable[[BaseException], bool] = is_transient_error,
    sleep: Optional[Sleep] = None,
    label: str = "call",
) -> T:
    """
    Invoke `fn` up to `max_retries` times, waiting initial_delay, 2x, 4x ...
    between attempts. Non-transient failures and the final failure are re-raised.
    """
    sleep = sleep or asyncio.sleep
    delay = initial_delay
    attempt = 1
    while True:
        try:
            return await fn()
        except Exception as e:
            if attempt >= max_retries or not should_retry(e):
                raise
            logger.warning(
                "%s failed (attempt %d/%d), retrying in %.1fs: %s",
                label, attempt, max_retries, delay, e,
            )
            await sleep(delay)
            delay *= 2
            attempt += 1
