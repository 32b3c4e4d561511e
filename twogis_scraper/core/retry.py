"""Bounded retry helper shared by every network-dependent scraping step."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRY_BACKOFF_SECONDS = 1.0


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_retries: int,
    label: str,
    *,
    base_delay: Optional[float] = None,
) -> Optional[T]:
    """Run ``operation`` up to ``max_retries`` times with linear backoff.

    Failures are logged, never raised: on exhaustion the caller gets ``None``
    and decides whether the target is skipped.
    """
    attempts = max(1, max_retries)
    base = RETRY_BACKOFF_SECONDS if base_delay is None else base_delay
    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except Exception as exc:  # noqa: BLE001
            if attempt >= attempts:
                logger.error("%s failed after %s attempts: %s", label, attempts, exc)
                return None
            sleep_for = attempt * base
            logger.warning(
                "%s attempt %s/%s failed: %s; retrying in %.1fs", label, attempt, attempts, exc, sleep_for
            )
            await asyncio.sleep(sleep_for)
    return None
