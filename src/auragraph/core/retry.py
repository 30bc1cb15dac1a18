"""Caller-side retry for transient storage failures."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

from auragraph.errors import TransientStorageError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    attempts: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 10.0,
    jitter: float = 0.1,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run ``operation``, retrying only ``TransientStorageError``.

    The delay before retry ``n`` (0-based) is ``base_delay * 2**n`` capped at
    ``max_delay``, plus up to ``jitter`` seconds of random spread. The last
    transient error is re-raised once attempts are exhausted; every other
    exception propagates immediately.
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")

    for attempt in range(attempts):
        try:
            return await operation()
        except TransientStorageError as e:
            if attempt == attempts - 1:
                logger.error("Storage operation failed after %d attempts: %s", attempts, e)
                raise
            delay = min(base_delay * (2**attempt), max_delay) + random.uniform(0, jitter)
            logger.warning(
                "Transient storage error (attempt %d/%d), retrying in %.2fs: %s",
                attempt + 1,
                attempts,
                delay,
                e,
            )
            await sleep(delay)

    raise AssertionError("unreachable")
