"""Retry helpers for idempotent store reads."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Tuple, Type, TypeVar

from ..core.constants import (
    DEFAULT_READ_RETRY_ATTEMPTS,
    DEFAULT_READ_RETRY_BASE_DELAY,
    DEFAULT_READ_RETRY_MAX_DELAY,
)
from ..core.exceptions import NetworkError
from .app_logging import get_logger

T = TypeVar("T")

_logger = get_logger(__name__)


async def retry_with_backoff(
    func: Callable[[], Awaitable[T]],
    *,
    attempts: int = DEFAULT_READ_RETRY_ATTEMPTS,
    base_delay: float = DEFAULT_READ_RETRY_BASE_DELAY,
    max_total_delay: float = DEFAULT_READ_RETRY_MAX_DELAY,
    retry_on: Tuple[Type[BaseException], ...] = (NetworkError,),
) -> T:
    """Await ``func`` with exponential backoff.

    Only exceptions listed in ``retry_on`` are retried; anything else
    propagates on the first attempt. Never use this for writes: a write that
    timed out may already have been applied.
    """

    attempts = max(1, int(attempts))
    total_delay = 0.0
    for attempt in range(1, attempts + 1):
        try:
            return await func()
        except retry_on as exc:
            _logger.warning("transient read failed (attempt %d/%d): %s", attempt, attempts, exc)
            if attempt >= attempts or total_delay >= max_total_delay:
                raise
            delay = min(base_delay * (2 ** (attempt - 1)), max_total_delay - total_delay)
            if delay > 0:
                await asyncio.sleep(delay)
                total_delay += delay
    raise RuntimeError("retry_with_backoff exhausted without a result")


__all__ = ["retry_with_backoff"]
