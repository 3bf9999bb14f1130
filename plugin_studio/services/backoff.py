"""
Backoff - sleep and exponential-jitter retry helpers for network calls
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

RetryObserver = Callable[[BaseException, int, int], None]


@dataclass(frozen=True)
class RetryPolicy:
    """How often and how patiently an operation is retried"""

    max_retries: int = 4
    base_delay_ms: int = 500

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.base_delay_ms <= 0:
            raise ValueError("base_delay_ms must be > 0")


async def sleep(ms: float) -> None:
    """Sleep for the given number of milliseconds"""
    await asyncio.sleep(ms / 1000)


def compute_delay(policy: RetryPolicy, attempt: int) -> int:
    """Delay in ms before retry number `attempt` (1-based), jittered by 0.75..1.25"""
    jitter = random.uniform(0.75, 1.25)
    return round(policy.base_delay_ms * (2 ** (attempt - 1)) * jitter)


def _log_retry(error: BaseException, attempt: int, delay_ms: int) -> None:
    logger.warning("[Backoff] Retry %d in %dms: %s", attempt, delay_ms, error)


async def with_backoff(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy = RetryPolicy(),
    on_retry: RetryObserver | None = _log_retry,
) -> T:
    """
    Run `operation`, retrying up to `policy.max_retries` extra times.

    Every failure is retried regardless of its type; the last one is
    re-raised once attempts are exhausted. `on_retry` only observes.
    """
    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as e:
            attempt += 1
            if attempt > policy.max_retries:
                raise
            delay = compute_delay(policy, attempt)
            if on_retry is not None:
                on_retry(e, attempt, delay)
            await sleep(delay)
