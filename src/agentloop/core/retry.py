"""Backoff for transient model-vendor failures.

A call that hits a rate limit, a dropped connection or a server-side
error is attempted again after a delay. Retries stop at whichever comes
first: ``max_retries`` extra attempts, or the optional ``max_elapsed``
budget counted from the first attempt. When the next delay would end
past that budget the last error is raised at once instead of sleeping,
so an agent run with its own deadline gets the failure while it can
still report it.

A ``retry_after`` hint carried by the error replaces the computed
backoff. Both are capped at ``max_delay``. Cancelling the calling task
interrupts a pending backoff sleep.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

from agentloop.core.errors import (
    ProviderOverloadedError,
    ProviderRateLimitError,
    ProviderTimeoutError,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from agentloop.config.schema import ProviderConfig

T = TypeVar("T")

logger = logging.getLogger(__name__)

_RETRYABLE_TYPES: tuple[type[Exception], ...] = (
    ProviderRateLimitError,
    ProviderTimeoutError,
    ProviderOverloadedError,
)


@dataclass(frozen=True, slots=True)
class RetryConfig:
    """Retry limits for one LLM client."""

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    jitter: bool = True
    max_elapsed: float | None = None

    @classmethod
    def from_provider(cls, provider: ProviderConfig) -> RetryConfig:
        """Limits from a ``[providers.<vendor>]`` settings block."""
        return cls(
            max_retries=provider.max_retries,
            base_delay=provider.retry_base_delay,
            max_delay=provider.retry_max_delay,
            max_elapsed=provider.retry_max_elapsed_seconds,
        )


def is_retryable(error: BaseException) -> bool:
    return isinstance(error, _RETRYABLE_TYPES)


def backoff_delay(attempt: int, config: RetryConfig, error: Exception) -> float:
    """Seconds to wait after failed attempt number ``attempt`` (0-based)."""
    hint = getattr(error, "retry_after", None)
    if hint is not None:
        delay = float(hint)
    else:
        delay = config.base_delay * 2**attempt
        if config.jitter:
            delay *= random.uniform(0.5, 1.5)
    return min(delay, config.max_delay)


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    on_retry: Callable[[int, float, Exception], None] | None = None,
) -> T:
    """Await ``fn()`` until it succeeds or a retry limit is reached.

    Only rate-limit, timeout and overloaded provider errors are retried.
    Anything else, including cancellation, propagates from the attempt
    that raised it.

    Args:
        fn: Zero-arg callable returning a fresh awaitable per attempt.
        config: Retry limits. Defaults to ``RetryConfig()``.
        on_retry: Called as ``on_retry(retry_number, delay, error)``
            just before each backoff sleep.

    Raises:
        The last error once retries are exhausted or the next delay
        would overrun ``config.max_elapsed``.
    """
    cfg = config or RetryConfig()
    loop = asyncio.get_running_loop()
    give_up_at = None if cfg.max_elapsed is None else loop.time() + cfg.max_elapsed
    attempt = 0

    while True:
        try:
            return await fn()
        except Exception as e:
            if not is_retryable(e) or attempt >= cfg.max_retries:
                raise
            delay = backoff_delay(attempt, cfg, e)
            if give_up_at is not None and loop.time() + delay > give_up_at:
                logger.debug(
                    "Giving up after %s: %.2fs backoff would exceed the %.2fs retry budget",
                    e,
                    delay,
                    cfg.max_elapsed,
                )
                raise
            attempt += 1
            logger.debug(
                "Retry %d/%d in %.2fs after %s", attempt, cfg.max_retries, delay, e
            )
            if on_retry is not None:
                on_retry(attempt, delay, e)
            await asyncio.sleep(delay)
