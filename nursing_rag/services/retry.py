# =============================================================================
# Retry & Timeout Combinators
# =============================================================================
#
# `retry_async` re-invokes a fallible coroutine factory with exponential
# backoff and jitter. Every external call site (store probe, agent init,
# embeddings, textbook search, video search) goes through it with its own
# attempt count and base delay:
#
#   delay before attempt k+1 = base * 2^(k-1) * (1 + jitter), jitter ∈ [0, 0.3)
#
#   base=2000ms → ~2s, 4s, 8s, 16s (plus up to 30%)
#
# `run_with_timeout` time-boxes a single awaitable and raises a typed
# timeout error, so tool-level and agent-level timeouts stay distinguishable.
#
# UsageError subclasses are re-raised immediately: a missing embedding id
# or unknown tool fails the same way on every attempt.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
import math
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

from nursing_rag.exceptions import RetryExhaustedError, UsageError

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_JITTER = 0.3


def compute_backoff_ms(
    failed_attempt: int,
    base_delay_ms: int,
    jitter: float | None = None,
) -> int:
    """
    Backoff (in whole milliseconds) to wait after `failed_attempt` failed.

    Args:
        failed_attempt: 1-indexed number of the attempt that just failed.
        base_delay_ms: Delay after the first failure, before jitter.
        jitter: Fraction in [0, 0.3). Drawn uniformly when omitted.
    """
    if jitter is None:
        jitter = random.random() * MAX_JITTER
    return math.floor(base_delay_ms * 2 ** (failed_attempt - 1) * (1 + jitter))


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    label: str,
    max_attempts: int = 5,
    base_delay_ms: int = 2000,
) -> T:
    """
    Await `operation()` until it succeeds or `max_attempts` is reached.

    Args:
        operation: Zero-argument callable returning a fresh awaitable per
            attempt (a coroutine object cannot be awaited twice).
        label: Human-readable name used in logs and the final error.
        max_attempts: Upper bound on invocations of `operation`.
        base_delay_ms: Backoff base, see module header.

    Returns:
        Whatever the first successful attempt returned.

    Raises:
        UsageError: Immediately, without further attempts.
        RetryExhaustedError: After `max_attempts` failures; chained to
            the last underlying exception.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    attempt = 0
    while True:
        attempt += 1
        logger.info("%s - attempt %d/%d", label, attempt, max_attempts)
        try:
            result = await operation()
        except UsageError:
            raise
        except Exception as e:
            logger.error(
                "%s failed on attempt %d/%d: %s",
                label, attempt, max_attempts, e,
            )
            if attempt == max_attempts:
                logger.error("%s failed after %d attempts", label, max_attempts)
                raise RetryExhaustedError(label, max_attempts, e) from e
            delay_ms = compute_backoff_ms(attempt, base_delay_ms)
            logger.info("%s - waiting %dms before retry", label, delay_ms)
            await asyncio.sleep(delay_ms / 1000)
            continue

        if attempt > 1:
            logger.info("%s succeeded on attempt %d", label, attempt)
        return result


async def run_with_timeout(
    awaitable: Awaitable[T],
    timeout_seconds: float,
    error_cls: type[Exception],
    message: str,
) -> T:
    """
    Await with a deadline; on expiry cancel the awaitable and raise
    `error_cls(message)`.

    Cancellation propagates into the awaited call, so `async with`
    session blocks inside it still release their pooled connection.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout_seconds)
    except asyncio.TimeoutError as e:
        raise error_cls(message) from e
