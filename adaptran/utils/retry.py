# -*- coding: utf-8 -*-
"""
Retry with exponential backoff and jitter for upstream calls.

The retry predicate and the delay schedule are per call site, so batch
translation can wait longer than a quick single-word lookup.
"""

import asyncio
import logging
import random
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, Optional, TypeVar

from adaptran.core.exceptions import ParseFailure, UpstreamError

logger = logging.getLogger(__name__)

T = TypeVar("T")

JITTER_RATIO = 0.3


def default_should_retry(error: BaseException, attempt: int) -> bool:
    """
    Decide whether a failure is transient.

    Retries network failures (no status code), HTTP 429 and HTTP 5xx.
    Other 4xx responses and malformed model output are not retried.
    """
    if isinstance(error, ParseFailure):
        return False

    if isinstance(error, UpstreamError):
        return error.retryable

    status = getattr(error, "status_code", None)
    if status is None:
        return True
    return status == 429 or status >= 500


@dataclass
class RetryOptions:
    """Backoff schedule. Delays are in seconds."""
    max_retries: int = 3
    initial_delay: float = 1.0
    backoff_multiplier: float = 2.0
    max_delay: float = 30.0
    should_retry: Callable[[BaseException, int], bool] = default_should_retry
    on_retry: Optional[Callable[[BaseException, int, float], Any]] = None

    def with_overrides(self, **changes) -> "RetryOptions":
        return replace(self, **changes)


def _log_retry(label: str) -> Callable[[BaseException, int, float], None]:
    def on_retry(error: BaseException, attempt: int, delay: float) -> None:
        logger.warning(f"{label}: upstream call failed, retry {attempt} in {delay:.2f}s ({error})")
    return on_retry


DEFAULT_RETRY_OPTIONS = RetryOptions(max_delay=15.0, on_retry=_log_retry("Translation"))
BATCH_RETRY_OPTIONS = RetryOptions(initial_delay=1.5, max_delay=20.0, on_retry=_log_retry("Batch translation"))
QUICK_RETRY_OPTIONS = RetryOptions(max_retries=2, initial_delay=0.5, max_delay=5.0)


def compute_wait(delay: float, max_delay: float, rng: random.Random = None) -> float:
    """Delay plus up to 30% jitter, capped at ``max_delay``."""
    rng = rng or random
    return min(delay + rng.uniform(0, JITTER_RATIO * delay), max_delay)


async def execute(
    operation: Callable[[], Awaitable[T]],
    options: Optional[RetryOptions] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    rng: Optional[random.Random] = None
) -> T:
    """
    Run an async operation, retrying transient failures.

    Args:
        operation: Zero-argument coroutine factory, called once per attempt
        options: Backoff schedule and hooks
        sleep: Awaitable sleep, replaceable in tests
        rng: Random source for jitter

    Returns:
        The operation's result

    Raises:
        The last error once retries are exhausted or the error is not retryable
    """
    options = options or DEFAULT_RETRY_OPTIONS
    delay = options.initial_delay
    attempt = 0

    while True:
        try:
            return await operation()
        except asyncio.CancelledError:
            raise
        except Exception as error:
            if attempt >= options.max_retries or not options.should_retry(error, attempt):
                if attempt:
                    logger.debug(f"Giving up after {attempt} retries: {error}")
                raise

            attempt += 1
            wait = compute_wait(delay, options.max_delay, rng)
            if options.on_retry is not None:
                options.on_retry(error, attempt, wait)

            await sleep(wait)
            delay = min(delay * options.backoff_multiplier, options.max_delay)
