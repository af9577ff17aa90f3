"""Bounded retry with exponential backoff for storage and catalog calls."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from pizzeria_media.config import RetryOptions, logger
from pizzeria_media.core.errors import ClassifiedError, ErrorKind, classify

T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[Any]]

# Unknown failures get a single retry regardless of the configured budget.
UNKNOWN_ERROR_RETRIES = 1


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, ClassifiedError) and exc.retryable


def _stop_unknown_early(retry_state: RetryCallState) -> bool:
    outcome = retry_state.outcome
    if outcome is None or not outcome.failed:
        return False
    exc = outcome.exception()
    return (
        isinstance(exc, ClassifiedError)
        and exc.kind is ErrorKind.UNKNOWN
        and retry_state.attempt_number > UNKNOWN_ERROR_RETRIES
    )


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    options: Optional[RetryOptions] = None,
    *,
    layer: Optional[str] = None,
    sleep: SleepFn = asyncio.sleep,
) -> T:
    """
    Run ``operation`` with bounded retries.

    Each failure is classified first; non-retryable errors are raised at
    once. Retryable ones are retried up to ``options.max_retries`` times,
    waiting ``min(base_delay * multiplier ** attempt, max_delay)`` between
    attempts.

    Args:
        operation: Zero-argument coroutine factory
        options: Retry parameters (defaults: 3 retries, 1s base, 10s cap, x2)
        layer: Component name passed to the classifier
        sleep: Awaitable sleep used between attempts

    Returns:
        The operation's result

    Raises:
        ClassifiedError: The last classified failure
    """
    options = options or RetryOptions()

    async def attempt() -> T:
        try:
            return await operation()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            raise classify(exc, layer) from exc

    retrying = AsyncRetrying(
        stop=stop_after_attempt(options.max_retries + 1) | _stop_unknown_early,
        wait=wait_exponential(
            multiplier=options.base_delay,
            exp_base=options.backoff_multiplier,
            min=0,
            max=options.max_delay,
        ),
        retry=retry_if_exception(_is_retryable),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        sleep=sleep,
        reraise=True,
    )
    return await retrying(attempt)
