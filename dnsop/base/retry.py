"""
Retry utilities with configurable exponential backoff.

Provider calls are wrapped with :func:`retry`. Coroutine functions are
retried with ``asyncio.sleep`` so the event loop keeps running between
attempts; plain functions block in ``time.sleep``.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from functools import wraps
from typing import Any, Callable, Iterator

from dnsop.base.exceptions import TransientProviderError

logger = logging.getLogger("dnsop")

# Exceptions a provider call may recover from on its own.
_DEFAULT_RETRYABLE: tuple[type[BaseException], ...] = (
    TransientProviderError,
    ConnectionError,
    TimeoutError,
    asyncio.TimeoutError,
)


def backoff_delays(
    max_attempts: int, base_delay: float, max_delay: float, backoff_factor: float
) -> Iterator[float]:
    """Yield the wait after each failed attempt but the last."""
    delay = base_delay
    for _ in range(max_attempts - 1):
        yield delay
        delay = min(delay * backoff_factor, max_delay)


def retry(
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    backoff_factor: float = 2.0,
    retryable_exceptions: tuple[type[BaseException], ...] | None = None,
) -> Callable:
    """Decorator: retry a provider call on transient exceptions.

    Args:
        max_attempts: Total attempts, including the first.
        base_delay: Seconds to wait before the first retry.
        max_delay: Cap on the wait between retries.
        backoff_factor: Multiplier applied to the wait after each retry.
        retryable_exceptions: Exception types that trigger a retry.
            Defaults to TransientProviderError, ConnectionError, TimeoutError.

    Returns:
        Decorated function (sync or async). The last failure is re-raised.
    """
    retryable = retryable_exceptions or _DEFAULT_RETRYABLE

    def _schedule() -> Iterator[float | None]:
        # None marks the final attempt.
        yield from backoff_delays(max_attempts, base_delay, max_delay, backoff_factor)
        yield None

    def _give_up(name: str, exc: BaseException) -> None:
        logger.error("All %d attempts failed for %s: %s", max_attempts, name, exc)

    def _will_retry(name: str, attempt: int, exc: BaseException, delay: float) -> None:
        logger.warning(
            "Attempt %d/%d for %s failed (%s), retrying in %.1fs…",
            attempt,
            max_attempts,
            name,
            exc,
            delay,
        )

    def decorator(fn: Callable) -> Callable:
        name = getattr(fn, "__qualname__", repr(fn))
        if inspect.iscoroutinefunction(fn):

            @wraps(fn)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                for attempt, delay in enumerate(_schedule(), start=1):
                    try:
                        return await fn(*args, **kwargs)
                    except retryable as exc:
                        if delay is None:
                            _give_up(name, exc)
                            raise
                        _will_retry(name, attempt, exc, delay)
                    await asyncio.sleep(delay)

            return async_wrapper

        @wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            for attempt, delay in enumerate(_schedule(), start=1):
                try:
                    return fn(*args, **kwargs)
                except retryable as exc:
                    if delay is None:
                        _give_up(name, exc)
                        raise
                    _will_retry(name, attempt, exc, delay)
                time.sleep(delay)

        return wrapper

    return decorator
