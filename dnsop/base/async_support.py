"""
Async support for dnsop.

Provider backends stay synchronous (their SDKs are blocking). The
reconciliation driver awaits them through these helpers so the event loop
keeps serving other records while a provider call is in flight.

Usage::

    from dnsop.base.async_support import async_wrap, call_in_thread

    zones = await async_wrap(provider.list_zones)()
    records = await call_in_thread(provider.list_records, zone_id, timeout=30)
"""

from __future__ import annotations

import asyncio
import functools
from typing import Any, Callable, Coroutine, TypeVar

T = TypeVar("T")


def async_wrap(
    fn: Callable[..., T],
) -> Callable[..., Coroutine[Any, Any, T]]:
    """Return an async version of *fn* that runs it in a worker thread.

    Args:
        fn: A synchronous callable to wrap.

    Returns:
        An async callable with the same parameters and return type.
    """

    @functools.wraps(fn)
    async def _wrapper(*args: Any, **kwargs: Any) -> T:
        return await asyncio.to_thread(fn, *args, **kwargs)

    return _wrapper


async def call_in_thread(fn: Callable[..., T], *args: Any, timeout: float | None = None) -> T:
    """Run *fn* in a worker thread, bounded by *timeout* seconds.

    Cancelling the caller does not interrupt the call: the cancellation is
    re-raised once the call has finished, so a provider write is never
    abandoned half-way through the awaiting coroutine.

    Raises:
        asyncio.TimeoutError: If the call outlives *timeout*. The worker
            thread itself cannot be stopped and runs to completion.
    """
    task = asyncio.ensure_future(asyncio.wait_for(async_wrap(fn)(*args), timeout))
    try:
        return await asyncio.shield(task)
    except asyncio.CancelledError:
        await asyncio.wait([task])
        raise
