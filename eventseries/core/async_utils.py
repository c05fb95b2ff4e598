"""Async timeout helpers for eventseries.

The read-only aggregation path races its work against a deadline. Whichever
finishes first determines the result; the abandoned branch is cancelled by
asyncio.wait_for and must not mutate state. Synchronous work inside a raced
coroutine must go through run_in_executor, otherwise it holds the event loop
and the deadline cannot fire.
"""

import asyncio
import contextvars
import functools
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Optional, TypeVar

from eventseries.exceptions import OccurrenceTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def run_with_timeout(
    coro: Awaitable[T],
    timeout: Optional[float],
    operation: str = "operation",
) -> T:
    """Run an awaitable with a wall-clock budget.

    Args:
        coro: Awaitable to execute
        timeout: Timeout in seconds; None disables the budget
        operation: Name used in log and error messages

    Returns:
        Awaitable result

    Raises:
        OccurrenceTimeoutError: If the budget is exceeded
    """
    if timeout is None:
        return await coro

    try:
        return await asyncio.wait_for(coro, timeout=timeout)
    except TimeoutError as e:
        logger.warning("%s timed out after %.2fs", operation, timeout)
        raise OccurrenceTimeoutError(f"{operation} exceeded timeout of {timeout}s") from e


async def run_in_executor(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Run a synchronous function in the loop's default thread pool.

    The caller's context (request id) is copied into the worker thread. When
    the awaiting task is cancelled the thread finishes on its own and its
    result is discarded.
    """
    loop = asyncio.get_running_loop()
    call = functools.partial(contextvars.copy_context().run, func, *args, **kwargs)
    return await loop.run_in_executor(None, call)
