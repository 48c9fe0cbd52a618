"""Async/sync bridge with proper event loop handling.

The dispatch path is async (channel senders do network I/O) while the
scheduler worker threads and CLI commands are synchronous. ``run_async`` is
the single bridge between the two.

Usage:
    result = run_async(service.run_scheduled_notifications())

    if is_async_context():
        result = await coro_fn()
    else:
        result = run_async(coro_fn())
"""

import asyncio
import concurrent.futures
import threading
from collections.abc import Coroutine
from typing import Any, TypeVar

from payremind.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def is_async_context() -> bool:
    """Check if currently running in an async context.

    Returns:
        True if there's a running event loop in current thread
    """
    try:
        asyncio.get_running_loop()
        return True
    except RuntimeError:
        return False


def run_async(
    coro: Coroutine[Any, Any, T],
    *,
    debug: bool = False,
) -> T:
    """Execute async coroutine in sync context.

    When called from a thread that already runs an event loop (async test
    frameworks, embedding applications) the coroutine is executed on a fresh
    loop in a helper thread instead.

    Args:
        coro: Async coroutine to execute
        debug: Enable debug mode for event loop (default: False)

    Returns:
        The return value of the coroutine

    Raises:
        Any exception raised by the coroutine
    """
    if is_async_context():
        logger.debug(
            "nested_event_loop_detected",
            thread=threading.current_thread().name,
        )
        return _run_in_thread(coro)

    try:
        return asyncio.run(coro, debug=debug)
    except Exception as e:
        logger.error(
            "async_bridge_failed",
            error=str(e),
            error_type=type(e).__name__,
        )
        raise


def _run_in_thread(coro: Coroutine[Any, Any, T]) -> T:
    """Run coroutine in a new thread with its own event loop."""

    def run_in_new_loop():
        new_loop = asyncio.new_event_loop()
        asyncio.set_event_loop(new_loop)
        try:
            return new_loop.run_until_complete(coro)
        finally:
            new_loop.close()

    with concurrent.futures.ThreadPoolExecutor(max_workers=1) as executor:
        future = executor.submit(run_in_new_loop)
        return future.result()
