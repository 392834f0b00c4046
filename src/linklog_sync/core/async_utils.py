"""Run blocking engine calls from async MCP handlers.

The engine does file I/O and HTTP on the calling thread, so handlers hand
it to a worker thread.  Row writes go through ``run_sync_limited`` to cap
how many requests hit the endpoint at once; drain passes and connection checks use
``run_sync``.
"""

import asyncio
import logging
from typing import Any, Callable, TypeVar

T = TypeVar("T")
logger = logging.getLogger(__name__)

# Set by init_semaphore() during server startup.
_semaphore: asyncio.Semaphore | None = None


def init_semaphore(max_parallel: int = 2) -> None:
    """Cap concurrent ``run_sync_limited`` calls at *max_parallel*."""
    global _semaphore
    _semaphore = asyncio.Semaphore(max_parallel)
    logger.info("At most %d concurrent row writes", max_parallel)


async def run_sync(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Await ``func(*args, **kwargs)`` on a worker thread."""
    return await asyncio.to_thread(func, *args, **kwargs)


async def run_sync_limited(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Like ``run_sync``, but waits for a slot first.

    Without ``init_semaphore()`` there is no limit.
    """
    if _semaphore is None:
        return await run_sync(func, *args, **kwargs)
    async with _semaphore:
        return await run_sync(func, *args, **kwargs)
