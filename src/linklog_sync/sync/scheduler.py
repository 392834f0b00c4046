"""Reconciliation scheduler.

A two-state machine (``IDLE`` / ``DRAINING``) guarded by one
``asyncio.Lock``.  Three triggers request a drain pass:

* ``start()``       -- a drain on service startup
* the timer task    -- a drain every ``interval`` seconds
* ``notify()``      -- thread-safe wake-up after a failed immediate write

A request that arrives while a pass is running is coalesced into a no-op.
The pass itself runs in a worker thread so blocking HTTP calls never stall
the event loop.  The scheduler never raises: a pass that blows up is logged
and the state returns to ``IDLE``.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from enum import Enum

from ..core.async_utils import run_sync
from .models import DrainReport

logger = logging.getLogger(__name__)

DEFAULT_DRAIN_INTERVAL = 60.0


class SchedulerState(str, Enum):
    """Scheduler state."""

    IDLE = "idle"
    DRAINING = "draining"


class ReconciliationScheduler:
    """Coalesce drain triggers into at most one running pass.

    Args:
        drain: Blocking callable running one pass.
        interval: Seconds between timer-triggered passes.
        cancel: Called on ``stop()`` to cut a running pass short.
        resume: Called on ``start()`` to undo a previous ``cancel``.
    """

    def __init__(
        self,
        drain: Callable[[], DrainReport],
        interval: float = DEFAULT_DRAIN_INTERVAL,
        cancel: Callable[[], None] | None = None,
        resume: Callable[[], None] | None = None,
    ) -> None:
        self._drain = drain
        self._cancel = cancel
        self._resume = resume
        self.interval = interval
        self._lock = asyncio.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._timer_task: asyncio.Task | None = None
        self._pending: set[asyncio.Task] = set()
        self.last_report: DrainReport | None = None

    @property
    def state(self) -> SchedulerState:
        if self._lock.locked():
            return SchedulerState.DRAINING
        return SchedulerState.IDLE

    @property
    def running(self) -> bool:
        """Whether the timer task is active."""
        return self._timer_task is not None and not self._timer_task.done()

    async def request_drain(
        self, reason: str = "manual"
    ) -> DrainReport | None:
        """Run a drain pass unless one is already in progress.

        Returns:
            The pass report, or ``None`` if the request was coalesced or
            the pass failed.
        """
        if self._lock.locked():
            logger.debug("Drain already running, coalescing %s trigger", reason)
            return None

        async with self._lock:
            logger.debug("Drain pass starting (%s)", reason)
            try:
                report = await run_sync(self._drain)
            except Exception:
                logger.exception("Drain pass failed (%s)", reason)
                return None
            self.last_report = report
            return report

    def notify(self, reason: str = "write-failure") -> None:
        """Request a drain from any thread.

        No-op before ``start()`` or after ``stop()``.
        """
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._spawn, reason)

    def _spawn(self, reason: str) -> None:
        task = asyncio.create_task(self.request_drain(reason))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _run_timer(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            await self.request_drain("timer")

    async def start(self) -> None:
        """Drain once for startup and begin periodic wake-ups."""
        if self.running:
            return
        if self._resume is not None:
            self._resume()
        self._loop = asyncio.get_running_loop()
        self._spawn("startup")
        self._timer_task = asyncio.create_task(self._run_timer())
        logger.info(
            "Reconciliation scheduler started (interval %.0fs)", self.interval
        )

    async def stop(self) -> None:
        """Stop the timer and wait for a running pass to wind down."""
        self._loop = None
        if self._cancel is not None:
            self._cancel()
        if self._timer_task is not None:
            self._timer_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._timer_task
            self._timer_task = None
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        logger.info("Reconciliation scheduler stopped")
