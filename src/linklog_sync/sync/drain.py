"""One drain pass over the durable queue.

``QueueDrainer.drain`` walks the queue in FIFO order, waits out each item's
backoff, sends it through the same sender the write coordinator uses, and
decides per item:

* success            -> index updated, item removed
* terminal failure   -> item dropped and logged
* retryable failure  -> retry counter incremented and item kept, unless the
  counter reaches ``max_retries``, in which case the item is dropped and
  logged as a lost write (``queue_exhausted``)

Failures never escape the pass; an unexpected exception while handling an
item counts as a retryable failure for that item.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from .coordinator import Sender
from .index import LocalIndex
from .models import (
    DrainAction,
    DrainReport,
    ErrorKind,
    ItemResult,
    QueueItem,
    utc_now_iso,
)
from .queue import (
    DEFAULT_BACKOFF_BASE_MS,
    DEFAULT_BACKOFF_MAX_MS,
    DurableQueue,
    backoff_delay,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 5


class QueueDrainer:
    """Drain the queue through a sender with per-item retry budgets.

    Args:
        queue: The durable queue to drain.
        index: Local index updated on each success.
        sender: Performs the HTTP attempts.  Bound once per pass.
        max_retries: Retry ceiling per item.
        backoff_base_ms: Backoff base in milliseconds.
        backoff_max_ms: Backoff cap in milliseconds.
        sleep: Replacement for the backoff wait, mainly for tests.  By
            default the wait is interruptible by ``stop()``.
    """

    def __init__(
        self,
        queue: DurableQueue,
        index: LocalIndex,
        sender: Sender,
        max_retries: int = DEFAULT_MAX_RETRIES,
        backoff_base_ms: int = DEFAULT_BACKOFF_BASE_MS,
        backoff_max_ms: int = DEFAULT_BACKOFF_MAX_MS,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self.queue = queue
        self.index = index
        self.sender = sender
        self.max_retries = max_retries
        self.backoff_base_ms = backoff_base_ms
        self.backoff_max_ms = backoff_max_ms
        self._sleep = sleep
        self._stopping = threading.Event()

    def stop(self) -> None:
        """Leave the remaining items of a running pass untouched.

        The item in flight finishes its request; items not yet attempted
        keep their current retry counter.
        """
        self._stopping.set()

    def resume(self) -> None:
        """Allow passes again after ``stop()``."""
        self._stopping.clear()

    def drain(self) -> DrainReport:
        """Run one pass over the whole queue.

        Returns:
            A ``DrainReport`` with per-item results and the queue length
            after the pass.
        """
        started_at = utc_now_iso()
        sender = self.sender
        results: list[ItemResult] = []

        def _process(item: QueueItem) -> QueueItem | None:
            if self._stopping.is_set():
                return item
            if self._wait(item.retry_count):
                return item
            try:
                result, kept = self._attempt(item, sender)
            except Exception as exc:
                logger.exception(
                    "Unexpected error draining %s", item.record.key
                )
                result, kept = self._retry_or_drop(item, str(exc), None)
            results.append(result)
            return kept

        remaining = self.queue.drain_all(_process)
        report = DrainReport(
            started_at=started_at,
            completed_at=utc_now_iso(),
            results=results,
            remaining=remaining,
        )
        if results:
            logger.info(report.summary())
        return report

    # ------------------------------------------------------------------
    # Per-item handling
    # ------------------------------------------------------------------

    def _wait(self, retry_count: int) -> bool:
        """Wait out the backoff; return True if a stop was requested."""
        delay = backoff_delay(
            retry_count, self.backoff_base_ms, self.backoff_max_ms
        )
        if delay <= 0:
            return False
        logger.debug("Backing off %.1fs (retry %d)", delay, retry_count)
        if self._sleep is not None:
            self._sleep(delay)
            return self._stopping.is_set()
        return self._stopping.wait(delay)

    def _attempt(
        self, item: QueueItem, sender: Sender
    ) -> tuple[ItemResult, QueueItem | None]:
        record = item.record
        result = sender.send(record, item.mode)

        if result.ok:
            self.index.upsert_entry(record.key, result.remote_id)
            logger.info(
                "Synced queued %s for %s (row %s)",
                item.mode.value,
                record.key,
                result.remote_id,
            )
            return (
                ItemResult(
                    profile_url=record.key,
                    mode=item.mode,
                    action=DrainAction.SYNCED,
                    retry_count=item.retry_count,
                ),
                None,
            )

        error = result.error
        if not error.retryable:
            logger.error(
                "Dropping queued %s for %s (%s): %s",
                item.mode.value,
                record.key,
                error.kind.value,
                error.message,
            )
            return (
                ItemResult(
                    profile_url=record.key,
                    mode=item.mode,
                    action=DrainAction.DROPPED,
                    retry_count=item.retry_count,
                    error=error.message,
                    error_kind=error.kind,
                ),
                None,
            )

        return self._retry_or_drop(item, error.message, error.kind)

    def _retry_or_drop(
        self,
        item: QueueItem,
        message: str,
        kind: ErrorKind | None,
    ) -> tuple[ItemResult, QueueItem | None]:
        retried = item.next_attempt(message)
        record = item.record

        if retried.retry_count >= self.max_retries:
            logger.error(
                "Lost write: dropping %s for %s after %d failed attempts: %s",
                item.mode.value,
                record.key,
                retried.retry_count,
                message,
            )
            return (
                ItemResult(
                    profile_url=record.key,
                    mode=item.mode,
                    action=DrainAction.DROPPED,
                    retry_count=retried.retry_count,
                    error=message,
                    error_kind=ErrorKind.QUEUE_EXHAUSTED,
                ),
                None,
            )

        logger.warning(
            "Retry %d/%d for %s failed: %s",
            retried.retry_count,
            self.max_retries,
            record.key,
            message,
        )
        return (
            ItemResult(
                profile_url=record.key,
                mode=item.mode,
                action=DrainAction.REQUEUED,
                retry_count=retried.retry_count,
                error=message,
                error_kind=kind,
            ),
            retried,
        )
