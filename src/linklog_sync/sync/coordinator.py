"""Write coordinator: the per-action entry point.

One call to ``WriteCoordinator.write`` picks the write mode from the local
index, makes one attempt through the sender, and then either records the
remote row (success), queues the record for the scheduler (retryable
failure), or reports the failure as final (``auth_error``,
``client_error``, or an envelope marked terminal).
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Protocol

from .index import LocalIndex
from .models import QueueItem, Record, SendResult, WriteMode, WriteOutcome
from .queue import DurableQueue

logger = logging.getLogger(__name__)


class Sender(Protocol):
    """Anything that performs one classified write attempt."""

    def send(self, record: Record, mode: WriteMode) -> SendResult: ...


def choose_mode(index: LocalIndex, record: Record) -> WriteMode:
    """``update`` if the record's identity was ever synced, else ``append``."""
    if index.lookup(record.key) is None:
        return WriteMode.APPEND
    return WriteMode.UPDATE


class WriteCoordinator:
    """Attempt a write immediately and fall back to the durable queue.

    Args:
        index: Local index consulted for the write mode.
        queue: Queue receiving retryable failures.
        sender: Performs the HTTP attempt.
        on_enqueue: Called (from the calling thread) after a record was
            queued; used to wake the reconciliation scheduler.
    """

    def __init__(
        self,
        index: LocalIndex,
        queue: DurableQueue,
        sender: Sender,
        on_enqueue: Callable[[], None] | None = None,
    ) -> None:
        self.index = index
        self.queue = queue
        self.sender = sender
        self.on_enqueue = on_enqueue

    def write(self, record: Record) -> WriteOutcome:
        """Persist *record*, now if possible, later if the failure is transient.

        Returns:
            ``WriteOutcome`` with the mode used, whether the write succeeded,
            whether it was queued, and the failure message if any.
        """
        mode = choose_mode(self.index, record)
        result = self.sender.send(record, mode)

        if result.ok:
            self.index.upsert_entry(record.key, result.remote_id)
            logger.info(
                "Saved %s (%s, row %s)", record.key, mode.value, result.remote_id
            )
            return WriteOutcome(
                mode=mode, success=True, remote_id=result.remote_id
            )

        error = result.error
        if error.retryable:
            self.queue.enqueue(
                QueueItem(record=record, mode=mode, last_error=error.message)
            )
            logger.warning(
                "Write for %s failed (%s), queued for retry: %s",
                record.key,
                error.kind.value,
                error.message,
            )
            if self.on_enqueue is not None:
                self.on_enqueue()
            return WriteOutcome(
                mode=mode,
                success=False,
                queued=True,
                error=error.message,
                error_kind=error.kind,
            )

        logger.error(
            "Write for %s rejected (%s): %s",
            record.key,
            error.kind.value,
            error.message,
        )
        return WriteOutcome(
            mode=mode,
            success=False,
            queued=False,
            error=error.message,
            error_kind=error.kind,
        )
