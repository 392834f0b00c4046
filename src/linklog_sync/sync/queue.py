"""Durable FIFO queue of pending writes.

The queue is one JSON document (``queue.json``).  ``enqueue`` appends under
the store lock; ``drain_all`` reads the whole queue, hands every item to a
processing callback in FIFO order, and rewrites the document once at the
end with the surviving items.  Nothing is persisted mid-drain, so a crash
during a pass at worst replays writes that already succeeded, which the
remote endpoint absorbs because it upserts by profile URL.

Items enqueued while a drain pass is running are not part of that pass and
are kept, after the survivors, when the pass rewrites the document.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from pathlib import Path

from .models import QueueItem
from .state import JsonStore, Store

logger = logging.getLogger(__name__)

QUEUE_VERSION = 1

DEFAULT_BACKOFF_BASE_MS = 1000
DEFAULT_BACKOFF_MAX_MS = 30000


def backoff_delay(
    retry_count: int,
    base_ms: int = DEFAULT_BACKOFF_BASE_MS,
    max_ms: int = DEFAULT_BACKOFF_MAX_MS,
) -> float:
    """Seconds to wait before retrying an item with *retry_count* failures.

    ``min(base_ms * 2**n, max_ms)``: with the defaults 2s, 4s, 8s, 16s,
    then 30s for every later retry.  The first attempt (``n == 0``) does
    not wait.
    """
    if retry_count <= 0:
        return 0.0
    return min(base_ms * 2**retry_count, max_ms) / 1000.0


def _empty_queue() -> dict:
    return {"version": QUEUE_VERSION, "items": []}


class DurableQueue:
    """Ordered, persisted list of pending write intents.

    Args:
        store: Persistence backend holding the queue document.
    """

    def __init__(self, store: Store[dict]) -> None:
        self._store = store
        self._drain_lock = threading.Lock()

    @classmethod
    def open(cls, state_dir: Path) -> DurableQueue:
        """Open the queue stored as ``queue.json`` in *state_dir*."""
        return cls(JsonStore(state_dir, "queue", _empty_queue))

    def enqueue(self, item: QueueItem) -> None:
        """Append *item* to the tail of the persisted queue."""
        raw = item.model_dump(mode="json")

        def _append(document: dict) -> dict:
            document.setdefault("items", []).append(raw)
            return document

        self._store.update(_append)
        logger.info(
            "Queued %s write for %s", item.mode.value, item.record.key
        )

    def items(self) -> list[QueueItem]:
        """Snapshot of the persisted queue in FIFO order."""
        document = self._store.load()
        return [
            QueueItem.model_validate(raw)
            for raw in document.get("items", [])
        ]

    def __len__(self) -> int:
        return len(self._store.load().get("items", []))

    @property
    def draining(self) -> bool:
        """Whether a drain pass currently holds the queue."""
        return self._drain_lock.locked()

    def drain_all(
        self, process: Callable[[QueueItem], QueueItem | None]
    ) -> int:
        """Process every queued item once and persist the survivors.

        Args:
            process: Called once per item in FIFO order.  Returns the item
                to keep (typically with its retry counter incremented) or
                ``None`` to remove it.

        Returns:
            Number of items in the queue after the pass.
        """
        with self._drain_lock:
            snapshot = self.items()
            if not snapshot:
                return 0

            survivors: list[QueueItem] = []
            for item in snapshot:
                kept = process(item)
                if kept is not None:
                    survivors.append(kept)

            processed_ids = {item.id for item in snapshot}
            kept_raw = [item.model_dump(mode="json") for item in survivors]

            def _rewrite(document: dict) -> dict:
                late = [
                    raw
                    for raw in document.get("items", [])
                    if raw.get("id") not in processed_ids
                ]
                document["items"] = kept_raw + late
                return document

            document = self._store.update(_rewrite)
            remaining = len(document["items"])
            logger.debug(
                "Drain rewrote queue: %d processed, %d remaining",
                len(snapshot),
                remaining,
            )
            return remaining
