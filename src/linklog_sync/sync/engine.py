"""Sync engine: wires index, queue, coordinator, drainer and scheduler.

``SyncEngine`` is what the service layer holds on to.  It owns one
``LocalIndex`` and one ``DurableQueue`` for a state directory and shares
them between the write coordinator (immediate writes) and the drainer
(queued writes), so both paths update the same persisted collections
through the same sender.

Usage example
-------------
::

    from linklog_sync.config import load_config
    from linklog_sync.core.client import RemoteClient
    from linklog_sync.sync import Record, SyncEngine

    config = load_config()
    engine = SyncEngine.from_config(config, RemoteClient(config))
    await engine.start()
    outcome = engine.write(Record.from_payload(payload))
    ...
    await engine.stop()
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

from .coordinator import Sender, WriteCoordinator
from .drain import DEFAULT_MAX_RETRIES, QueueDrainer
from .index import LocalIndex
from .models import DrainReport, Record, WriteOutcome
from .queue import (
    DEFAULT_BACKOFF_BASE_MS,
    DEFAULT_BACKOFF_MAX_MS,
    DurableQueue,
)
from .scheduler import DEFAULT_DRAIN_INTERVAL, ReconciliationScheduler

if TYPE_CHECKING:
    from ..config import Config

logger = logging.getLogger(__name__)


class SyncEngine:
    """Durable write-reconciliation engine for one state directory.

    Args:
        index: Local index.
        queue: Durable queue.
        sender: Performs the HTTP attempts.
        max_retries: Retry ceiling per queued item.
        backoff_base_ms: Backoff base in milliseconds.
        backoff_max_ms: Backoff cap in milliseconds.
        drain_interval: Seconds between scheduled drain passes.
        sleep: Backoff wait replacement (tests).
    """

    def __init__(
        self,
        index: LocalIndex,
        queue: DurableQueue,
        sender: Sender,
        max_retries: int = DEFAULT_MAX_RETRIES,
        backoff_base_ms: int = DEFAULT_BACKOFF_BASE_MS,
        backoff_max_ms: int = DEFAULT_BACKOFF_MAX_MS,
        drain_interval: float = DEFAULT_DRAIN_INTERVAL,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self.index = index
        self.queue = queue
        # Endpoint settings behind the sender, when built from a Config.
        self.config: Config | None = None
        self.drainer = QueueDrainer(
            queue,
            index,
            sender,
            max_retries=max_retries,
            backoff_base_ms=backoff_base_ms,
            backoff_max_ms=backoff_max_ms,
            sleep=sleep,
        )
        self.scheduler = ReconciliationScheduler(
            self.drainer.drain,
            interval=drain_interval,
            cancel=self.drainer.stop,
            resume=self.drainer.resume,
        )
        self.coordinator = WriteCoordinator(
            index, queue, sender, on_enqueue=self.scheduler.notify
        )

    @classmethod
    def from_config(cls, config: Config, sender: Sender) -> SyncEngine:
        """Open the index and queue in ``config.state_dir``."""
        state_dir = Path(config.state_dir)
        logger.info("Using state directory %s", state_dir.resolve())
        engine = cls(
            LocalIndex.open(state_dir),
            DurableQueue.open(state_dir),
            sender,
            max_retries=config.max_retries,
            backoff_base_ms=config.backoff_base_ms,
            backoff_max_ms=config.backoff_max_ms,
            drain_interval=config.drain_interval,
        )
        engine.config = config
        return engine

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def write(self, record: Record) -> WriteOutcome:
        """Immediate write with queue fallback (see ``WriteCoordinator``)."""
        return self.coordinator.write(record)

    def drain(self) -> DrainReport:
        """Run one drain pass in the calling thread."""
        return self.drainer.drain()

    @property
    def sender(self) -> Sender:
        """Sender used by new writes and passes."""
        return self.coordinator.sender

    def reconfigure(self, sender: Sender, config: Config | None = None) -> None:
        """Use *sender* for subsequent writes and drain passes.

        A pass already running keeps the sender it started with.  Queued
        items keep their mode and retry counter.

        Args:
            sender: The new sender.
            config: Settings *sender* was built from, if any.
        """
        self.coordinator.sender = sender
        self.drainer.sender = sender
        if config is not None:
            self.config = config

    async def start(self) -> None:
        """Start the scheduler (startup drain plus periodic drains)."""
        await self.scheduler.start()

    async def stop(self) -> None:
        """Stop the scheduler."""
        await self.scheduler.stop()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def status(self) -> dict:
        """Snapshot of queue, index and scheduler state."""
        items = self.queue.items()
        last = self.scheduler.last_report
        return {
            "scheduler_state": self.scheduler.state.value,
            "queued": len(items),
            "indexed": len(self.index),
            "items": [
                {
                    "profile_url": item.record.key,
                    "mode": item.mode.value,
                    "retry_count": item.retry_count,
                    "enqueued_at": item.enqueued_at,
                    "last_error": item.last_error,
                }
                for item in items
            ],
            "last_drain": last.completed_at if last else None,
        }
