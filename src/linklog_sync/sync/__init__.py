"""Durable write-reconciliation engine.

Public API for persisting profile snapshots to the spreadsheet endpoint
with an offline queue that survives restarts.

Architecture
------------
Leaf-first:

- ``state``       -- ``JsonStore``: atomic whole-document JSON persistence.
- ``models``      -- ``Record``, ``IndexEntry``, ``QueueItem``,
  ``SendResult``, ``WriteOutcome``, ``DrainReport``: data contracts.
- ``index``       -- ``LocalIndex``: profile URL -> remote row.
- ``queue``       -- ``DurableQueue``: persisted FIFO of pending writes,
  ``backoff_delay``.
- ``coordinator`` -- ``WriteCoordinator``: immediate write, queue fallback.
- ``drain``       -- ``QueueDrainer``: one pass over the queue with retry
  budgets and backoff.
- ``scheduler``   -- ``ReconciliationScheduler``: idle/draining state
  machine, timer and wake-ups.
- ``engine``      -- ``SyncEngine``: wires the above for one state dir.
- ``reporter``    -- human-readable and JSON formatting.

Delivery is at-least-once.  The endpoint must upsert keyed by
``profileUrl`` so that a replayed write never duplicates a row.
"""

from .coordinator import WriteCoordinator
from .drain import QueueDrainer
from .engine import SyncEngine
from .index import LocalIndex
from .models import (
    DrainAction,
    DrainReport,
    ErrorKind,
    IndexEntry,
    QueueItem,
    Record,
    SendResult,
    WriteMode,
    WriteOutcome,
)
from .queue import DurableQueue, backoff_delay
from .reporter import (
    format_drain_report,
    format_queue_status,
    format_write_outcome,
    report_to_json,
)
from .scheduler import ReconciliationScheduler, SchedulerState
from .state import JsonStore

__all__ = [
    "DrainAction",
    "DrainReport",
    "DurableQueue",
    "ErrorKind",
    "IndexEntry",
    "JsonStore",
    "LocalIndex",
    "QueueDrainer",
    "QueueItem",
    "ReconciliationScheduler",
    "Record",
    "SchedulerState",
    "SendResult",
    "SyncEngine",
    "WriteCoordinator",
    "WriteMode",
    "WriteOutcome",
    "backoff_delay",
    "format_drain_report",
    "format_queue_status",
    "format_write_outcome",
    "report_to_json",
]
