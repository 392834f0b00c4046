"""Queue tool handlers for MCP server.

Defines two tools:

- ``queue_status`` -- pending writes, index size and scheduler state.
- ``flush_queue`` -- run a drain pass now.
"""

from __future__ import annotations

import logging
from typing import Any

import mcp.types as types

from ...sync.engine import SyncEngine
from ...sync.reporter import (
    format_drain_report,
    format_queue_status,
    report_to_json,
)
from ...sync.scheduler import SchedulerState
from .errors import build_error_response
from .registry import QUEUE_ADMIN, QUEUE_VIEW, ToolSpec

logger = logging.getLogger(__name__)


QUEUE_TOOLS: list[types.Tool] = [
    types.Tool(
        name="queue_status",
        description=(
            "Show pending writes (retry count and last error per profile), "
            "number of indexed profiles and whether a drain is running."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
    types.Tool(
        name="flush_queue",
        description=(
            "Retry all pending writes now instead of waiting for the next "
            "scheduled drain. Items that keep failing are dropped once their "
            "retry budget is spent."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=True,
            idempotentHint=False,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
]


async def _handle_queue_status(
    engine: SyncEngine, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``queue_status`` tool."""
    status = engine.status()
    return types.CallToolResult(
        content=[
            types.TextContent(type="text", text=format_queue_status(status))
        ],
        structuredContent=status,
    )


def _coalesced() -> types.CallToolResult:
    return types.CallToolResult(
        content=[
            types.TextContent(
                type="text",
                text="Drain already in progress; pending writes are being retried.",
            )
        ],
        structuredContent={"coalesced": True},
    )


async def _handle_flush_queue(
    engine: SyncEngine, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``flush_queue`` tool."""
    scheduler = engine.scheduler
    if scheduler.state is SchedulerState.DRAINING:
        return _coalesced()

    report = await scheduler.request_drain("manual")
    if report is None:
        if scheduler.state is SchedulerState.DRAINING:
            return _coalesced()
        return build_error_response(
            "server_error",
            "Drain pass failed",
            "Check the service log; pending writes stay queued.",
        )

    return types.CallToolResult(
        content=[
            types.TextContent(type="text", text=format_drain_report(report))
        ],
        structuredContent=report_to_json(report),
    )


QUEUE_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=QUEUE_TOOLS[0],
        permissions=frozenset({QUEUE_VIEW}),
        handler=_handle_queue_status,
    ),
    ToolSpec(
        tool=QUEUE_TOOLS[1],
        permissions=frozenset({QUEUE_ADMIN}),
        handler=_handle_flush_queue,
    ),
]
