"""Record tool handlers for MCP server.

Defines four tools:

- ``save_row`` -- write one profile snapshot (immediate, queued on
  transient failure).
- ``lookup_record`` -- show the index entry for a profile URL.
- ``test_connection`` -- authenticated GET against the endpoint, or against
  candidate settings before they are applied.
- ``update_endpoint`` -- switch the engine to new endpoint settings once
  they pass the same check.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any

import mcp.types as types

from ...config import validate_config
from ...core.async_utils import run_sync, run_sync_limited
from ...core.client import RemoteClient
from ...sync.engine import SyncEngine
from ...sync.models import RECORD_FIELDS, Record
from ...sync.reporter import format_write_outcome
from ...validators import validate_profile_url
from .errors import build_error_response, translate_write_error
from .registry import ENDPOINT_ADMIN, QUEUE_VIEW, ROW_WRITE, ToolSpec

logger = logging.getLogger(__name__)


_FIELD_DESCRIPTIONS = {
    "name": "Display name",
    "title": "Job title",
    "company": "Company name",
    "profile_url": "Canonical profile URL (identity of the row)",
    "requested_at": "When the connection request was made",
    "follow_up_date": "Follow-up date; normalised to YYYY-MM-DD",
    "tag": "Free-form tag",
    "notes": "Free-form notes",
}

_ENDPOINT_PROPERTIES = {
    "url": {"type": "string", "description": "Candidate endpoint URL"},
    "token": {"type": "string", "description": "Candidate bearer token"},
}


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------


RECORD_TOOLS: list[types.Tool] = [
    types.Tool(
        name="save_row",
        description=(
            "Save a profile snapshot to the spreadsheet. The first save of a "
            "profile URL appends a row, later saves update it. If the endpoint "
            "is unreachable the write is queued and retried automatically."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                field: {"type": "string", "description": _FIELD_DESCRIPTIONS[field]}
                for field in RECORD_FIELDS
            },
            "required": ["profile_url"],
        },
    ),
    types.Tool(
        name="lookup_record",
        description=(
            "Show whether a profile URL has been saved, its row reference "
            "and when it was last synced."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "profile_url": {
                    "type": "string",
                    "description": _FIELD_DESCRIPTIONS["profile_url"],
                },
            },
            "required": ["profile_url"],
        },
    ),
    types.Tool(
        name="test_connection",
        description=(
            "Test connectivity and authentication against the spreadsheet "
            "endpoint. Pass url and/or token to check candidate settings "
            "without applying them."
        ),
        inputSchema={
            "type": "object",
            "properties": _ENDPOINT_PROPERTIES,
            "required": [],
        },
    ),
    types.Tool(
        name="update_endpoint",
        description=(
            "Point the engine at a new endpoint URL and/or token for this "
            "session. The settings are checked first and only applied if the "
            "endpoint answers; queued writes are then retried against it. "
            "Persist them in LINKLOG_URL / LINKLOG_TOKEN or the config file "
            "to keep them after a restart."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": _ENDPOINT_PROPERTIES,
            "required": [],
        },
    ),
]


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _handle_save_row(
    engine: SyncEngine, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``save_row`` tool."""
    record = Record.from_payload(args)
    outcome = await run_sync_limited(engine.write, record)

    structured = {
        "profile_url": record.key,
        "mode": outcome.mode.value,
        "success": outcome.success,
        "queued": outcome.queued,
        "error": outcome.error,
    }
    if outcome.remote_id is not None:
        structured["remote_id"] = outcome.remote_id
    if outcome.error_kind is not None:
        structured["error_kind"] = outcome.error_kind.value

    if not outcome.success and not outcome.queued:
        error = translate_write_error(outcome.error_kind, outcome.error or "")
        return types.CallToolResult(
            content=error.content,
            structuredContent=structured,
            isError=True,
        )

    return types.CallToolResult(
        content=[
            types.TextContent(
                type="text", text=format_write_outcome(record.key, outcome)
            )
        ],
        structuredContent=structured,
    )


async def _handle_lookup_record(
    engine: SyncEngine, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``lookup_record`` tool."""
    profile_url = (args.get("profile_url") or "").strip()
    is_valid, reason = validate_profile_url(profile_url)
    if not is_valid:
        return build_error_response(
            "validation_error",
            reason,
            "Provide the full profile URL, e.g. https://www.linkedin.com/in/someone/.",
        )

    entry = engine.index.lookup(profile_url)
    if entry is None:
        return build_error_response(
            "not_found",
            f"No saved row for {profile_url}",
            "Use save_row to save it, or queue_status to check pending writes.",
        )

    row = entry.remote_id or "unknown"
    text = (
        f"{entry.profile_url}\n"
        f"  Row:         {row}\n"
        f"  Last synced: {entry.last_synced}"
    )
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent=entry.model_dump(),
    )


def _candidate_client(
    engine: SyncEngine, args: dict[str, Any]
) -> RemoteClient | None:
    """A client for the url/token in *args*, or None when neither is given.

    Missing values are taken from the engine's current settings.

    Raises:
        ValueError: If the candidate settings are invalid, or the engine
            has no settings to start from.
    """
    url = (args.get("url") or "").strip()
    token = (args.get("token") or "").strip()
    if not url and not token:
        return None
    if engine.config is None:
        raise ValueError("No active endpoint configuration to derive from")
    candidate = validate_config(
        replace(
            engine.config,
            endpoint_url=url or engine.config.endpoint_url,
            token=token or engine.config.token,
        )
    )
    return RemoteClient(candidate)


async def _check_connection(sender) -> int | types.CallToolResult:
    """HTTP status of a connection check, or the error response."""
    try:
        return await run_sync(sender.validate_connection)
    except Exception as e:
        logger.warning("Connection test failed: %s", e)
        return build_error_response(
            "network_error",
            f"Endpoint connection failed: {e}",
            "Check LINKLOG_URL and LINKLOG_TOKEN.",
        )


async def _handle_test_connection(
    engine: SyncEngine, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``test_connection`` tool."""
    candidate = _candidate_client(engine, args)
    status = await _check_connection(candidate or engine.sender)
    if isinstance(status, types.CallToolResult):
        return status

    structured: dict[str, Any] = {"ok": True, "status_code": status}
    text = f"Endpoint reachable (HTTP {status})."
    if candidate is not None:
        structured["endpoint"] = candidate.config.endpoint_url
        text += " Candidate settings not applied; use update_endpoint."
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent=structured,
    )


async def _handle_update_endpoint(
    engine: SyncEngine, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``update_endpoint`` tool."""
    candidate = _candidate_client(engine, args)
    if candidate is None:
        raise ValueError("Provide url, token or both")

    status = await _check_connection(candidate)
    if isinstance(status, types.CallToolResult):
        return status

    engine.reconfigure(candidate, config=candidate.config)
    engine.scheduler.notify("endpoint-updated")
    logger.info("Endpoint switched to %s", candidate.config.endpoint_url)
    return types.CallToolResult(
        content=[
            types.TextContent(
                type="text",
                text=(
                    f"Endpoint updated to {candidate.config.endpoint_url} "
                    f"(HTTP {status}). Queued writes will be retried against "
                    "it. The change lasts until the server restarts."
                ),
            )
        ],
        structuredContent={
            "ok": True,
            "status_code": status,
            "endpoint": candidate.config.endpoint_url,
            "queued": len(engine.queue),
        },
    )


# ToolSpec list for registry-based dispatch
RECORD_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=RECORD_TOOLS[0],
        permissions=frozenset({ROW_WRITE}),
        handler=_handle_save_row,
    ),
    ToolSpec(
        tool=RECORD_TOOLS[1],
        permissions=frozenset({QUEUE_VIEW}),
        handler=_handle_lookup_record,
    ),
    ToolSpec(
        tool=RECORD_TOOLS[2],
        permissions=frozenset(),
        handler=_handle_test_connection,
    ),
    ToolSpec(
        tool=RECORD_TOOLS[3],
        permissions=frozenset({ENDPOINT_ADMIN}),
        handler=_handle_update_endpoint,
    ),
]
