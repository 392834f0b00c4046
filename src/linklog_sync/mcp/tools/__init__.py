"""MCP tool handlers for the write-reconciliation engine.

This package contains MCP tool implementations that wrap the SyncEngine
with async handlers and structured error responses.
"""

from .errors import build_error_response, translate_write_error
from .queue import QUEUE_SPECS, QUEUE_TOOLS
from .records import RECORD_SPECS, RECORD_TOOLS
from .registry import (
    ENDPOINT_ADMIN,
    QUEUE_ADMIN,
    QUEUE_VIEW,
    ROW_WRITE,
    ToolRegistry,
    ToolSpec,
    load_permissions_file,
)

ALL_SPECS: list[ToolSpec] = RECORD_SPECS + QUEUE_SPECS

__all__ = [
    "build_error_response",
    "translate_write_error",
    # Registry
    "ToolSpec",
    "ToolRegistry",
    "load_permissions_file",
    "ROW_WRITE",
    "ENDPOINT_ADMIN",
    "QUEUE_VIEW",
    "QUEUE_ADMIN",
    # Spec lists
    "ALL_SPECS",
    "RECORD_SPECS",
    "QUEUE_SPECS",
    "RECORD_TOOLS",
    "QUEUE_TOOLS",
]
