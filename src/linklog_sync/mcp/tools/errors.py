"""Error response builders for MCP tool handlers.

Structured error responses carry a corrective action so that an agent can
recover without human intervention.  ``translate_write_error`` maps the
engine's error kinds onto those responses.
"""

import mcp.types as types

from ...sync.models import ErrorKind


def build_error_response(
    error_type: str, message: str, corrective_action: str
) -> types.CallToolResult:
    """Build a structured error response with corrective action.

    Args:
        error_type: Error category (validation_error, auth_error, client_error, server_error, ...)
        message: Human-readable error description
        corrective_action: Specific action the agent can take to resolve the error

    Returns:
        CallToolResult with isError=True

    Examples:
        >>> build_error_response("auth_error", "Authentication failed", "Check LINKLOG_TOKEN.")
        CallToolResult(content=[TextContent(...)], isError=True)
    """
    error_text = f"Error ({error_type}): {message}\n\nAction: {corrective_action}"

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=error_text)],
        isError=True,
    )


_CORRECTIVE_ACTIONS: dict[ErrorKind, str] = {
    ErrorKind.AUTH_ERROR: (
        "Check LINKLOG_TOKEN and the endpoint's access settings, then save again."
    ),
    ErrorKind.CLIENT_ERROR: (
        "The endpoint rejected the row. Fix the record fields and save again."
    ),
    ErrorKind.PROTOCOL_ERROR: (
        "The endpoint refused the row. Check the endpoint script and its log."
    ),
    ErrorKind.RATE_LIMITED: "Wait and retry; the write is queued.",
    ErrorKind.SERVER_ERROR: "Retry later; the write is queued.",
    ErrorKind.NETWORK_ERROR: (
        "Check connectivity with test_connection; the write is queued."
    ),
}


def translate_write_error(
    kind: ErrorKind | None, message: str
) -> types.CallToolResult:
    """Translate a non-queued write failure to a structured error response.

    Args:
        kind: Error kind reported by the engine (None if unknown)
        message: Human-readable failure message

    Returns:
        CallToolResult with isError=True and corrective action
    """
    if kind is None:
        return build_error_response(
            "server_error", message, "Check the service log and retry later."
        )
    action = _CORRECTIVE_ACTIONS.get(
        kind, "Check the service log and retry later."
    )
    return build_error_response(kind.value, message, action)
