"""Tool registry with permission filtering.

An operator can restrict what an agent may do by naming permissions in a
file passed with ``--permissions-file``.  A deployment that grants only
``QUEUE_VIEW`` can watch the queue but cannot change anything.  Tools
that need no permission, such as ``test_connection``, are always exposed.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path

import mcp.types as types

from ...sync.engine import SyncEngine
from .errors import build_error_response

logger = logging.getLogger(__name__)

ROW_WRITE = "ROW_WRITE"
QUEUE_VIEW = "QUEUE_VIEW"
QUEUE_ADMIN = "QUEUE_ADMIN"
ENDPOINT_ADMIN = "ENDPOINT_ADMIN"

KNOWN_PERMISSIONS = frozenset(
    {ROW_WRITE, QUEUE_VIEW, QUEUE_ADMIN, ENDPOINT_ADMIN}
)

Handler = Callable[[SyncEngine, dict], Awaitable[types.CallToolResult]]


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """A tool definition, the permissions it needs, and its handler.

    An empty ``permissions`` set means the tool is always available.
    """

    tool: types.Tool
    permissions: frozenset[str]
    handler: Handler

    def allowed_by(self, granted: frozenset[str] | None) -> bool:
        if granted is None or not self.permissions:
            return True
        return self.permissions <= granted


class ToolRegistry:
    """The tools exposed to the client, keyed by name.

    Specs whose permissions are not all granted are dropped at
    construction; ``allowed_permissions=None`` grants everything.
    """

    def __init__(
        self,
        specs: list[ToolSpec],
        allowed_permissions: frozenset[str] | None = None,
    ):
        self._specs = {
            spec.tool.name: spec
            for spec in specs
            if spec.allowed_by(allowed_permissions)
        }
        hidden = len(specs) - len(self._specs)
        if hidden:
            logger.info("%d tool(s) hidden by permissions", hidden)

    def list_tools(self) -> list[types.Tool]:
        return [spec.tool for spec in self._specs.values()]

    def tool_count(self) -> int:
        return len(self._specs)

    async def call_tool(
        self,
        name: str,
        arguments: dict | None,
        engine: SyncEngine,
    ) -> types.CallToolResult:
        """Run the handler registered under *name*.

        A ``ValueError`` from the handler becomes a ``validation_error``
        response; anything else is logged and becomes a ``server_error``.

        Raises:
            ValueError: If *name* is unknown or was filtered out.
        """
        try:
            spec = self._specs[name]
        except KeyError:
            raise ValueError(f"Unknown tool: {name}") from None

        try:
            return await spec.handler(engine, arguments or {})
        except ValueError as e:
            return build_error_response(
                "validation_error", str(e), "Check parameter values and retry."
            )
        except Exception as e:
            logger.exception("Tool %s failed", name)
            return build_error_response(
                "server_error", str(e), "Check the service log and retry later."
            )


def load_permissions_file(path: str | Path) -> frozenset[str]:
    """Read granted permissions from *path*.

    One permission per line; blank lines and ``#`` comments are skipped::

        # read-only deployment
        QUEUE_VIEW

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: On a malformed or unknown permission, or when the file
            grants nothing.
    """
    path = Path(path)
    granted: set[str] = set()
    for line_num, raw in enumerate(path.read_text().splitlines(), start=1):
        name = raw.split("#", 1)[0].strip()
        if not name:
            continue
        if name not in KNOWN_PERMISSIONS:
            raise ValueError(
                f"Invalid permission '{name}' at line {line_num} in {path}. "
                f"Expected one of: {', '.join(sorted(KNOWN_PERMISSIONS))}."
            )
        granted.add(name)
    if not granted:
        raise ValueError(f"No permissions found in {path}.")
    return frozenset(granted)
