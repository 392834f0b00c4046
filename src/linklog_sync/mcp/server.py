"""MCP server for the LinkLog write-reconciliation engine using stdio transport.

This module implements the Model Context Protocol server that lets a
capture client (browser extension bridge, agent, script) save profile
snapshots to the spreadsheet endpoint and inspect the offline queue.

Transport: stdio
Protocol: JSON-RPC 2.0 over MCP
"""

import argparse
import asyncio
import logging
import sys

import mcp.server.stdio
import mcp.types as types
import yaml
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from .. import __version__
from ..config import env_bool
from ..config_loader import (
    discover_config_files,
    ensure_config,
    load_hierarchical_config,
)
from ..config_schema import LoggingConfig, build_config
from ..logger import setup_logging
from ..sync.engine import SyncEngine
from .lifespan import server_lifespan
from .tools import (
    ALL_SPECS,
    ToolRegistry,
    build_error_response,
    load_permissions_file,
)

logger = logging.getLogger(__name__)

server = Server("linklog-sync")

# Set by main() for the life of the stdio session.
_engine: SyncEngine | None = None
_registry: ToolRegistry | None = None


def get_engine() -> SyncEngine:
    """The engine serving this session.

    Raises:
        RuntimeError: Outside the server lifespan.
    """
    if _engine is None:
        raise RuntimeError(
            "SyncEngine not initialized. Server lifespan not started."
        )
    return _engine


def set_engine(engine: SyncEngine | None) -> None:
    global _engine
    _engine = engine


def get_registry() -> ToolRegistry:
    if _registry is None:
        raise RuntimeError("ToolRegistry not initialized.")
    return _registry


def set_registry(registry: ToolRegistry | None) -> None:
    global _registry
    _registry = registry


@server.list_tools()
async def handle_list_tools() -> list[types.Tool]:
    """Tools permitted for this deployment."""
    return get_registry().list_tools()


@server.call_tool()
async def handle_call_tool(
    name: str, arguments: dict | None
) -> types.CallToolResult:
    """Dispatch to the registry; unknown names get a structured error."""
    engine = get_engine()
    try:
        return await get_registry().call_tool(name, arguments, engine)
    except ValueError as e:
        return build_error_response(
            "unknown_tool",
            str(e),
            "Use list_tools to see available tools.",
        )


def _file_logging_config() -> LoggingConfig:
    """Return the ``logging`` section of the config files, if any.

    Errors are left for the lifespan to report; logging falls back to
    defaults.
    """
    if not discover_config_files():
        return LoggingConfig()
    try:
        return build_config(load_hierarchical_config()).logging
    except (ValueError, OSError, yaml.YAMLError):
        return LoggingConfig()


def _build_registry(permissions_file: str | None) -> ToolRegistry:
    """Registry of the tools this deployment may expose.

    Raises:
        RuntimeError: If the permissions file cannot be read or is invalid.
    """
    if not permissions_file:
        return ToolRegistry(ALL_SPECS)
    try:
        granted = load_permissions_file(permissions_file)
    except (OSError, ValueError) as e:
        logger.error("Cannot load permissions file: %s", e)
        print(f"ERROR: Cannot load permissions file: {e}", file=sys.stderr)
        raise RuntimeError(f"Cannot load permissions file: {e}") from e

    registry = ToolRegistry(ALL_SPECS, granted)
    logger.info(
        "Permissions %s from %s enable %d of %d tools",
        ", ".join(sorted(granted)),
        permissions_file,
        registry.tool_count(),
        len(ALL_SPECS),
    )
    print(
        f"Permissions file: {permissions_file} "
        f"({registry.tool_count()} of {len(ALL_SPECS)} tools enabled)",
        file=sys.stderr,
    )
    return registry


async def main(config_overrides: dict | None = None):
    """Run the MCP server with stdio transport.

    Sets up logging for server mode (file only, never stdout), builds the
    tool registry, and serves until the client disconnects.  The engine and
    its scheduler live for the duration of the lifespan context.

    Args:
        config_overrides: Optional dict with config values to override
            (url, token, state_dir, insecure, debug, log_file,
            permissions_file)
    """
    overrides = config_overrides or {}

    # Must run BEFORE stdio_server: stdout carries the protocol
    file_logging = _file_logging_config()
    setup_logging(
        mode="server",
        debug=bool(overrides.get("debug") or env_bool("LINKLOG_DEBUG")),
        log_file=overrides.get("log_file") or file_logging.file,
        level=file_logging.level,
    )

    set_registry(_build_registry(overrides.get("permissions_file")))

    # set_engine() is called here rather than in the lifespan: under
    # `python -m linklog_sync.mcp.server` this module is __main__ and a
    # relative import from lifespan.py would set a second copy's global.
    async with server_lifespan(config_overrides=overrides) as ctx:
        set_engine(ctx["engine"])
        try:
            async with mcp.server.stdio.stdio_server() as (
                read_stream,
                write_stream,
            ):
                init_options = InitializationOptions(
                    server_name="linklog-sync",
                    server_version=__version__,
                    capabilities=server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                )
                await server.run(
                    read_stream, write_stream, init_options
                )
        finally:
            set_engine(None)
            set_registry(None)


_EPILOG = """
Examples:
  # Run with default config (from .env or .linklog/config.yml)
  linklog-sync

  # Override the endpoint
  linklog-sync --url https://script.google.com/macros/s/XXX/exec

  # Keep queue and index somewhere else
  linklog-sync --state-dir ~/.local/state/linklog

  # Read-only deployment (queue inspection only)
  linklog-sync --permissions-file /etc/linklog/read-only.permissions

The server speaks MCP over stdio; its own messages go to stderr.
"""

# CLI options that become config overrides, in reporting order.
_OVERRIDE_OPTIONS = (
    "url",
    "token",
    "state_dir",
    "insecure",
    "debug",
    "log_file",
    "permissions_file",
)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="linklog-sync",
        description="Durable LinkLog profile writes to a spreadsheet endpoint, served over MCP",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=_EPILOG,
    )
    endpoint = parser.add_argument_group("endpoint")
    endpoint.add_argument(
        "--url", help="Endpoint URL (overrides LINKLOG_URL and config files)"
    )
    endpoint.add_argument(
        "--token",
        help="Bearer token (overrides LINKLOG_TOKEN; visible in the process "
        "list, so prefer the environment variable)",
    )
    endpoint.add_argument(
        "--insecure",
        action="store_true",
        help="Skip TLS certificate verification (development only)",
    )

    local = parser.add_argument_group("local state")
    local.add_argument(
        "--state-dir",
        help="Directory holding index.json and queue.json (default: .linklog)",
    )
    local.add_argument(
        "--log-file", help="Log file path (default: /tmp/linklog-sync.log)"
    )
    local.add_argument(
        "--debug",
        action="store_true",
        help="Log at DEBUG level (overrides LOG_LEVEL and the config file)",
    )
    local.add_argument(
        "--permissions-file",
        help="Restrict the exposed tools: one of ROW_WRITE, QUEUE_VIEW, "
        "QUEUE_ADMIN, ENDPOINT_ADMIN per line, # for comments (default: all tools)",
    )

    parser.add_argument(
        "--init-config",
        action="store_true",
        help="Write a starter .linklog/config.yml if none exists, then exit",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"linklog-sync version {__version__}",
    )
    return parser


def run() -> None:
    """Console entry point."""
    args = _build_parser().parse_args()

    if args.init_config:
        print(f"Config file: {ensure_config()}", file=sys.stderr)
        return

    config_overrides = {
        name: getattr(args, name)
        for name in _OVERRIDE_OPTIONS
        if getattr(args, name)
    }
    if config_overrides:
        shown = [name for name in config_overrides if name != "token"]
        print(f"Config overrides from CLI: {', '.join(shown)}", file=sys.stderr)

    try:
        asyncio.run(main(config_overrides=config_overrides or None))
    except RuntimeError:
        # already reported on stderr
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    run()
