"""Startup and shutdown of the MCP server's sync engine."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import yaml
from dotenv import load_dotenv

from ..config import Config, load_config
from ..config_loader import (
    discover_config_files,
    load_hierarchical_config,
)
from ..config_schema import build_config, to_fallbacks
from ..core.async_utils import init_semaphore, run_sync
from ..core.client import RemoteClient
from ..sync.engine import SyncEngine

logger = logging.getLogger(__name__)

_CREDENTIALS_HINT = "Ensure LINKLOG_URL and LINKLOG_TOKEN are set."


def _stderr_print(msg: str) -> None:
    """Print to stderr; stdout belongs to the MCP transport."""
    print(msg, file=sys.stderr, flush=True)


def _announce(msg: str, level: int = logging.INFO) -> None:
    logger.log(level, msg)
    _stderr_print(f"  {msg}")


def _resolve_config(overrides: dict[str, Any]) -> Config:
    """CLI overrides > environment (after .env) > YAML files > defaults."""
    load_dotenv()

    sources = []
    yaml_fallbacks: dict[str, Any] | None = None
    config_files = discover_config_files()
    if config_files:
        yaml_fallbacks = to_fallbacks(build_config(load_hierarchical_config()))
        sources.append(f"config file: {config_files[0]}")

    config = load_config(
        url=overrides.get("url"),
        token=overrides.get("token"),
        state_dir=overrides.get("state_dir"),
        insecure=overrides.get("insecure", False),
        debug=overrides.get("debug", False),
        yaml_fallbacks=yaml_fallbacks,
    )

    if overrides:
        sources.append("CLI arguments")
    sources.append("environment variables")
    _announce(f"Configuration loaded from: {', '.join(sources)}")
    _announce(f"Endpoint URL: {config.endpoint_url}")
    return config


def _enable_debug_logging() -> None:
    root = logging.getLogger()
    if root.getEffectiveLevel() > logging.DEBUG:
        root.setLevel(logging.DEBUG)
        for name in ("urllib3", "requests"):
            logging.getLogger(name).setLevel(logging.NOTSET)
    _announce("Debug logging enabled")


async def _check_endpoint(client: RemoteClient) -> None:
    """Check the endpoint once.  Failure is reported but not fatal."""
    _announce("Checking endpoint...")
    try:
        status = await run_sync(client.validate_connection)
    except Exception as e:
        _announce(f"WARNING: Endpoint check failed: {e}", logging.WARNING)
        _stderr_print("  Writes will be queued until the endpoint is reachable.")
    else:
        _announce(f"Endpoint reachable (HTTP {status})")


@asynccontextmanager
async def server_lifespan(
    config_overrides: dict[str, Any] | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """
    Bring the sync engine up for the life of the server.

    Startup resolves the configuration, checks the endpoint, opens the
    index and queue under the state directory and starts the scheduler,
    whose first pass drains whatever a previous run left queued.  An
    unreachable endpoint does not stop startup; writes made meanwhile are
    queued.

    Shutdown stops the scheduler.  A pass already running finishes its
    current request and leaves the rest of the queue for the next run.

    Args:
        config_overrides: Values from the command line (url, token,
            state_dir, insecure).

    Yields:
        Dict with 'engine' and 'client' keys.

    Raises:
        RuntimeError: If the configuration is invalid or the state directory
            cannot be opened.
    """
    logger.info("MCP server starting...")
    _stderr_print("LinkLog Sync starting...")

    try:
        config = _resolve_config(config_overrides or {})
    except (ValueError, OSError, yaml.YAMLError) as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        _stderr_print(f"  {_CREDENTIALS_HINT}")
        raise RuntimeError(f"Configuration error: {e}. {_CREDENTIALS_HINT}") from e

    if config.debug:
        # LINKLOG_DEBUG from .env or `debug` in the remote section arrive here
        _enable_debug_logging()

    client = RemoteClient(config)
    await _check_endpoint(client)

    try:
        engine = SyncEngine.from_config(config, client)
    except (ValueError, OSError) as e:
        logger.error("Cannot open state directory %s: %s", config.state_dir, e)
        _stderr_print(f"ERROR: Cannot open state directory: {e}")
        raise RuntimeError(
            f"Cannot open state directory {config.state_dir}: {e}"
        ) from e

    init_semaphore(config.max_parallel_requests)
    _announce(f"Parallel requests: {config.max_parallel_requests}")
    _announce(f"Pending writes: {len(engine.queue)}")

    await engine.start()
    _stderr_print("Server ready. Waiting for MCP client connection...")

    try:
        yield {"engine": engine, "client": client}
    finally:
        await engine.stop()
        logger.info("MCP server shutting down")
        _stderr_print("LinkLog Sync shutting down.")
