"""Core remote client functionality shared by the engine and the MCP server."""

from .async_utils import run_sync
from .client import RemoteClient, classify_response

__all__ = ["RemoteClient", "classify_response", "run_sync"]
