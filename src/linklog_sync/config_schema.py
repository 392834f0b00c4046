"""Unified configuration schema for linklog_sync.

Defines Pydantic models for the YAML config structure with dedicated
sections for the remote endpoint, the offline queue, and logging.
``to_fallbacks`` flattens the parsed file into the fallback dict consumed
by ``load_config()``.

Usage:
    from linklog_sync.config_schema import (
        UnifiedConfig, build_config, to_fallbacks,
    )

    raw = load_hierarchical_config()
    unified = build_config(raw)
    config = load_config(yaml_fallbacks=to_fallbacks(unified))
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class RemoteConfig(BaseModel):
    """Remote endpoint settings.

    All connection fields are optional to support zero-config: env vars and
    CLI args can supply them at runtime instead.
    """

    url: str | None = Field(
        default=None, description="Spreadsheet endpoint URL"
    )
    token: str | None = Field(
        default=None, description="Bearer token sent with every write"
    )
    insecure: bool = Field(
        default=False,
        description="Disable SSL verification (development only)",
    )
    debug: bool = Field(default=False, description="Enable debug mode")
    connect_timeout: float = Field(
        default=10.0,
        gt=0,
        le=120,
        description="Connect timeout per request in seconds",
    )
    read_timeout: float = Field(
        default=30.0,
        gt=0,
        le=300,
        description="Read timeout per request in seconds",
    )
    max_parallel_requests: int = Field(
        default=4,
        ge=1,
        le=32,
        description="Maximum concurrent immediate writes (1-32)",
    )

    model_config = {"frozen": True}


class QueueConfig(BaseModel):
    """Offline queue and reconciliation settings.

    Attributes:
        state_dir: Directory holding ``index.json`` and ``queue.json``.
        drain_interval: Seconds between scheduled drain passes.
        max_retries: Retry ceiling; an item is dropped when a failed drain
            attempt brings its retry counter to this value.
        backoff_base_ms: Base of the exponential backoff.
        backoff_max_ms: Upper bound of a single backoff wait.
    """

    state_dir: str = Field(
        default=".linklog", description="Directory for persisted state"
    )
    drain_interval: float = Field(
        default=60.0,
        gt=0,
        le=86400,
        description="Seconds between scheduled drains",
    )
    max_retries: int = Field(
        default=5, ge=0, le=50, description="Retry ceiling per item"
    )
    backoff_base_ms: int = Field(
        default=1000, ge=0, description="Backoff base in milliseconds"
    )
    backoff_max_ms: int = Field(
        default=30000, ge=0, description="Backoff cap in milliseconds"
    )

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Every section has sensible defaults, so ``UnifiedConfig()``
    (zero-config) is always valid.
    """

    remote: RemoteConfig = Field(default_factory=RemoteConfig)
    queue: QueueConfig = Field(default_factory=QueueConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Handles missing sections gracefully: anything absent gets defaults.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``UnifiedConfig`` instance.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)


def to_fallbacks(unified: UnifiedConfig) -> dict[str, Any]:
    """Flatten the ``remote`` and ``queue`` sections into the fallback dict
    accepted by ``load_config(yaml_fallbacks=...)``.

    ``None`` values are omitted so they never shadow a built-in default.
    """
    merged = {
        **unified.queue.model_dump(),
        **unified.remote.model_dump(),
    }
    return {k: v for k, v in merged.items() if v is not None}

