"""Runtime configuration for the LinkLog sync service.

Reads the remote endpoint settings from CLI args, environment variables,
.env files, and YAML config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    LINKLOG_URL: Remote endpoint URL (required)
    LINKLOG_TOKEN: Bearer token for the endpoint (required)
    LINKLOG_STATE_DIR: Directory holding index.json / queue.json
        (optional, default: .linklog)
    LINKLOG_INSECURE: Skip SSL verification (optional, default: false)
    LINKLOG_DEBUG: Enable debug logging (optional, default: false)
    LINKLOG_DRAIN_INTERVAL: Seconds between scheduled drains (optional, default: 60)
    LINKLOG_REQUEST_TIMEOUT: Read timeout in seconds per request (optional, default: 30)

The resulting ``Config`` is frozen.  Components receive it explicitly at
construction time; nothing caches it as module state.
"""

import logging
import os
from dataclasses import dataclass, replace
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

DEFAULT_STATE_DIR = ".linklog"


@dataclass(frozen=True)
class Config:
    endpoint_url: str
    token: str
    state_dir: str = DEFAULT_STATE_DIR
    insecure: bool = False
    debug: bool = False
    connect_timeout: float = 10.0
    read_timeout: float = 30.0
    drain_interval: float = 60.0
    max_retries: int = 5
    backoff_base_ms: int = 1000
    backoff_max_ms: int = 30000
    max_parallel_requests: int = 4


def validate_config(config: Config) -> Config:
    """Validate configuration values and return a normalized copy.

    Args:
        config: Config instance to validate.

    Returns:
        A new ``Config`` with the endpoint URL stripped of surrounding
        whitespace and any trailing slash.

    Raises:
        ValueError: If the URL format is invalid, the token is empty, or a
            numeric setting is out of range.
    """
    endpoint_url = config.endpoint_url.strip()

    if not endpoint_url.startswith(("http://", "https://")):
        raise ValueError(
            f"Invalid endpoint URL '{endpoint_url}': must start with http:// or https://"
        )

    parsed = urlparse(endpoint_url)
    if not parsed.hostname:
        raise ValueError(
            f"Invalid endpoint URL '{endpoint_url}': URL must include a hostname"
        )

    endpoint_url = endpoint_url.removesuffix("/")

    if not config.token.strip():
        raise ValueError(
            "Endpoint token cannot be empty. Set LINKLOG_TOKEN environment variable."
        )

    if config.connect_timeout <= 0 or config.read_timeout <= 0:
        raise ValueError("Request timeouts must be positive")

    if config.drain_interval <= 0:
        raise ValueError(
            f"Invalid drain interval {config.drain_interval}: must be positive"
        )

    if config.max_retries < 0:
        raise ValueError(
            f"Invalid max_retries {config.max_retries}: must not be negative"
        )

    if config.insecure:
        logger.warning(
            "WARNING: SSL verification disabled (insecure=True). Use only for development."
        )

    return replace(
        config, endpoint_url=endpoint_url, token=config.token.strip()
    )


_TRUE_WORDS = ("true", "1", "yes", "on")


def env_bool(key: str) -> bool | None:
    """``$key`` read as a flag; None when unset."""
    raw = os.getenv(key)
    return None if raw is None else raw.lower() in _TRUE_WORDS


def _env_float(key: str, low: float, high: float) -> float | None:
    """``$key`` as a float in [low, high]; None when unset."""
    raw = os.getenv(key)
    if raw is None:
        return None
    try:
        value = float(raw)
    except ValueError:
        value = None
    if value is None or not low <= value <= high:
        raise ValueError(
            f"Invalid {key} '{raw}': must be a number between {low:g} and {high:g}"
        )
    return value


def _first(*candidates):
    """The first candidate that is not None."""
    return next((c for c in candidates if c is not None), None)


def _required(
    value: str | None, what: str, env: str, flag: str, key: str
) -> str:
    if not value:
        raise ValueError(
            f"{what} not found. Set {env} environment variable, pass {flag} "
            f"CLI argument, or add '{key}' to the remote section of config.yml."
        )
    return value


def load_config(
    url: str | None = None,
    token: str | None = None,
    state_dir: str | None = None,
    insecure: bool = False,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Build a validated ``Config`` from every source.

    Each field takes the first value found in: CLI argument, environment
    (including a ``.env`` the caller has already loaded with
    ``load_dotenv()``), *yaml_fallbacks*, built-in default.  The CLI flags
    *insecure* and *debug* can only switch their setting on.  Queue and
    backoff tuning has no environment variable and comes from YAML only.

    Args:
        url: Endpoint URL from the command line.
        token: Bearer token from the command line.
        state_dir: State directory from the command line.
        insecure: ``--insecure`` was given.
        debug: Debug logging was requested.
        yaml_fallbacks: Flattened ``remote`` and ``queue`` sections, as
            produced by ``config_schema.to_fallbacks``.

    Raises:
        ValueError: If the URL or token is missing everywhere, or a value
            is out of range.
    """
    fb = yaml_fallbacks or {}

    endpoint_url = _required(
        url or os.getenv("LINKLOG_URL") or fb.get("url"),
        "Endpoint URL",
        "LINKLOG_URL",
        "--url",
        "url",
    )
    endpoint_token = _required(
        token or os.getenv("LINKLOG_TOKEN") or fb.get("token"),
        "Endpoint token",
        "LINKLOG_TOKEN",
        "--token",
        "token",
    )

    config = Config(
        endpoint_url=endpoint_url,
        token=endpoint_token,
        state_dir=(
            state_dir
            or os.getenv("LINKLOG_STATE_DIR")
            or fb.get("state_dir")
            or DEFAULT_STATE_DIR
        ),
        insecure=insecure
        or bool(_first(env_bool("LINKLOG_INSECURE"), fb.get("insecure"), False)),
        debug=debug
        or bool(_first(env_bool("LINKLOG_DEBUG"), fb.get("debug"), False)),
        connect_timeout=float(fb.get("connect_timeout", 10.0)),
        read_timeout=float(
            _first(
                _env_float("LINKLOG_REQUEST_TIMEOUT", 1, 300),
                fb.get("read_timeout"),
                30.0,
            )
        ),
        drain_interval=float(
            _first(
                _env_float("LINKLOG_DRAIN_INTERVAL", 1, 86400),
                fb.get("drain_interval"),
                60.0,
            )
        ),
        max_retries=int(fb.get("max_retries", 5)),
        backoff_base_ms=int(fb.get("backoff_base_ms", 1000)),
        backoff_max_ms=int(fb.get("backoff_max_ms", 30000)),
        max_parallel_requests=int(fb.get("max_parallel_requests", 4)),
    )
    return validate_config(config)
