"""
Config file discovery and loading for linklog-sync.

A deployment usually splits its settings: the endpoint token lives in the
user's global config, the endpoint URL and queue tuning in the project
directory.  ``load_hierarchical_config`` reads every discovered file and
merges them section by section, the more specific file winning per key.

YAML files may pull in other files with ``!include`` and reference the
environment with ``${VAR}`` / ``${VAR:-default}``.

Usage:
    from linklog_sync.config_loader import load_hierarchical_config

    sections = load_hierarchical_config()
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "LINKLOG_CONFIG"
PROJECT_DIR = ".linklog"

_ENV_REF = re.compile(r"\$\{(?P<name>[^}:]+?)(?::-(?P<default>.*?))?\}")


# ---------------------------------------------------------------------------
# Environment references
# ---------------------------------------------------------------------------


def interpolate_env_vars(value: str) -> str:
    """Expand ``${VAR}`` and ``${VAR:-default}`` in *value*.

    An unset or empty variable expands to its default, or to ``""`` when
    there is none.  An unterminated ``${`` is kept as written.
    """
    return _ENV_REF.sub(
        lambda m: os.environ.get(m["name"]) or (m["default"] or ""), value
    )


def _expand(node: Any) -> Any:
    if isinstance(node, str):
        return interpolate_env_vars(node)
    if isinstance(node, dict):
        return {key: _expand(item) for key, item in node.items()}
    if isinstance(node, list):
        return [_expand(item) for item in node]
    return node


# ---------------------------------------------------------------------------
# YAML with !include
# ---------------------------------------------------------------------------


class ConfigLoader(yaml.SafeLoader):
    """SafeLoader that understands ``!include <path>``.

    Paths are relative to the including file.  ``chain`` holds the files
    being loaded, outermost first, so that include cycles are reported
    instead of recursing forever.  ``yaml.SafeLoader`` itself is left as is.
    """

    def __init__(self, stream, chain: list[Path]):
        super().__init__(stream)
        self.chain = chain

    def include(self, node: yaml.ScalarNode) -> Any:
        current = self.chain[-1]
        target = (current.parent / self.construct_scalar(node)).resolve()
        if target in self.chain:
            cycle = " -> ".join(str(p) for p in [*self.chain, target])
            raise ValueError(f"Circular include detected: {cycle}")
        if not target.exists():
            raise FileNotFoundError(
                f"Include file not found: {target} (referenced from {current})"
            )
        return _load_yaml_with_includes(target, chain=self.chain)


ConfigLoader.add_constructor("!include", ConfigLoader.include)


def _load_yaml_with_includes(
    path: Path, chain: list[Path] | None = None
) -> Any:
    """Parse one YAML file, following ``!include`` directives."""
    path = Path(path).resolve()
    with path.open(encoding="utf-8") as fh:
        loader = ConfigLoader(fh, [*(chain or []), path])
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def _candidate_paths() -> list[Path]:
    candidates = []
    explicit = os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        candidates.append(Path(explicit).expanduser().resolve())
    project = Path.cwd() / PROJECT_DIR
    candidates += [project / "config.yml", project / "config.yaml"]
    candidates.append(Path.home() / ".config" / "linklog" / "config.yml")
    return candidates


def discover_config_files() -> list[Path]:
    """Existing config files, most specific first.

    Order: ``$LINKLOG_CONFIG``, ``./.linklog/config.yml``,
    ``./.linklog/config.yaml``, ``~/.config/linklog/config.yml``.
    """
    return [p for p in _candidate_paths() if p.exists()]


def resolve_config_path() -> Path:
    """The file that settings should be written to.

    The most specific existing file, else ``./.linklog/config.yml``.  The
    file is not created here; see ``ensure_config()``.
    """
    found = discover_config_files()
    return found[0] if found else Path.cwd() / PROJECT_DIR / "config.yml"


_STARTER_CONFIG = """\
# linklog-sync configuration
#
# Endpoint settings can also be set via environment variables:
#   LINKLOG_URL, LINKLOG_TOKEN, LINKLOG_INSECURE, LINKLOG_STATE_DIR
#
# The endpoint must upsert rows keyed by profileUrl: queued writes are
# replayed after failures and a replayed append must not add a second row.
#
# remote:
#   url: https://script.google.com/macros/s/DEPLOYMENT_ID/exec
#   token: ${LINKLOG_TOKEN}
#   read_timeout: 30
#
# queue:
#   state_dir: .linklog
#   drain_interval: 60
#   max_retries: 5
#
# logging:
#   level: INFO
#   file: null
"""


def ensure_config(target: Path | None = None) -> Path:
    """Return the config file in use, writing a commented starter if none exists.

    Args:
        target: Where to write the starter file.  Defaults to
            ``resolve_config_path()``.
    """
    found = discover_config_files()
    if found:
        logger.debug("Config file already exists: %s", found[0])
        return found[0]

    path = target or resolve_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(_STARTER_CONFIG, encoding="utf-8")
    logger.info("Created starter config: %s", path)
    return path


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------


def _merge_sections(base: dict[str, Any], override: dict[str, Any]) -> None:
    """Merge *override* into *base* one level deep.

    Two mapping sections are merged key by key; anything else is replaced.
    """
    for name, section in override.items():
        current = base.get(name)
        if isinstance(current, dict) and isinstance(section, dict):
            base[name] = {**current, **section}
        else:
            base[name] = section


def load_hierarchical_config() -> dict[str, Any]:
    """Load every discovered config file and merge them.

    Files are applied from least to most specific; within a section the
    more specific file wins per key.  Environment references are expanded
    after the merge.  Returns ``{}`` when there is no config file.

    Raises:
        OSError, ValueError, yaml.YAMLError: If a file cannot be read or
            parsed.
    """
    merged: dict[str, Any] = {}
    for path in reversed(discover_config_files()):
        logger.debug("Loading config: %s", path)
        data = _load_yaml_with_includes(path)
        if data is None:
            continue
        if not isinstance(data, dict):
            logger.warning(
                "Ignoring %s: expected a mapping at the top level, got %s",
                path,
                type(data).__name__,
            )
            continue
        _merge_sections(merged, data)
    return _expand(merged)
