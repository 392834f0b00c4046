"""Tests for the unified config schema and the fallback adapter.

Covers the Pydantic section models in config_schema.py (RemoteConfig,
QueueConfig, LoggingConfig, UnifiedConfig), the build_config() factory,
and to_fallbacks() feeding load_config().
"""

import pytest
from pydantic import ValidationError

from linklog_sync.config import load_config
from linklog_sync.config_schema import (
    LoggingConfig,
    QueueConfig,
    RemoteConfig,
    UnifiedConfig,
    build_config,
    to_fallbacks,
)


class TestUnifiedConfig:
    def test_empty_dict_produces_valid_defaults(self):
        config = build_config({})
        assert config.remote.url is None
        assert config.remote.insecure is False
        assert config.queue.state_dir == ".linklog"
        assert config.queue.drain_interval == 60.0
        assert config.queue.max_retries == 5
        assert config.logging.level == "INFO"

    def test_sections_parsed_from_raw_dict(self):
        config = build_config(
            {
                "remote": {
                    "url": "https://script.example.com/exec",
                    "token": "t",
                    "read_timeout": 12,
                },
                "queue": {"drain_interval": 30, "max_retries": 2},
                "logging": {"level": "DEBUG", "file": "/tmp/ll.log"},
            }
        )
        assert config.remote.url == "https://script.example.com/exec"
        assert config.remote.read_timeout == 12.0
        assert config.queue.drain_interval == 30.0
        assert config.queue.max_retries == 2
        assert config.logging.file == "/tmp/ll.log"

    def test_unknown_sections_ignored(self):
        config = build_config({"sync": {"planning": {}}})
        assert config == UnifiedConfig()

    def test_frozen(self):
        config = UnifiedConfig()
        with pytest.raises(ValidationError):
            config.queue = QueueConfig()  # type: ignore[misc]


class TestSectionValidation:
    def test_negative_max_retries_rejected(self):
        with pytest.raises(ValidationError):
            QueueConfig(max_retries=-1)

    def test_zero_drain_interval_rejected(self):
        with pytest.raises(ValidationError):
            QueueConfig(drain_interval=0)

    def test_parallel_requests_range(self):
        with pytest.raises(ValidationError):
            RemoteConfig(max_parallel_requests=0)
        with pytest.raises(ValidationError):
            RemoteConfig(max_parallel_requests=33)

    def test_logging_defaults(self):
        assert LoggingConfig().file is None


class TestToFallbacks:
    def test_none_values_dropped(self):
        fallbacks = to_fallbacks(UnifiedConfig())
        assert "url" not in fallbacks
        assert "token" not in fallbacks
        assert fallbacks["state_dir"] == ".linklog"

    def test_flattens_remote_and_queue(self):
        unified = build_config(
            {
                "remote": {"url": "https://y.example.com", "token": "t"},
                "queue": {"state_dir": "/srv/linklog", "backoff_max_ms": 5000},
            }
        )
        fallbacks = to_fallbacks(unified)
        assert fallbacks["url"] == "https://y.example.com"
        assert fallbacks["state_dir"] == "/srv/linklog"
        assert fallbacks["backoff_max_ms"] == 5000
        assert "level" not in fallbacks

    def test_feeds_load_config(self, monkeypatch):
        for var in ("LINKLOG_URL", "LINKLOG_TOKEN", "LINKLOG_STATE_DIR"):
            monkeypatch.delenv(var, raising=False)
        monkeypatch.delenv("LINKLOG_DRAIN_INTERVAL", raising=False)
        unified = build_config(
            {
                "remote": {"url": "https://y.example.com/exec", "token": "t"},
                "queue": {"drain_interval": 45, "max_retries": 1},
            }
        )
        config = load_config(yaml_fallbacks=to_fallbacks(unified))
        assert config.endpoint_url == "https://y.example.com/exec"
        assert config.drain_interval == 45.0
        assert config.max_retries == 1
