"""Tests for logger.py: setup_logging() and JsonFormatter.

Strategy: Mock logging.basicConfig to verify setup_logging passes correct args,
since pytest's log capture plugin interferes with actual basicConfig calls.
"""

import json
import logging
import sys
from unittest.mock import patch

from linklog_sync.logger import JsonFormatter, setup_logging


class TestSetupLogging:
    """Tests for setup_logging()."""

    @patch("linklog_sync.logger.logging.basicConfig")
    def test_cli_mode_logs_to_stderr(self, mock_basic):
        setup_logging(mode="cli")

        kwargs = mock_basic.call_args[1]
        handlers = kwargs["handlers"]
        assert len(handlers) == 1
        assert isinstance(handlers[0], logging.StreamHandler)
        assert handlers[0].stream is sys.stderr
        assert kwargs["force"] is True

    @patch("linklog_sync.logger.logging.basicConfig")
    def test_cli_mode_with_log_file_adds_file_handler(
        self, mock_basic, tmp_path
    ):
        log_file = tmp_path / "cli.log"
        setup_logging(mode="cli", log_file=str(log_file))

        handlers = mock_basic.call_args[1]["handlers"]
        assert len(handlers) == 2
        assert isinstance(handlers[1], logging.FileHandler)
        for handler in handlers:
            handler.close()

    @patch("linklog_sync.logger.logging.basicConfig")
    def test_server_mode_logs_to_file_only(self, mock_basic, tmp_path):
        log_file = tmp_path / "server.log"
        setup_logging(mode="server", log_file=str(log_file))

        handlers = mock_basic.call_args[1]["handlers"]
        assert len(handlers) == 1
        assert isinstance(handlers[0], logging.FileHandler)
        assert handlers[0].baseFilename == str(log_file)
        handlers[0].close()

    @patch("linklog_sync.logger.logging.basicConfig")
    def test_server_mode_uses_log_file_env(
        self, mock_basic, tmp_path, monkeypatch
    ):
        log_file = tmp_path / "env.log"
        monkeypatch.setenv("LOG_FILE", str(log_file))
        setup_logging(mode="server")

        handler = mock_basic.call_args[1]["handlers"][0]
        assert handler.baseFilename == str(log_file)
        handler.close()

    @patch("linklog_sync.logger.logging.basicConfig")
    def test_debug_overrides_level(self, mock_basic, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        setup_logging(mode="cli", debug=True)

        assert mock_basic.call_args[1]["level"] == logging.DEBUG

    @patch("linklog_sync.logger.logging.basicConfig")
    def test_log_level_env(self, mock_basic, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "warning")
        setup_logging(mode="cli")

        assert mock_basic.call_args[1]["level"] == logging.WARNING

    @patch("linklog_sync.logger.logging.basicConfig")
    def test_default_level_is_info(self, mock_basic, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        setup_logging(mode="cli")

        assert mock_basic.call_args[1]["level"] == logging.INFO

    @patch("linklog_sync.logger.logging.basicConfig")
    def test_config_level_used_without_env(self, mock_basic, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        setup_logging(mode="cli", level="error")

        assert mock_basic.call_args[1]["level"] == logging.ERROR

    @patch("linklog_sync.logger.logging.basicConfig")
    def test_env_level_beats_config_level(self, mock_basic, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        setup_logging(mode="cli", level="ERROR")

        assert mock_basic.call_args[1]["level"] == logging.DEBUG

    @patch("linklog_sync.logger.logging.basicConfig")
    def test_unknown_level_name_falls_back_to_info(
        self, mock_basic, monkeypatch
    ):
        monkeypatch.setenv("LOG_LEVEL", "LOUD")
        setup_logging(mode="cli")

        assert mock_basic.call_args[1]["level"] == logging.INFO

    @patch("linklog_sync.logger.logging.basicConfig")
    def test_third_party_loggers_quieted(self, mock_basic, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        setup_logging(mode="cli")

        assert logging.getLogger("urllib3").level == logging.WARNING
        assert logging.getLogger("requests").level == logging.WARNING

    @patch("linklog_sync.logger.logging.basicConfig")
    def test_json_format_selected(self, mock_basic):
        setup_logging(mode="cli", debug_format="json")

        handler = mock_basic.call_args[1]["handlers"][0]
        assert isinstance(handler.formatter, JsonFormatter)


class TestJsonFormatter:
    def _record(self, msg="Queued append write for %s", args=("x",)):
        return logging.LogRecord(
            name="linklog_sync.sync.queue",
            level=logging.INFO,
            pathname=__file__,
            lineno=1,
            msg=msg,
            args=args,
            exc_info=None,
        )

    def test_single_line_json(self):
        output = JsonFormatter().format(self._record())
        assert "\n" not in output
        data = json.loads(output)
        assert data["level"] == "INFO"
        assert data["logger"] == "linklog_sync.sync.queue"
        assert data["msg"] == "Queued append write for x"
        assert "exc" not in data

    def test_exception_included(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = self._record()
            record.exc_info = sys.exc_info()

        data = json.loads(JsonFormatter().format(record))
        assert "RuntimeError: boom" in data["exc"]
