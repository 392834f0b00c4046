"""Logging setup for the linklog-sync service and CLI.

In server mode stdout carries the MCP transport, so records only go to a
file.  In CLI mode they go to stderr, plus a file when one is given.
"""

import json
import logging
import os
import sys

_TEXT_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"
_FILE_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

DEFAULT_LOG_FILE = "/tmp/linklog-sync.log"

# Chatty below WARNING: one line per request.
_QUIET_LOGGERS = ("urllib3", "requests")


class JsonFormatter(logging.Formatter):
    """One JSON object per line: ``ts``, ``level``, ``logger``, ``msg``.

    A traceback, when present, is added under ``exc``.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload = dict(
            ts=self.formatTime(record, self.datefmt),
            level=record.levelname,
            logger=record.name,
            msg=record.getMessage(),
        )
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _resolve_level(debug: bool, level: str | None) -> int:
    if debug:
        return logging.DEBUG
    name = os.getenv("LOG_LEVEL") or level or "INFO"
    resolved = logging.getLevelName(name.upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def _handler(
    target: str | None, text_format: str, debug_format: str
) -> logging.Handler:
    """File handler for *target*, or a stderr handler when it is None."""
    if target is None:
        handler: logging.Handler = logging.StreamHandler(sys.stderr)
    else:
        handler = logging.FileHandler(target, mode="a")
    if debug_format == "json":
        handler.setFormatter(JsonFormatter(datefmt=_DATE_FORMAT))
    else:
        handler.setFormatter(logging.Formatter(text_format, datefmt=_DATE_FORMAT))
    return handler


def setup_logging(
    mode: str = "cli",
    debug: bool = False,
    log_file: str | None = None,
    debug_format: str = "text",
    level: str | None = None,
) -> None:
    """
    Configure the root logger.

    Args:
        mode: "server" logs to a file only, "cli" logs to stderr.
        debug: Force DEBUG regardless of any other setting.
        log_file: Log file path.  In server mode it falls back to
                  ``$LOG_FILE`` and then /tmp/linklog-sync.log; in CLI mode
                  it adds a second handler.
        debug_format: "text" (default) or "json".
        level: Level name from the config file, e.g. "WARNING".

    Environment variables:
        LOG_LEVEL: Takes precedence over *level*.  Default INFO, which keeps
                   queued writes and drain summaries in the log; lost writes
                   are logged at ERROR.
        LOG_FILE: Server-mode log file.
    """
    log_level = _resolve_level(debug, level)

    if mode == "server":
        targets = [log_file or os.getenv("LOG_FILE", DEFAULT_LOG_FILE)]
    else:
        targets = [None] + ([log_file] if log_file else [])

    handlers = [
        _handler(t, _TEXT_FORMAT if t is None else _FILE_FORMAT, debug_format)
        for t in targets
    ]
    logging.basicConfig(level=log_level, handlers=handlers, force=True)

    if log_level > logging.DEBUG:
        for name in _QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
