"""
Diagnostic Logging
------------------
The interceptor's own diagnostics (sink failures, caught handler failures)
are JSON lines on stderr. They are kept apart from the request records,
which go to the configured sink.

Fields emitted on every log:
  - timestamp   ISO-8601
  - level       DEBUG | INFO | WARNING | ERROR
  - logger      module path
  - message     event name
  - **kwargs    all structured data passed by the caller
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from json_logs.core.config import get_settings

_RESERVED = frozenset((
    "args", "asctime", "created", "exc_info", "exc_text",
    "filename", "funcName", "id", "levelname", "levelno",
    "lineno", "module", "msecs", "message", "msg", "name",
    "pathname", "process", "processName", "relativeCreated",
    "stack_info", "thread", "threadName", "taskName",
))

_package_loggers: set[str] = set()


class JSONFormatter(logging.Formatter):
    """Emit each log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Merge any extra structured fields the caller passed via `extra=`
        for key, value in record.__dict__.items():
            if key not in _RESERVED:
                payload[key] = value

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


def get_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        # sys.__stderr__ is never wrapped by the capture proxy
        handler = logging.StreamHandler(sys.__stderr__ or sys.stderr)
        handler.setFormatter(JSONFormatter())
        logger.addHandler(handler)
        logger.setLevel(get_settings().log_level.upper())
        logger.propagate = False
        _package_loggers.add(name)
    return logger


def set_log_level(level: str) -> None:
    """Apply `level` to every logger created through get_logger()."""
    for name in list(_package_loggers):
        logging.getLogger(name).setLevel(level.upper())


def log_lifecycle_event(
    logger: logging.Logger,
    event: str,
    level: int = logging.INFO,
    **kwargs: Any,
) -> None:
    """Helper that enforces a consistent lifecycle log shape."""
    logger.log(level, event, extra=kwargs)
