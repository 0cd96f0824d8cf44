"""Structured logging configuration for the project sync engine.

- JSON structured logging with StructuredFormatter
- Logger hierarchy under the projectsync namespace
- Environment variable control (PROJECTSYNC_LOG_LEVEL, PROJECTSYNC_LOG_FORMAT)
"""

import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Optional

from .errors import SyncError

# Keys redacted in log output so credentials never leak through extras.
SENSITIVE_KEYS = {
    "password", "token", "secret", "apikey", "api_key",
    "authorization", "credential", "auth", "key", "bearer",
}

ROOT_LOGGER_NAME = "projectsync"

_STANDARD_FIELDS = {
    "name",
    "msg",
    "args",
    "created",
    "filename",
    "funcName",
    "levelname",
    "levelno",
    "lineno",
    "module",
    "msecs",
    "message",
    "pathname",
    "process",
    "processName",
    "relativeCreated",
    "thread",
    "threadName",
    "exc_info",
    "exc_text",
    "stack_info",
    "taskName",
}


def _redact(value: Any) -> Any:
    """Redact sensitive keys, descending into dicts and SyncErrors."""
    if isinstance(value, SyncError):
        value = value.to_dict()
    if isinstance(value, dict):
        return {
            k: "[REDACTED]" if str(k).lower() in SENSITIVE_KEYS else _redact(v)
            for k, v in value.items()
        }
    return value


def record_extras(record: logging.LogRecord) -> dict[str, Any]:
    """Collect the ``extra=`` fields of a record, redacted."""
    return _redact(
        {
            k: v
            for k, v in record.__dict__.items()
            if k not in _STANDARD_FIELDS and not k.startswith("_")
        }
    )


class StructuredFormatter(logging.Formatter):
    """JSON structured log formatter.

    Outputs one JSON object per record:
    - timestamp: UTC ISO 8601 format with 'Z' suffix
    - level, logger, message
    - context: extras passed via ``extra=`` (SyncError values flattened)
    - error: kind and context of a SyncError raised in exc_info
    - exception: formatted traceback, when exc_info is set

    Sensitive keys (password, token, api_key, ...) are redacted at any depth.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        extras = record_extras(record)
        if extras:
            log_data["context"] = extras

        if record.exc_info:
            error = record.exc_info[1]
            if isinstance(error, SyncError):
                log_data["error"] = _redact(error)
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable text formatter for development.

    Used when PROJECTSYNC_LOG_FORMAT=text. Extras are appended as
    ``key=value`` pairs so event-style messages stay readable, e.g.
    ``record_sync_failed record_id=7 kind=http_request_failed``.
    """

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extras = record_extras(record)
        if not extras:
            return line
        # Keep the traceback (if any) below the key=value pairs
        head, sep, tail = line.partition("\n")
        pairs = " ".join(f"{k}={v}" for k, v in extras.items())
        return f"{head} {pairs}{sep}{tail}"


def configure_logging(
    level: Optional[str] = None, log_format: Optional[str] = None
) -> logging.Logger:
    """Configure structured logging for all projectsync loggers.

    Args:
        level: Optional log level override. Falls back to PROJECTSYNC_LOG_LEVEL
               (default: INFO).
        log_format: Optional format override ("json" or "text"). Falls back to
                    PROJECTSYNC_LOG_FORMAT (default: json).

    Returns:
        The configured projectsync root logger.
    """
    if level is None:
        level = os.getenv("PROJECTSYNC_LOG_LEVEL", "INFO")

    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_format is None:
        log_format = os.getenv("PROJECTSYNC_LOG_FORMAT", "json")

    if log_format.lower() == "text":
        formatter = TextFormatter()
    else:
        formatter = StructuredFormatter()

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(log_level)

    # Only add a handler once; repeated calls just update level and format
    if not logger.handlers:
        handler = logging.StreamHandler()
        logger.addHandler(handler)
    for handler in logger.handlers:
        handler.setFormatter(formatter)

    logger.propagate = False
    return logger
