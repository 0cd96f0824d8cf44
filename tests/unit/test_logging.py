"""Unit tests for structured logging configuration."""

import json
import logging
import sys

import pytest

from projectsync.errors import HttpRequestFailedError, InvalidParameterError
from projectsync.logging_config import (
    ROOT_LOGGER_NAME,
    StructuredFormatter,
    TextFormatter,
    configure_logging,
)


def _record(msg="test_message", name="projectsync.test", **extras):
    record = logging.LogRecord(
        name=name,
        level=logging.INFO,
        pathname="test.py",
        lineno=10,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extras.items():
        setattr(record, key, value)
    return record


class TestStructuredFormatter:
    def test_produces_json_with_required_fields(self):
        log_data = json.loads(StructuredFormatter().format(_record()))

        assert log_data["level"] == "INFO"
        assert log_data["logger"] == "projectsync.test"
        assert log_data["message"] == "test_message"
        assert log_data["timestamp"].endswith("Z")
        assert "context" not in log_data

    def test_extras_in_context(self):
        output = StructuredFormatter().format(_record(record_id=42, api_url="https://x"))
        context = json.loads(output)["context"]
        assert context == {"record_id": 42, "api_url": "https://x"}

    def test_sensitive_keys_redacted(self):
        output = StructuredFormatter().format(_record(api_key="ghp_secret", token="t"))
        context = json.loads(output)["context"]
        assert context["api_key"] == "[REDACTED]"
        assert context["token"] == "[REDACTED]"
        assert "ghp_secret" not in output

    def test_non_serializable_extras_stringified(self):
        output = StructuredFormatter().format(_record(payload=object()))
        assert json.loads(output)["context"]["payload"].startswith("<object")

    def test_exception_included(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = _record()
            record.exc_info = sys.exc_info()
        log_data = json.loads(StructuredFormatter().format(record))
        assert "ValueError: boom" in log_data["exception"]
        assert "error" not in log_data

    def test_sync_error_in_exc_info_summarized(self):
        try:
            raise HttpRequestFailedError("HTTP response code was 500", status_code=500)
        except HttpRequestFailedError:
            record = _record("record_sync_failed")
            record.exc_info = sys.exc_info()
        log_data = json.loads(StructuredFormatter().format(record))
        assert log_data["error"] == {
            "kind": "http_request_failed",
            "error": "HTTP response code was 500",
            "status_code": 500,
        }
        assert "HttpRequestFailedError" in log_data["exception"]

    def test_sync_error_extra_flattened(self):
        error = InvalidParameterError("bad url", url="ftp://x")
        context = json.loads(StructuredFormatter().format(_record(cause=error)))["context"]
        assert context["cause"] == {
            "kind": "invalid_parameter",
            "error": "bad url",
            "url": "ftp://x",
        }

    def test_nested_sensitive_keys_redacted(self):
        output = StructuredFormatter().format(
            _record(request={"url": "https://x", "headers": {"Authorization": "Basic abc"}})
        )
        context = json.loads(output)["context"]
        assert context["request"]["headers"]["Authorization"] == "[REDACTED]"
        assert context["request"]["url"] == "https://x"
        assert "Basic abc" not in output


class TestTextFormatter:
    def test_plain_message(self):
        line = TextFormatter().format(_record("pass_started"))
        assert line.endswith("[INFO] projectsync.test: pass_started")

    def test_extras_appended(self):
        line = TextFormatter().format(_record("record_sync_failed", record_id=7, api_key="k"))
        assert line.endswith("record_sync_failed record_id=7 api_key=[REDACTED]")

    def test_traceback_kept_below_extras(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = _record("pass_failed", record_id=7)
            record.exc_info = sys.exc_info()
        first, rest = TextFormatter().format(record).split("\n", 1)
        assert first.endswith("pass_failed record_id=7")
        assert "ValueError: boom" in rest


class TestConfigureLogging:
    @pytest.fixture(autouse=True)
    def _restore_logger(self):
        logger = logging.getLogger(ROOT_LOGGER_NAME)
        handlers, level = list(logger.handlers), logger.level
        yield
        logger.handlers = handlers
        logger.setLevel(level)

    def test_json_by_default(self, monkeypatch):
        monkeypatch.delenv("PROJECTSYNC_LOG_FORMAT", raising=False)
        logger = configure_logging(level="DEBUG")
        assert logger.name == ROOT_LOGGER_NAME
        assert logger.level == logging.DEBUG
        assert all(isinstance(h.formatter, StructuredFormatter) for h in logger.handlers)

    def test_text_format_from_env(self, monkeypatch):
        monkeypatch.setenv("PROJECTSYNC_LOG_FORMAT", "text")
        logger = configure_logging()
        assert all(isinstance(h.formatter, TextFormatter) for h in logger.handlers)

    def test_level_from_env(self, monkeypatch):
        monkeypatch.setenv("PROJECTSYNC_LOG_LEVEL", "warning")
        assert configure_logging().level == logging.WARNING

    def test_idempotent_handlers(self):
        configure_logging()
        count = len(logging.getLogger(ROOT_LOGGER_NAME).handlers)
        configure_logging()
        assert len(logging.getLogger(ROOT_LOGGER_NAME).handlers) == count
        assert count >= 1

    def test_child_loggers_inherit(self):
        configure_logging(level="ERROR")
        child = logging.getLogger("projectsync.sync")
        assert child.getEffectiveLevel() == logging.ERROR
