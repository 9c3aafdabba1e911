"""Tests for structured logging configuration."""

import json
import logging
import sys

from quotagate.app.core.config import Settings
from quotagate.app.core.logging import (
    ContextFilter,
    JSONFormatter,
    get_log_context,
    get_logger,
    get_logging_config,
)


def make_record(msg="Test message", level=logging.INFO, exc_info=None):
    return logging.LogRecord(
        name="test",
        level=level,
        pathname="test.py",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )


class TestJSONFormatter:
    """Test JSON formatter for structured logging."""

    def test_basic_json_format(self):
        data = json.loads(JSONFormatter().format(make_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "test"
        assert data["message"] == "Test message"
        assert "timestamp" in data
        assert data["source"]["file"] == "test.py"
        assert data["source"]["line"] == 1
        assert "extra" not in data

    def test_json_format_with_context(self):
        record = make_record("Rate limit exceeded")
        record.client_id = "9.9.9.9:u42"
        record.limiter = "auth"
        record.retry_after = 12

        data = json.loads(JSONFormatter().format(record))

        assert data["client_id"] == "9.9.9.9:u42"
        assert data["limiter"] == "auth"
        assert data["retry_after"] == 12

    def test_json_format_skips_empty_context(self):
        record = make_record()
        ContextFilter().filter(record)

        data = json.loads(JSONFormatter().format(record))

        assert "client_id" not in data
        assert "extra" not in data

    def test_json_format_with_extra_fields(self):
        record = make_record("Application startup complete")
        record.rate_limit_backend = "redis"

        data = json.loads(JSONFormatter().format(record))

        assert data["extra"]["rate_limit_backend"] == "redis"

    def test_json_format_with_exception(self):
        try:
            raise ValueError("Test error")
        except ValueError:
            record = make_record("Error occurred", logging.ERROR, sys.exc_info())

        data = json.loads(JSONFormatter().format(record))

        exception_text = "".join(data["exception"])
        assert "ValueError" in exception_text
        assert "Test error" in exception_text


class TestContextFilter:
    """Test context filter for adding default fields."""

    def test_adds_default_fields(self):
        record = make_record()

        assert ContextFilter().filter(record) is True
        for field in ("request_id", "client_id", "limiter", "path", "method", "retry_after"):
            assert getattr(record, field) is None

    def test_preserves_existing_values(self):
        record = make_record()
        record.limiter = "api"

        ContextFilter().filter(record)

        assert record.limiter == "api"


class TestLoggingConfig:
    """Test dictConfig generation."""

    def test_text_format_by_default(self):
        config = get_logging_config(Settings(_env_file=None))
        assert config["handlers"]["console"]["formatter"] == "standard"
        assert config["loggers"]["quotagate"]["level"] == "INFO"

    def test_json_format(self):
        config = get_logging_config(Settings(_env_file=None, log_format="json", log_level="debug"))
        assert config["handlers"]["console"]["formatter"] == "json"
        assert config["formatters"]["json"]["()"] == "quotagate.app.core.logging.JSONFormatter"
        assert config["root"]["level"] == "DEBUG"

    def test_structured_format(self):
        config = get_logging_config(Settings(_env_file=None, log_format="structured"))
        assert config["handlers"]["console"]["formatter"] == "structured"
        assert "limiter=%(limiter)s" in config["formatters"]["structured"]["format"]


def test_get_logger_default_name():
    assert get_logger().name == "quotagate"


def test_get_log_context_drops_none():
    assert get_log_context(client_id="1.2.3.4", limiter=None, retry_after=5) == {
        "client_id": "1.2.3.4",
        "retry_after": 5,
    }
