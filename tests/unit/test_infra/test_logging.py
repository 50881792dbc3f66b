"""Unit tests for structured logging."""
from __future__ import annotations

import json
import logging
import sys

import pytest

from commerce_relay.core.settings import LoggingSettings
from commerce_relay.infra.logging import (
    ContextInjectingFilter,
    JSONFormatter,
    clear_log_context,
    configure_logging,
    get_log_context,
    get_logger,
    remove_from_log_context,
    set_log_context,
    setup_logging,
)
from commerce_relay.infra.logging import config as logging_config


def _record(msg: str = "Outbox message failed", **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="commerce_relay.infra.outbox.service",
        level=logging.WARNING,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture(autouse=True)
def _clean_context():
    clear_log_context()
    yield
    clear_log_context()


@pytest.fixture
def restore_root_logger():
    """Put the root logger back the way pytest configured it."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    logging.captureWarnings(False)
    logging_config._LOGGING_INITIALIZED = False


@pytest.mark.unit
class TestJSONFormatter:
    """Test suite for JSONFormatter."""

    def test_outputs_one_json_object(self):
        output = JSONFormatter().format(_record())

        data = json.loads(output)
        assert data["level"] == "WARNING"
        assert data["logger"] == "commerce_relay.infra.outbox.service"
        assert data["message"] == "Outbox message failed"
        assert data["timestamp"].endswith("Z")
        assert "\n" not in output

    def test_includes_extra_and_static_fields(self):
        formatter = JSONFormatter(static={"service": "commerce-relay"})

        data = json.loads(formatter.format(_record(message_id="m-1", retry_count=2)))

        assert data["service"] == "commerce-relay"
        assert data["message_id"] == "m-1"
        assert data["retry_count"] == 2
        assert "pathname" not in data

    def test_exception_is_single_line(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = _record()
            record.exc_info = sys.exc_info()

        output = JSONFormatter().format(record)

        assert "\n" not in output
        assert "ValueError: boom" in json.loads(output)["exception"]

    def test_non_serializable_values_use_str(self):
        data = json.loads(JSONFormatter().format(_record(payload=object())))

        assert data["payload"].startswith("<object object")


@pytest.mark.unit
class TestLogContext:
    """Test suite for contextvars-based log context."""

    def test_set_get_remove(self):
        set_log_context(outbox_message_id="m-1", actor="user-42")
        remove_from_log_context("actor")

        assert get_log_context() == {"outbox_message_id": "m-1"}

    def test_filter_injects_context_without_overwriting(self):
        set_log_context(outbox_message_id="m-1", name="ignored")
        record = _record()

        assert ContextInjectingFilter().filter(record)

        assert record.outbox_message_id == "m-1"
        assert record.name == "commerce_relay.infra.outbox.service"

    def test_bound_logger_merges_extra(self, caplog):
        logger = get_logger("commerce_relay.tests", component="outbox-runner").bind(batch=1)

        with caplog.at_level(logging.INFO, logger="commerce_relay.tests"):
            logger.info("tick", extra={"fetched": 3})

        record = caplog.records[-1]
        assert record.component == "outbox-runner"
        assert record.batch == 1
        assert record.fetched == 3


@pytest.mark.unit
class TestConfigureLogging:
    def test_configures_json_console_handler(self, restore_root_logger):
        configure_logging(log_level="DEBUG", json_logs=True, capture_warnings=False)

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[0].formatter, JSONFormatter)
        assert any(isinstance(f, ContextInjectingFilter) for f in root.handlers[0].filters)
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING

    def test_text_format_without_context(self, restore_root_logger):
        configure_logging(json_logs=False, include_context=False, capture_warnings=False)

        handler = logging.getLogger().handlers[0]
        assert not isinstance(handler.formatter, JSONFormatter)
        assert handler.filters == []

    def test_setup_logging_runs_once(self, restore_root_logger, monkeypatch):
        calls = []
        monkeypatch.setattr(logging_config, "configure_logging", lambda **kw: calls.append(kw))
        logging_config._LOGGING_INITIALIZED = False

        setup_logging(LoggingSettings(level="WARNING"))
        setup_logging(LoggingSettings(level="DEBUG"))
        setup_logging(LoggingSettings(level="ERROR"), force=True)

        assert [c["log_level"] for c in calls] == ["WARNING", "ERROR"]
