"""
Tests for structured logging configuration.
"""

import logging
from uuid import UUID

import structlog
from structlog.contextvars import get_contextvars

from apps.core.logging import (
    _convert_duration_to_nanoseconds,
    _stringify_uuids,
    bind_contextvars,
    clear_contextvars,
    configure_logging,
    get_logger,
    unbind_contextvars,
)


class TestConfigureLogging:
    """Tests for configure_logging function."""

    def test_configure_logging_json_format(self):
        """Test that JSON format configuration works."""
        configure_logging(json_format=True, log_level="INFO")

        assert structlog.get_config() is not None
        assert logging.getLogger().level == logging.INFO

    def test_configure_logging_console_format(self):
        """Test that console format configuration works."""
        configure_logging(json_format=False, log_level="DEBUG")

        assert logging.getLogger().level == logging.DEBUG

    def test_unknown_level_falls_back_to_info(self):
        configure_logging(json_format=True, log_level="CHATTY")

        assert logging.getLogger().level == logging.INFO


class TestProcessors:
    """Tests for the custom processors in the chain."""

    def test_uuid_values_rendered_as_strings(self):
        value = UUID("01890000-0000-7000-8000-000000000000")

        event = _stringify_uuids(None, "info", {"event": "x", "operation_id": value})

        assert event["operation_id"] == "01890000-0000-7000-8000-000000000000"

    def test_duration_ms_converted_to_nanoseconds(self):
        event = _convert_duration_to_nanoseconds(None, "info", {"duration_ms": 150.5})

        assert "duration_ms" not in event
        assert event["duration"] == 150_500_000


class TestContextVars:
    """Tests for context variable binding."""

    def setup_method(self):
        clear_contextvars()

    def teardown_method(self):
        clear_contextvars()

    def test_bind_dotted_keys(self):
        """Per-operation context uses dotted keys."""
        bind_contextvars(**{"sync.operation_id": "op_1", "sync.entity": "task"})

        ctx = get_contextvars()
        assert ctx.get("sync.operation_id") == "op_1"
        assert ctx.get("sync.entity") == "task"

    def test_unbind_removes_only_named_keys(self):
        bind_contextvars(**{"sync.operation_id": "op_1", "notification.id": "n_1"})

        unbind_contextvars("sync.operation_id")

        ctx = get_contextvars()
        assert "sync.operation_id" not in ctx
        assert ctx.get("notification.id") == "n_1"


class TestLogOutput:
    """Tests for actual log output."""

    def setup_method(self):
        clear_contextvars()
        configure_logging(json_format=True, log_level="DEBUG")

    def teardown_method(self):
        clear_contextvars()

    def test_json_log_output_format(self, caplog):
        logger = get_logger("test.json_output")
        bind_contextvars(**{"sync.operation_id": "op_1"})

        with caplog.at_level(logging.DEBUG, logger="test.json_output"):
            logger.info("sync_operation_completed", entity_id="task_1")

        assert len(caplog.records) > 0
        assert "sync_operation_completed" in caplog.text

    def test_log_with_exception(self, caplog):
        logger = get_logger("test.exception")

        with caplog.at_level(logging.DEBUG, logger="test.exception"):
            try:
                raise ValueError("Test error")
            except ValueError:
                logger.exception("sync_run_failed")

        assert len(caplog.records) > 0
        output = caplog.text
        assert "sync_run_failed" in output or "ValueError" in output
