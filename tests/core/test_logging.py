"""Tests for structured logging module."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest
import structlog

from agenda.core.logging import (
    _user_context,
    add_otel_context,
    add_user_context,
    configure_logging,
    get_user_context,
    set_user_context,
)

pytestmark = pytest.mark.unit


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_logging():
    """Reset logging and user context between tests."""
    token = _user_context.set(None)
    yield
    _user_context.reset(token)
    root = logging.getLogger()
    for handler in root.handlers:
        handler.close()
    root.handlers.clear()
    root.setLevel(logging.WARNING)
    structlog.reset_defaults()


# ---------------------------------------------------------------------------
# ContextVar accessors
# ---------------------------------------------------------------------------


class TestUserContext:
    def test_set_and_get(self):
        set_user_context("user-42")
        assert get_user_context() == "user-42"

    def test_default_is_none(self):
        assert get_user_context() is None


# ---------------------------------------------------------------------------
# add_user_context processor
# ---------------------------------------------------------------------------


class TestAddUserContext:
    def test_injects_user_id(self):
        set_user_context("user-42")
        event_dict = {"event": "test"}
        result = add_user_context(None, "info", event_dict)
        assert result["user"] == "user-42"

    def test_handles_unset_context(self):
        """ContextVar not set, user=None, no crash."""
        event_dict = {"event": "test"}
        result = add_user_context(None, "info", event_dict)
        assert result["user"] is None


# ---------------------------------------------------------------------------
# add_otel_context processor
# ---------------------------------------------------------------------------


class TestAddOtelContext:
    def test_zeroed_ids_when_no_span(self):
        """No active OTel span: zeroed trace_id and span_id."""
        event_dict = {"event": "test"}
        result = add_otel_context(None, "info", event_dict)
        assert result["trace_id"] == "0" * 32
        assert result["span_id"] == "0" * 16

    def test_real_ids_when_span_active(self):
        """Active OTel span: real hex trace_id and span_id."""
        from opentelemetry.sdk.trace import TracerProvider

        provider = TracerProvider()
        tracer = provider.get_tracer("test")
        with tracer.start_as_current_span("test-span"):
            event_dict = {"event": "test"}
            result = add_otel_context(None, "info", event_dict)
            assert result["trace_id"] != "0" * 32
            assert result["span_id"] != "0" * 16
            assert len(result["trace_id"]) == 32
            assert len(result["span_id"]) == 16
        provider.shutdown()


# ---------------------------------------------------------------------------
# configure_logging()
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    def test_text_format_installs_console_renderer(self):
        configure_logging(fmt="text")
        root = logging.getLogger()
        assert len(root.handlers) == 1
        formatter = root.handlers[0].formatter
        assert isinstance(formatter, structlog.stdlib.ProcessorFormatter)
        assert isinstance(formatter.processors[-1], structlog.dev.ConsoleRenderer)

    def test_json_format_installs_json_renderer(self):
        configure_logging(fmt="json")
        formatter = logging.getLogger().handlers[0].formatter
        assert isinstance(formatter, structlog.stdlib.ProcessorFormatter)
        assert isinstance(formatter.processors[-1], structlog.processors.JSONRenderer)

    def test_sets_user_context(self):
        configure_logging(user_id="user-7")
        assert get_user_context() == "user-7"

    def test_log_level_applied(self):
        configure_logging(level="DEBUG")
        assert logging.getLogger().level == logging.DEBUG

    def test_unknown_level_falls_back_to_info(self):
        configure_logging(level="chatty")
        assert logging.getLogger().level == logging.INFO

    def test_reconfiguring_does_not_duplicate_handlers(self):
        configure_logging()
        configure_logging()
        assert len(logging.getLogger().handlers) == 1


# ---------------------------------------------------------------------------
# File logging
# ---------------------------------------------------------------------------


class TestFileLogging:
    def test_log_file_created_under_agenda_dir(self, tmp_path: Path):
        configure_logging(log_root=tmp_path)
        file_handlers = [
            h for h in logging.getLogger().handlers if isinstance(h, logging.FileHandler)
        ]
        assert len(file_handlers) == 1
        assert str(file_handlers[0].baseFilename).endswith("agenda/agenda.log")

    def test_custom_log_name(self, tmp_path: Path):
        configure_logging(log_root=tmp_path / "nested" / "logs", log_name="preview")
        assert (tmp_path / "nested" / "logs" / "agenda").is_dir()
        file_handlers = [
            h for h in logging.getLogger().handlers if isinstance(h, logging.FileHandler)
        ]
        assert str(file_handlers[0].baseFilename).endswith("agenda/preview.log")

    def test_file_handler_always_json(self, tmp_path: Path):
        configure_logging(fmt="text", log_root=tmp_path)
        file_handler = next(
            h for h in logging.getLogger().handlers if isinstance(h, logging.FileHandler)
        )
        assert isinstance(file_handler.formatter.processors[-1], structlog.processors.JSONRenderer)

    def test_json_output_is_valid_json(self, tmp_path: Path):
        configure_logging(level="INFO", log_root=tmp_path, user_id="user-42")
        logging.getLogger("agenda.test").info("hello %s", "world")
        for handler in logging.getLogger().handlers:
            handler.flush()

        lines = (tmp_path / "agenda" / "agenda.log").read_text().strip().splitlines()
        assert lines
        record = json.loads(lines[-1])
        assert record["event"] == "hello world"
        assert record["user"] == "user-42"
        assert record["level"] == "info"
        assert record["logger"] == "agenda.test"
