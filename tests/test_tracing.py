"""Tests for diagnostic logging."""

from __future__ import annotations

import io
import json
import logging
import sys
from pathlib import Path

import pytest

from converge.config import Config, TraceFormat, TraceLevel
from converge.tracing import TRACE, JsonFormatter, TextFormatter, level_key, setup_logging


def make_record(level: int, message: str, **extra: object) -> logging.LogRecord:
    record = logging.LogRecord("converge.test", level, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJsonFormatter:
    """Tests for the JSON message format."""

    @pytest.mark.parametrize(
        ("level", "key"),
        [
            (logging.ERROR, "error"),
            (logging.WARNING, "warn"),
            (logging.INFO, "info"),
            (logging.DEBUG, "debug"),
            (TRACE, "trace"),
        ],
    )
    def test_level_keys(self, level: int, key: str) -> None:
        """Test that the level name is the message key."""
        assert level_key(level) == key
        assert json.loads(JsonFormatter().format(make_record(level, "hello"))) == {key: "hello"}

    def test_extras_included(self) -> None:
        """Test that extra fields follow the message."""
        line = JsonFormatter().format(make_record(logging.INFO, "Applied", changed=["members"]))

        assert json.loads(line) == {"info": "Applied", "changed": ["members"]}

    def test_single_line(self) -> None:
        """Test that multi-line messages stay on one line."""
        line = JsonFormatter().format(make_record(logging.ERROR, "first\nsecond"))

        assert "\n" not in line


class TestTextFormatter:
    """Tests for the human-readable format."""

    def test_multi_line_message_folded(self) -> None:
        """Test that a multi-line validation report prints as one line."""
        message = "Invalid GroupInstance input:\n  - groupName: Field required\n  - exist: Extra"

        line = TextFormatter().format(make_record(logging.ERROR, message))

        assert line == (
            "ERROR: Invalid GroupInstance input: - groupName: Field required - exist: Extra"
        )

    def test_traceback_only_at_debug(self) -> None:
        """Test that exception text is appended only for debug records."""
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            exc_info = sys.exc_info()
        error = make_record(logging.ERROR, "failed")
        error.exc_info = exc_info
        debug = make_record(logging.DEBUG, "failed")
        debug.exc_info = exc_info

        assert TextFormatter().format(error) == "ERROR: failed"
        assert "RuntimeError: boom" in TextFormatter().format(debug)


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_writes_to_stream_at_level(self, tmp_path: Path) -> None:
        """Test that records below the trace level are dropped."""
        stream = io.StringIO()
        setup_logging(Config(manifest_dir=tmp_path), stream)

        logging.getLogger("converge.test").info("hidden")
        logging.getLogger("converge.test").warning("shown")

        assert stream.getvalue().splitlines() == ['{"warn": "shown"}']

    def test_text_format(self, tmp_path: Path) -> None:
        """Test the human-readable format."""
        stream = io.StringIO()
        config = Config(
            trace_level=TraceLevel.INFO, trace_format=TraceFormat.TEXT, manifest_dir=tmp_path
        )
        setup_logging(config, stream)

        logging.getLogger("converge.test").info("Applied", extra={"type": "Test/Group"})

        assert stream.getvalue().strip() == "INFO: Applied type=Test/Group"

    def test_error_counter(self, tmp_path: Path) -> None:
        """Test that error records are counted."""
        counter = setup_logging(Config(manifest_dir=tmp_path), io.StringIO())

        assert counter.tripped is False
        logging.getLogger("converge.test").error("boom")
        assert counter.count == 1
        assert counter.tripped is True

    def test_reconfiguration_replaces_handlers(self, tmp_path: Path) -> None:
        """Test that a second setup does not duplicate output."""
        first = io.StringIO()
        second = io.StringIO()
        setup_logging(Config(manifest_dir=tmp_path), first)
        setup_logging(Config(manifest_dir=tmp_path), second)

        logging.getLogger("converge.test").error("once")

        assert first.getvalue() == ""
        assert second.getvalue().splitlines() == ['{"error": "once"}']
