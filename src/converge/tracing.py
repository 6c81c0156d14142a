"""Diagnostic output on stderr.

Stdout carries results only, so every diagnostic goes to stderr as one line
per record. The default JSON format is the message shape hosts parse:

    {"error": "Input exceeds maximum size of 1048576 bytes"}
    {"info": "Applying changes", "type": "Test/Group", "changed": ["members"]}

The key is the level name, the value is the message, and any `extra=` fields
follow. The text format is meant for people reading a terminal.
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any, TextIO

from .config import Config, TraceFormat, TraceLevel

# Below DEBUG, for per-property diff chatter
TRACE = 5
logging.addLevelName(TRACE, "TRACE")

LEVELS: dict[TraceLevel, int] = {
    TraceLevel.ERROR: logging.ERROR,
    TraceLevel.WARN: logging.WARNING,
    TraceLevel.INFO: logging.INFO,
    TraceLevel.DEBUG: logging.DEBUG,
    TraceLevel.TRACE: TRACE,
}

# Attributes every LogRecord carries; anything else came from `extra=`
_RECORD_ATTRIBUTES = frozenset({
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
    "pathname",
    "process",
    "processName",
    "relativeCreated",
    "stack_info",
    "exc_info",
    "exc_text",
    "thread",
    "threadName",
    "taskName",
    "message",
})


def level_key(levelno: int) -> str:
    """Map a logging level to its message key."""
    if levelno >= logging.ERROR:
        return "error"
    if levelno >= logging.WARNING:
        return "warn"
    if levelno >= logging.INFO:
        return "info"
    if levelno >= logging.DEBUG:
        return "debug"
    return "trace"


def record_extras(record: logging.LogRecord) -> dict[str, Any]:
    return {k: v for k, v in record.__dict__.items() if k not in _RECORD_ATTRIBUTES}


class JsonFormatter(logging.Formatter):
    """Format records as single-line JSON messages."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {level_key(record.levelno): record.getMessage()}
        log_data.update(record_extras(record))

        if record.exc_info and record.levelno <= logging.DEBUG:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Format records as `LEVEL: message key=value ...`.

    Whitespace runs in the message, line breaks included, collapse to one
    space so each record stays on one line; only a debug traceback spans several.
    """

    def format(self, record: logging.LogRecord) -> str:
        message = " ".join(record.getMessage().split())
        parts = [f"{level_key(record.levelno).upper()}: {message}"]
        parts.extend(f"{k}={v}" for k, v in record_extras(record).items())
        line = " ".join(parts)
        if record.exc_info and record.levelno <= logging.DEBUG:
            line += "\n" + self.formatException(record.exc_info)
        return line


class ErrorCounter(logging.Handler):
    """Counts error-level records so the host never exits 0 after one."""

    def __init__(self) -> None:
        super().__init__(level=logging.ERROR)
        self.count = 0

    def emit(self, record: logging.LogRecord) -> None:
        self.count += 1

    @property
    def tripped(self) -> bool:
        return self.count > 0


def setup_logging(config: Config, stream: TextIO | None = None) -> ErrorCounter:
    """Configure diagnostic logging for one process invocation.

    Handlers installed by a previous call are replaced, so repeated
    invocations in one interpreter (tests) do not duplicate output.

    Args:
        config: Process configuration (trace level and format).
        stream: Output stream (default: the current sys.stderr).

    Returns:
        The error counter attached to the root logger.
    """
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    match config.trace_format:
        case TraceFormat.TEXT:
            handler.setFormatter(TextFormatter())
        case _:
            handler.setFormatter(JsonFormatter())

    counter = ErrorCounter()

    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        if getattr(existing, "_converge", False):
            root_logger.removeHandler(existing)

    for installed in (handler, counter):
        installed._converge = True  # type: ignore[attr-defined]
        root_logger.addHandler(installed)
    root_logger.setLevel(LEVELS[config.trace_level])

    return counter
