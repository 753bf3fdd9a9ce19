"""Logging: human-readable for development, JSON for production.

``configure_logging`` installs the transport (one stdlib handler on the root logger).
``LoggerCore`` is the leveled logger every intercepted call and every front-end
message goes through. Structured fields travel as logging extras:
    core.error("Handler failed", data={"args": [...]}, flattened_error="...")
"""

from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
import json
import logging
import sys
from typing import Any

import structlog

from storefront.core.records import LogRecord

# Third-party loggers: always WARNING so they don't flood output regardless of app level.
THIRD_PARTY_LOGGER_LEVELS: dict[str, str] = {
    "uvicorn.access": "WARNING",
    "watchfiles": "WARNING",
    "asyncio": "WARNING",
}

# Standard LogRecord attribute names to exclude from extra-field output.
_RECORD_ATTRS = frozenset(
    {
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
        "message",
        "thread",
        "threadName",
        "taskName",
        "getMessage",
    }
)

# Third-party / display-only attributes to never include in output (e.g. ANSI color codes).
_EXCLUDE_EXTRAS = frozenset({"color_message"})

LEVELS = ("debug", "info", "warn", "error")

_LEVEL_ALIASES: dict[str, str] = {
    "trace": "debug",
    "log": "info",
    "warning": "warn",
    "exception": "error",
    "critical": "error",
    "fatal": "error",
}

# structlog.stdlib.BoundLogger method per level
_METHODS: dict[str, str] = {
    "debug": "debug",
    "info": "info",
    "warn": "warning",
    "error": "error",
}


def _extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    """Extract user-supplied extra fields from a log record."""
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RECORD_ATTRS and key not in _EXCLUDE_EXTRAS and value is not None
    }


class JsonFormatter(logging.Formatter):
    """Format log records as one JSON object per line for centralized ingestion."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(_extra_fields(record))
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class DevFormatter(logging.Formatter):
    """Human-readable formatter for local development.

    Output example:
        2025-01-15 10:23:45.120 | DEBUG    | storefront | 3fa9c2e1 200 GET /about (5ms)  request_id=3fa9c2e1

    Multi-line extras (flattened objects) are indented under the line.
    """

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created)
        ts = created.strftime("%Y-%m-%d %H:%M:%S") + f".{int(record.msecs):03d}"
        level = record.levelname.ljust(8)
        message = record.getMessage()

        extras = _extra_fields(record)
        inline = {k: v for k, v in extras.items() if "\n" not in str(v)}
        block = {k: v for k, v in extras.items() if k not in inline}
        extras_str = "  " + " ".join(f"{k}={v}" for k, v in inline.items()) if inline else ""

        line = f"{ts} | {level} | {record.name} | {message}{extras_str}"

        for key, value in block.items():
            indented = "\n".join(f"    {text}" for text in str(value).splitlines())
            line = f"{line}\n  {key}:\n{indented}"

        if record.exc_info:
            exc_text = self.formatException(record.exc_info)
            indented = "\n".join(f"  {line_text}" for line_text in exc_text.splitlines())
            line = f"{line}\n{indented}"

        return line


def configure_logging(
    level: str | int = "DEBUG",
    *,
    environment: str = "production",
    stream: Any = None,
    logger_levels: dict[str, str | int] | None = None,
) -> None:
    """Configure root logger. Call once at application startup.

    Args:
        level: Root logger level (e.g. "DEBUG", logging.INFO).
        environment: "development" for human-readable output, anything else for JSON.
        stream: Output stream; defaults to sys.stdout.
        logger_levels: Optional mapping of logger names to levels.
    """
    if stream is None:
        stream = sys.stdout
    root = logging.getLogger()
    root.setLevel(level if isinstance(level, int) else getattr(logging, level.upper()))
    root.handlers.clear()

    handler = logging.StreamHandler(stream)
    formatter = DevFormatter() if environment == "development" else JsonFormatter()
    handler.setFormatter(formatter)
    handler.setLevel(root.level)
    root.addHandler(handler)

    levels = {**THIRD_PARTY_LOGGER_LEVELS, **(logger_levels or {})}
    for name, lvl in levels.items():
        log = logging.getLogger(name)
        log.setLevel(lvl if isinstance(lvl, int) else getattr(logging, lvl.upper()))


def resolve_level(name: Any) -> str:
    """Map a logging entry point name onto one of ``LEVELS``; unknown names become info."""
    if not isinstance(name, str):
        return "info"
    name = name.lower()
    if name in LEVELS:
        return name
    return _LEVEL_ALIASES.get(name, "info")


def render_messages(messages: Sequence[Any]) -> str:
    """Join messages into one line, applying %-style interpolation when the first one asks for it."""
    if not messages:
        return ""
    first, rest = messages[0], tuple(messages[1:])
    if isinstance(first, str) and rest and "%" in first:
        # A lone non-empty mapping fills named placeholders, as in logging.LogRecord
        args: Any = rest[0] if len(rest) == 1 and isinstance(rest[0], Mapping) and rest[0] else rest
        try:
            return first % args
        except (TypeError, ValueError, KeyError):
            pass
    return " ".join(str(message) for message in messages)


class LoggerCore:
    """Leveled structured logger; one line per call, never raises.

    Request-scoped fields bound with ``structlog.contextvars`` are merged into
    every line.
    """

    def __init__(self, name: str = "storefront", logger: logging.Logger | None = None) -> None:
        self._stdlib_logger = logger or logging.getLogger(name)
        self._logger = structlog.wrap_logger(
            self._stdlib_logger,
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.stdlib.filter_by_level,
                structlog.stdlib.render_to_log_kwargs,
            ],
            wrapper_class=structlog.stdlib.BoundLogger,
        )

    @property
    def name(self) -> str:
        return self._stdlib_logger.name

    def log(
        self,
        level: str,
        *messages: Any,
        data: dict[str, Any] | None = None,
        flattened_error: Any = None,
        exc_info: Any = None,
        **fields: Any,
    ) -> None:
        try:
            method = _METHODS[resolve_level(level)]
            if data is not None:
                fields["data"] = data
            if flattened_error is not None:
                fields["flattened_error"] = flattened_error
            if exc_info:
                fields["exc_info"] = exc_info
            getattr(self._logger, method)(render_messages(messages), **fields)
        except Exception as e:  # noqa: BLE001
            sys.stderr.write(f"storefront: failed to write log line: {e!r}\n")

    def emit(self, level: str, record: LogRecord, **fields: Any) -> None:
        """Log a normalized record."""
        self.log(
            level,
            *record.messages,
            data=record.data,
            flattened_error=record.error_payload,
            **fields,
        )

    def debug(self, *messages: Any, **fields: Any) -> None:
        self.log("debug", *messages, **fields)

    def info(self, *messages: Any, **fields: Any) -> None:
        self.log("info", *messages, **fields)

    def warn(self, *messages: Any, **fields: Any) -> None:
        self.log("warn", *messages, **fields)

    def error(self, *messages: Any, **fields: Any) -> None:
        self.log("error", *messages, **fields)


__all__ = [
    "LEVELS",
    "THIRD_PARTY_LOGGER_LEVELS",
    "DevFormatter",
    "JsonFormatter",
    "LoggerCore",
    "configure_logging",
    "render_messages",
    "resolve_level",
]
