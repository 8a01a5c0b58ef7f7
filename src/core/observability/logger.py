# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.
"""
Structured logger with context injection and typed event support.
"""

from __future__ import annotations
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, MutableMapping, Optional, TextIO

from src.core.observability.context import ObservabilityContextManager
from src.core.observability.events import DispatchEvent, LogLevel

_LEVELS = {
    LogLevel.DEBUG.value: logging.DEBUG,
    LogLevel.INFO.value: logging.INFO,
    LogLevel.WARN.value: logging.WARNING,
    LogLevel.ERROR.value: logging.ERROR,
}


class LogFormatter(logging.Formatter):
    """
    Base formatter exposing context and event payload of a record.
    """

    @staticmethod
    def context_of(record: logging.LogRecord) -> dict[str, Any]:
        return dict(getattr(record, "context", None) or {})

    @staticmethod
    def event_of(record: logging.LogRecord) -> dict[str, Any]:
        return dict(getattr(record, "event_data", None) or {})


class JSONFormatter(LogFormatter):
    """
    One JSON object per line.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(self.context_of(record))
        entry.update(self.event_of(record))
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class ConsoleFormatter(LogFormatter):
    """
    Human readable single-line format with context suffix.
    """

    def __init__(self) -> None:
        super().__init__("%(asctime)s - %(levelname)s - %(name)s - %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = self.context_of(record)
        fields.update(
            {
                k: v
                for k, v in self.event_of(record).items()
                if k not in ("timestamp", "event", "level")
            }
        )
        if fields:
            suffix = " ".join(f"{k}={v}" for k, v in fields.items())
            first, sep, rest = line.partition("\n")
            line = f"{first} [{suffix}]{sep}{rest}"
        return line


class StructuredLogger(logging.LoggerAdapter):
    """
    Logger adapter that attaches the current observability context to
    every record and can emit typed events.
    """

    def __init__(self, logger: logging.Logger) -> None:
        super().__init__(logger, {})

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        extra.setdefault("context", ObservabilityContextManager.instance().get_all())
        kwargs["extra"] = extra
        return msg, kwargs

    def event(self, event: DispatchEvent) -> None:
        """Log a typed event at its own level.

        :param event: Event to log
        :type event: DispatchEvent
        """
        payload = event.model_dump(mode="json", exclude_none=True)
        level = _LEVELS.get(str(payload.get("level")), logging.INFO)
        self.log(level, event.event, extra={"event_data": payload})


class LoggerFactory:
    """
    Configures the root handler once and hands out structured loggers.
    """

    _handler: Optional[logging.Handler] = None
    _loggers: dict[str, StructuredLogger] = {}

    @classmethod
    def initialize(
        cls,
        level: int | str = logging.INFO,
        log_format: str = "console",
        stream: Optional[TextIO] = None,
    ) -> logging.Handler:
        """Install the process-wide log handler.

        Calling it again replaces the previously installed handler.
        ``level`` applies to this handler only; the root logger stays at
        INFO or below so the syslog handler always receives the START/END
        lines of a run.

        :param level: Level of the stream handler
        :param log_format: ``console`` or ``json``
        :param stream: Output stream, defaults to stderr
        :returns: The installed handler
        :raises ValueError: If ``level`` is not a known level name
        """
        numeric = level if isinstance(level, int) else logging.getLevelName(level.upper())
        if not isinstance(numeric, int):
            raise ValueError(f"Unknown log level: {level}")

        root = logging.getLogger()
        if cls._handler is not None:
            root.removeHandler(cls._handler)
        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(JSONFormatter() if log_format == "json" else ConsoleFormatter())
        handler.setLevel(numeric)
        root.addHandler(handler)
        root.setLevel(min(numeric, logging.INFO))
        cls._handler = handler
        return handler

    @classmethod
    def get_logger(cls, name: str) -> StructuredLogger:
        if name not in cls._loggers:
            cls._loggers[name] = StructuredLogger(logging.getLogger(name))
        return cls._loggers[name]


def initialize_logging(
    level: int | str = logging.INFO,
    log_format: str = "console",
    stream: Optional[TextIO] = None,
) -> logging.Handler:
    """Initialize process logging."""
    return LoggerFactory.initialize(level=level, log_format=log_format, stream=stream)


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger by name."""
    return LoggerFactory.get_logger(name)
