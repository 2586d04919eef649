"""
Structured channel writer: one append-only JSON-lines file per category.

Each category gets its own stdlib logger and file handler, fronted by a
structlog processor chain that stamps the timestamp, level and static labels
and renders one JSON object per line. Files are named after the rotation date
so swapping to a new day only means swapping handlers.

Writes are best-effort: a failing sink is counted and logged, never raised.
"""

from __future__ import annotations

import logging
import sys
import time
from collections.abc import Mapping
from datetime import date
from pathlib import Path
from typing import Any

import structlog

from ..core.config import TelemetryConfig
from ..core.types import TRACE, Category, LogLevel, TelemetryStats

logger = structlog.get_logger()


class ChannelFileHandler(logging.FileHandler):
    """File handler that surfaces write failures instead of printing them.

    logging.Handler.handleError swallows exceptions raised while emitting;
    the channel writer needs them to keep its error counter honest.
    """

    def handleError(self, record: logging.LogRecord) -> None:  # noqa: N802
        exc = sys.exc_info()[1]
        if exc is not None:
            raise exc


class _ChannelSink:
    """Wrapped logger for structlog exposing the six channel severities."""

    def __init__(self, stdlib_logger: logging.Logger) -> None:
        self._logger = stdlib_logger

    def trace(self, message: str) -> None:
        self._logger.log(TRACE, message)

    def debug(self, message: str) -> None:
        self._logger.log(logging.DEBUG, message)

    def info(self, message: str) -> None:
        self._logger.log(logging.INFO, message)

    def warn(self, message: str) -> None:
        self._logger.log(logging.WARNING, message)

    def error(self, message: str) -> None:
        self._logger.log(logging.ERROR, message)

    def fatal(self, message: str) -> None:
        self._logger.log(logging.CRITICAL, message)


def _epoch_millis(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    event_dict["timestamp"] = int(time.time() * 1000)
    return event_dict


def _epoch_seconds(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    event_dict["timestamp"] = int(time.time())
    return event_dict


def _channel_level_name(_: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    # add_log_level reports "warn" as "warning"; channel entries keep the six names
    if method_name == LogLevel.WARN.value:
        event_dict["level"] = LogLevel.WARN.value
    return event_dict


# Keys owned by the entry envelope (plus structlog's own call argument)
ENVELOPE_KEYS = frozenset({"event", "level", "timestamp", "category", "method_name"})
ESCAPE_PREFIX = "field_"


def escape_fields(fields: Mapping[str, Any], reserved: frozenset[str]) -> dict[str, Any]:
    """Rename payload keys that would clash with envelope keys.

    ``{"event": "outage"}`` is written as ``{"field_event": "outage"}``; the
    prefix repeats until the name is free, so no payload value is dropped.
    """
    escaped: dict[str, Any] = {}
    for key, value in fields.items():
        name = str(key)
        while name in reserved or name in escaped:
            name = f"{ESCAPE_PREFIX}{name}"
        escaped[name] = value
    return escaped


class ChannelWriter:
    """Durable sink for every log category, rotatable as a whole.

    Args:
        config: Pipeline configuration (directories, level, labels).
        stats: Counter set shared with the owning controller.
        current_date: Day the files are opened for.
    """

    def __init__(self, config: TelemetryConfig, stats: TelemetryStats, current_date: date) -> None:
        self._config = config
        self._stats = stats
        self._date = current_date
        self._loggers: dict[Category, logging.Logger] = {}
        self._handlers: dict[Category, ChannelFileHandler] = {}
        self._channels: dict[Category, Any] = {}
        self._reserved = ENVELOPE_KEYS | frozenset(config.metric_labels)

        self._ensure_directories()
        for category in Category:
            self._open_channel(category)

    @property
    def current_date(self) -> date:
        return self._date

    # --- Paths ---

    def path_for(self, category: Category, on: date | None = None) -> Path:
        """File path for a category on a given day (default: the open day)."""
        name = self._config.dirs[category]
        suffix = f"-{(on or self._date).isoformat()}" if self._config.rotate_by_date else ""
        return self._config.log_dir / name / f"{name}{suffix}{self._config.file_extension}"

    def paths(self, on: date | None = None) -> dict[str, Path]:
        return {category.value: self.path_for(category, on) for category in Category}

    # --- Writing ---

    def record(
        self,
        category: Category,
        level: LogLevel | str,
        event: str,
        fields: Mapping[str, Any] | None = None,
    ) -> bool:
        """Append one entry to a channel.

        Returns True once the entry is handed to the sink, False if the sink
        raised. The category counter only moves on success. Envelope keys
        (timestamp, level, category, event, static labels) always win; payload
        keys with the same names are written with a ``field_`` prefix.
        """
        method = LogLevel.parse(level).value
        payload = escape_fields(fields or {}, self._reserved)
        try:
            getattr(self._channels[category], method)(event, **payload)
        except Exception:
            self._stats.record_error()
            logger.exception("channel_write_failed", category=category.value, log_event=event)
            return False

        self._stats.increment(category)
        return True

    # --- Rotation support ---

    def reopen(self, new_date: date) -> None:
        """Point every channel at the files for ``new_date``.

        The new handler is attached before the old one is closed so a record
        issued in between still has a destination.
        """
        self._date = new_date
        self._ensure_directories()
        for category in Category:
            old = self._handlers.get(category)
            self._attach_handler(category)
            if old is not None:
                self._loggers[category].removeHandler(old)
                old.close()
        logger.info("channels_reopened", date=new_date.isoformat())

    def close(self) -> None:
        """Release open file descriptors. A later write reopens its file."""
        for handler in self._handlers.values():
            handler.close()

    # --- Internals ---

    def _ensure_directories(self) -> None:
        for category in Category:
            self._config.subdir(category).mkdir(parents=True, exist_ok=True)

    def _open_channel(self, category: Category) -> None:
        # Unregistered logger: each writer instance owns its handlers outright
        stdlib_logger = logging.Logger(f"tradelog.channel.{category.value}")
        stdlib_logger.setLevel(self._config.level.stdlib_level)
        stdlib_logger.propagate = False
        self._loggers[category] = stdlib_logger
        self._attach_handler(category)

        self._channels[category] = structlog.wrap_logger(
            _ChannelSink(stdlib_logger),
            processors=self._processors(),
            wrapper_class=structlog.BoundLogger,
            context_class=dict,
            category=category.value,
            **self._config.metric_labels,
        )

    def _attach_handler(self, category: Category) -> None:
        handler = ChannelFileHandler(self.path_for(category), encoding="utf-8", delay=True)
        handler.setFormatter(logging.Formatter("%(message)s"))
        self._loggers[category].addHandler(handler)
        self._handlers[category] = handler

    def _processors(self) -> list[Any]:
        fmt = self._config.timestamp_format
        if fmt == "epoch":
            stamper: Any = _epoch_millis
        elif fmt == "unix":
            stamper = _epoch_seconds
        else:
            stamper = structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp")

        return [
            stamper,
            structlog.processors.add_log_level,
            _channel_level_name,
            structlog.processors.JSONRenderer(default=str),
        ]
