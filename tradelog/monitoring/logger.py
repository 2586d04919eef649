"""Application diagnostics for the telemetry process.

Startup, rotation and failure messages from tradelog itself. They are kept
apart from the channel files written by ChannelWriter but carry the same
app/env labels, so both streams can be joined in one dashboard query. The
optional diagnostic file rolls over at UTC midnight, like the channels.
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
from collections.abc import Mapping
from pathlib import Path

import structlog

from ..core.types import TRACE

# Handlers owned by setup_logging; replaced wholesale on every call
_installed_handlers: list[logging.Handler] = []

# Library loggers that would drown the diagnostics at DEBUG
QUIET_LOGGERS = ("asyncio",)


def setup_logging(
    log_level: str = "INFO",
    json_output: bool = True,
    log_file: str | None = None,
    labels: Mapping[str, str] | None = None,
    backup_days: int = 7,
) -> None:
    """Route structlog and stdlib records through one processor chain.

    Args:
        log_level: Minimum level (TRACE, DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_output: JSON lines on stdout if True, colored console otherwise.
        log_file: Optional diagnostic file, always JSON, rotated daily.
        labels: Static context (e.g. app, env) stamped on every line.
        backup_days: Rotated diagnostic files to keep.
    """
    structlog.contextvars.clear_contextvars()
    if labels:
        structlog.contextvars.bind_contextvars(**labels)

    pre_chain = _shared_processors()
    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(_resolve_level(log_level))
    _remove_installed(root_logger)

    renderer: structlog.types.Processor
    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(_formatter(renderer, pre_chain))
    _install(root_logger, console_handler)

    if log_file:
        file_handler = _diagnostic_file_handler(Path(log_file), backup_days)
        file_handler.setFormatter(_formatter(structlog.processors.JSONRenderer(), pre_chain))
        _install(root_logger, file_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def _shared_processors() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _formatter(
    renderer: structlog.types.Processor,
    pre_chain: list[structlog.types.Processor],
) -> structlog.stdlib.ProcessorFormatter:
    # foreign_pre_chain gives plain logging records the same labels and stamps
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )


def _diagnostic_file_handler(path: Path, backup_days: int) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    return logging.handlers.TimedRotatingFileHandler(
        path,
        when="midnight",
        backupCount=backup_days,
        encoding="utf-8",
        utc=True,
    )


def _install(root_logger: logging.Logger, handler: logging.Handler) -> None:
    root_logger.addHandler(handler)
    _installed_handlers.append(handler)


def _remove_installed(root_logger: logging.Logger) -> None:
    for handler in _installed_handlers:
        root_logger.removeHandler(handler)
        handler.close()
    _installed_handlers.clear()


def _resolve_level(log_level: str) -> int:
    name = log_level.upper()
    if name == "TRACE":
        return TRACE
    return getattr(logging, name, logging.INFO)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger bound to ``name``."""
    return structlog.get_logger(name)
