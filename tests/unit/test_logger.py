"""Unit tests for application logging setup."""

from __future__ import annotations

import json
import logging
import logging.handlers
from pathlib import Path

import pytest
import structlog

from tradelog.core.types import TRACE
from tradelog.monitoring.logger import get_logger, setup_logging


@pytest.fixture(autouse=True)
def _restore_root_level():
    root = logging.getLogger()
    level = root.level
    yield
    setup_logging(log_level="INFO", json_output=False)
    structlog.contextvars.clear_contextvars()
    root.setLevel(level)


def _file_lines(log_file: Path) -> list[dict]:
    for handler in logging.getLogger().handlers:
        handler.flush()
    return [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]


class TestSetupLogging:
    """Tests for structured logging setup."""

    def test_setup_logging(self):
        """Logging setup should not raise."""
        setup_logging(log_level="DEBUG", json_output=False)
        logger = get_logger("test")
        assert logger is not None

    def test_trace_level(self):
        setup_logging(log_level="TRACE")
        assert logging.getLogger().level == TRACE

    def test_unknown_level_falls_back_to_info(self):
        setup_logging(log_level="VERBOSE")
        assert logging.getLogger().level == logging.INFO

    def test_repeated_setup_does_not_duplicate_handlers(self):
        setup_logging(log_level="INFO")
        count = len(logging.getLogger().handlers)
        setup_logging(log_level="INFO")
        assert len(logging.getLogger().handlers) == count

    def test_file_output_is_json(self, tmp_path: Path):
        log_file = tmp_path / "diag" / "tradelog.log"
        setup_logging(log_level="INFO", json_output=False, log_file=str(log_file))

        logging.getLogger("tradelog.test").info("diagnostic line")

        assert _file_lines(log_file)[-1]["event"] == "diagnostic line"


class TestDiagnosticFile:
    """Tests for labels and rotation of the diagnostic file."""

    def test_file_rotates_daily(self, tmp_path: Path):
        setup_logging(log_file=str(tmp_path / "tradelog.log"), backup_days=3)

        handlers = [
            h for h in logging.getLogger().handlers if isinstance(h, logging.handlers.TimedRotatingFileHandler)
        ]
        assert len(handlers) == 1
        assert handlers[0].when == "MIDNIGHT"
        assert handlers[0].backupCount == 3
        assert handlers[0].utc is True

    def test_labels_on_structlog_lines(self, tmp_path: Path):
        log_file = tmp_path / "tradelog.log"
        setup_logging(log_file=str(log_file), labels={"app": "bot", "env": "staging"})

        get_logger("tradelog.diag").info("service_started", interval_ms=500)

        entry = _file_lines(log_file)[-1]
        assert entry["event"] == "service_started"
        assert entry["app"] == "bot"
        assert entry["env"] == "staging"
        assert entry["interval_ms"] == 500
        assert entry["level"] == "info"
        assert entry["timestamp"].endswith("Z")

    def test_labels_on_stdlib_lines(self, tmp_path: Path):
        log_file = tmp_path / "tradelog.log"
        setup_logging(log_file=str(log_file), labels={"app": "bot", "env": "staging"})

        logging.getLogger("tradelog.stdlib").warning("disk %s%% full", 91)

        entry = _file_lines(log_file)[-1]
        assert entry["event"] == "disk 91% full"
        assert entry["app"] == "bot"
        assert entry["logger"] == "tradelog.stdlib"
        assert entry["level"] == "warning"
        assert "timestamp" in entry

    def test_repeated_setup_replaces_labels(self, tmp_path: Path):
        log_file = tmp_path / "tradelog.log"
        setup_logging(labels={"app": "bot", "env": "staging"})
        setup_logging(log_file=str(log_file), labels={"app": "bot"})

        logging.getLogger("tradelog.stdlib").info("relabelled")

        entry = _file_lines(log_file)[-1]
        assert entry["app"] == "bot"
        assert "env" not in entry
