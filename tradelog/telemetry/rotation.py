"""
Rotation manager: daily file switch-over and retention purge.

Holds the current rotation date, the only date channel paths are derived from.
On each check the stored date is compared with today; when they differ and
date-based rotation is enabled, every channel is reopened on the new day and
files whose last modification is older than the retention window are removed.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from datetime import date
from pathlib import Path

import structlog

from ..core.config import TelemetryConfig
from ..core.types import Category, TelemetryStats
from .writer import ChannelWriter

logger = structlog.get_logger()

Clock = Callable[[], date]

_SECONDS_PER_DAY = 86_400


class RotationManager:
    """Tracks the open day and rotates channel files when it changes."""

    def __init__(
        self,
        config: TelemetryConfig,
        writer: ChannelWriter,
        stats: TelemetryStats,
        clock: Clock = date.today,
    ) -> None:
        self._config = config
        self._writer = writer
        self._stats = stats
        self._clock = clock
        self._current_date = writer.current_date

    @property
    def current_date(self) -> date:
        return self._current_date

    def check(self) -> bool:
        """Rotate if the calendar day moved on. Returns True when it rotated.

        With date-based rotation disabled the stored date never changes.
        """
        if not self._config.rotate_by_date:
            return False

        today = self._clock()
        if today == self._current_date:
            return False

        previous = self._current_date
        self._current_date = today
        try:
            self._writer.reopen(today)
        except Exception:
            self._stats.record_error()
            logger.exception("log_rotation_reopen_failed", date=today.isoformat())

        logger.info("log_rotated", previous=previous.isoformat(), date=today.isoformat())
        self.purge_expired()
        return True

    def purge_expired(self, now: float | None = None) -> list[Path]:
        """Delete channel files last modified before the retention window.

        Age comes from the file's mtime, not its name. Files currently open for
        writing are never touched. A retention of 0 days disables the purge.
        Each failed deletion counts as one error and the purge moves on.
        """
        if not self._config.purge_enabled:
            return []

        cutoff = (now if now is not None else time.time()) - self._config.max_retention_days * _SECONDS_PER_DAY
        active = {self._writer.path_for(category) for category in Category}
        directories = {self._config.subdir(category) for category in Category}

        removed: list[Path] = []
        for directory in sorted(directories):
            if not directory.is_dir():
                continue
            try:
                entries = sorted(directory.iterdir())
            except OSError:
                self._stats.record_error()
                logger.exception("log_purge_list_failed", directory=str(directory))
                continue

            for path in entries:
                if path in active or not path.is_file():
                    continue
                try:
                    if path.stat().st_mtime < cutoff:
                        path.unlink()
                        removed.append(path)
                except OSError:
                    self._stats.record_error()
                    logger.exception("log_purge_failed", path=str(path))

        if removed:
            logger.info(
                "expired_logs_purged",
                count=len(removed),
                retention_days=self._config.max_retention_days,
            )
        return removed
