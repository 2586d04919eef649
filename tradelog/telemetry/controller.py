"""
PnL logger: lifecycle and statistics controller for the telemetry pipeline.

Owns the configuration, the channel writer, the counters and one asyncio task
per periodic activity:
- pnl:      risk status snapshot        (pnl_interval_ms)
- position: open positions snapshot     (position_interval_ms)
- balance:  account balances snapshot   (balance_interval_ms)
- rotation: daily rotation check        (rotation_check_interval_ms)

Recording methods (log_trade, log_system, log_metric, ...) are inherited from
EventRecorder and work whether or not the timers are running. All state lives
on the instance, so several loggers can coexist in one process.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import date
from pathlib import Path
from typing import Any

import structlog

from ..core.config import TelemetryConfig
from ..core.types import AccountProvider, PositionProvider, RiskStatusProvider, TelemetryEvent, TelemetryStats
from .events import EventEmitter, Listener
from .recorder import EventRecorder
from .rotation import Clock, RotationManager
from .sampler import UNSET, DataSources, SnapshotSampler
from .writer import ChannelWriter

logger = structlog.get_logger()

TIMER_NAMES = ("pnl", "position", "balance", "rotation")


class PnLLogger(EventRecorder):
    """Samples trading state on timers and records business events to channels.

    Args:
        config: Base configuration; defaults are used when omitted.
        clock: Returns today's date; drives file naming and rotation.
        **overrides: Individual TelemetryConfig fields merged over ``config``.
    """

    def __init__(
        self,
        config: TelemetryConfig | None = None,
        *,
        clock: Clock = date.today,
        **overrides: Any,
    ) -> None:
        config = TelemetryConfig.merged(config, **overrides)
        stats = TelemetryStats()
        emitter = EventEmitter(stats)
        writer = ChannelWriter(config, stats, clock())
        super().__init__(config, writer, emitter, stats)

        self.data_sources = DataSources()
        self._sampler = SnapshotSampler(writer, emitter, self.data_sources, stats)
        self._rotation = RotationManager(config, writer, stats, clock)
        self._timers: dict[str, asyncio.Task[None] | None] = dict.fromkeys(TIMER_NAMES)
        self._running = False

    # --- Properties ---

    @property
    def running(self) -> bool:
        return self._running

    @property
    def current_date(self) -> date:
        return self._rotation.current_date

    @property
    def timers(self) -> dict[str, asyncio.Task[None] | None]:
        return dict(self._timers)

    # --- Lifecycle ---

    def start(self) -> None:
        """Start the four periodic tasks on the running event loop.

        No-op if already running. Raises RuntimeError when called outside a
        running asyncio loop.
        """
        if self._running:
            return

        loop = asyncio.get_running_loop()
        jobs: dict[str, Callable[[], Any]] = {
            "pnl": self._sampler.log_pnl_snapshot,
            "position": self._sampler.log_position_snapshot,
            "balance": self._sampler.log_balance_snapshot,
            "rotation": self._rotation.check,
        }
        for name, job in jobs.items():
            self._timers[name] = loop.create_task(self._run_periodic(name, job), name=f"tradelog-{name}")

        self._running = True
        logger.info(
            "pnl_logger_started",
            log_dir=str(self.config.log_dir),
            intervals={name: self.config.interval_seconds(name) for name in TIMER_NAMES},
            sources=self.data_sources.attached(),
        )
        self._emitter.emit(TelemetryEvent.STARTED, self.get_stats())

    def stop(self) -> None:
        """Cancel every periodic task. Safe to call repeatedly or before start()."""
        if not self._running:
            return

        for name in TIMER_NAMES:
            task = self._timers[name]
            if task is not None and not task.done():
                task.cancel()
            self._timers[name] = None

        self._running = False
        logger.info("pnl_logger_stopped")
        self._emitter.emit(TelemetryEvent.STOPPED, self.get_stats())

    def close(self) -> None:
        """Stop and release channel file handles."""
        self.stop()
        self._writer.close()

    async def _run_periodic(self, name: str, job: Callable[[], Any]) -> None:
        """Fire ``job`` every interval until cancelled."""
        interval = self.config.interval_seconds(name)
        while True:
            await asyncio.sleep(interval)
            try:
                job()
            except Exception:
                self._stats.record_error()
                logger.exception("telemetry_tick_error", timer=name)

    # --- Data sources ---

    def set_data_sources(
        self,
        risk_manager: RiskStatusProvider | None = UNSET,
        position_manager: PositionProvider | None = UNSET,
        account_manager: AccountProvider | None = UNSET,
    ) -> None:
        """Attach or detach (with None) any subset of data sources.

        Takes effect on the next sampling tick; safe while running.
        """
        self.data_sources.update(
            risk_manager=risk_manager,
            position_manager=position_manager,
            account_manager=account_manager,
        )
        logger.info("data_sources_updated", sources=self.data_sources.attached())

    # --- Sampling and rotation (also driven by the timers) ---

    def log_pnl_snapshot(self) -> dict[str, Any] | None:
        return self._sampler.log_pnl_snapshot()

    def log_position_snapshot(self) -> dict[str, Any] | None:
        return self._sampler.log_position_snapshot()

    def log_balance_snapshot(self) -> dict[str, Any] | None:
        return self._sampler.log_balance_snapshot()

    def check_rotation(self) -> bool:
        return self._rotation.check()

    def purge_expired(self) -> list[Path]:
        return self._rotation.purge_expired()

    # --- Observers ---

    def on(self, event: TelemetryEvent | str, callback: Listener) -> None:
        self._emitter.on(event, callback)

    def off(self, event: TelemetryEvent | str, callback: Listener) -> None:
        self._emitter.off(event, callback)

    # --- Queries ---

    def get_stats(self) -> dict[str, Any]:
        """Snapshot of counters plus running state and the open day."""
        return {
            **self._stats.to_dict(),
            "running": self._running,
            "current_date": self._rotation.current_date.isoformat(),
            "log_dir": str(self.config.log_dir),
        }

    def get_log_file_paths(self) -> dict[str, Path]:
        """Active file path per category for the current rotation date."""
        return self._writer.paths(self._rotation.current_date)
