"""
Snapshot sampler: pulls live state from optional data sources.

One function per category (pnl, position, balance), each fired by its own
timer. A function whose data source is not attached is a silent no-op. A data
source that raises or returns malformed data costs one error count and no
write; nothing escapes to the timer that called it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog

from ..core.types import (
    AccountEquity,
    AccountProvider,
    Category,
    LogLevel,
    PositionProvider,
    PositionRecord,
    RiskStatus,
    RiskStatusProvider,
    TelemetryEvent,
    TelemetryStats,
)
from .events import EventEmitter
from .writer import ChannelWriter

logger = structlog.get_logger()

# Distinguishes "not passed" from an explicit None (detach)
UNSET: Any = object()


@dataclass
class DataSources:
    """Live references to the providers being sampled. None means not attached."""

    risk_manager: RiskStatusProvider | None = None
    position_manager: PositionProvider | None = None
    account_manager: AccountProvider | None = None

    def update(
        self,
        risk_manager: RiskStatusProvider | None = UNSET,
        position_manager: PositionProvider | None = UNSET,
        account_manager: AccountProvider | None = UNSET,
    ) -> None:
        """Replace any subset of the references; omitted ones are kept."""
        if risk_manager is not UNSET:
            self.risk_manager = risk_manager
        if position_manager is not UNSET:
            self.position_manager = position_manager
        if account_manager is not UNSET:
            self.account_manager = account_manager

    def attached(self) -> dict[str, bool]:
        return {
            "risk_manager": self.risk_manager is not None,
            "position_manager": self.position_manager is not None,
            "account_manager": self.account_manager is not None,
        }


class SnapshotSampler:
    """Samples pnl, position and balance state into their channels."""

    def __init__(
        self,
        writer: ChannelWriter,
        emitter: EventEmitter,
        sources: DataSources,
        stats: TelemetryStats,
    ) -> None:
        self._writer = writer
        self._emitter = emitter
        self._sources = sources
        self._stats = stats

    # --- Sampling functions (one per timer) ---

    def log_pnl_snapshot(self) -> dict[str, Any] | None:
        """Record drawdown, risk level and per-account equity."""
        provider = self._sources.risk_manager
        if provider is None:
            return None

        try:
            status = RiskStatus.model_validate(provider.get_status())
            drawdown = status.drawdown
            if drawdown is None:
                drawdown = float(status.daily_equity.get("current_drawdown") or 0.0)
            snapshot = {
                "drawdown": drawdown,
                "risk_level": status.risk_level,
                "trading_allowed": status.trading_allowed,
                "daily_equity": status.daily_equity,
                "accounts": [account.model_dump() for account in status.accounts],
            }
        except Exception:
            self._source_failed("pnl")
            return None

        return self._write(Category.PNL, "pnl_snapshot", TelemetryEvent.PNL_LOGGED, snapshot)

    def log_position_snapshot(self) -> dict[str, Any] | None:
        """Record every active position."""
        provider = self._sources.position_manager
        if provider is None:
            return None

        try:
            positions = [
                PositionRecord.model_validate(position) for position in provider.get_active_positions()
            ]
            snapshot = {
                "count": len(positions),
                "positions": [
                    {
                        "symbol": p.symbol,
                        "side": p.side,
                        "size": p.size,
                        "entry_price": p.entry_price,
                        "unrealized_pnl": p.unrealized_pnl or 0.0,
                    }
                    for p in positions
                ],
            }
        except Exception:
            self._source_failed("position")
            return None

        return self._write(Category.POSITION, "position_snapshot", TelemetryEvent.POSITION_LOGGED, snapshot)

    def log_balance_snapshot(self) -> dict[str, Any] | None:
        """Record per-exchange equity and used margin, with totals."""
        provider = self._sources.account_manager
        if provider is None:
            return None

        try:
            accounts = [AccountEquity.model_validate(account) for account in provider.get_accounts()]
            snapshot = {
                "balances": [account.model_dump() for account in accounts],
                "total_equity": sum(a.equity or 0.0 for a in accounts),
                "total_used_margin": sum(a.used_margin or 0.0 for a in accounts),
            }
        except Exception:
            self._source_failed("balance")
            return None

        return self._write(Category.BALANCE, "balance_snapshot", TelemetryEvent.BALANCE_LOGGED, snapshot)

    # --- Helpers ---

    def _write(
        self,
        category: Category,
        event: str,
        completion: TelemetryEvent,
        snapshot: dict[str, Any],
    ) -> dict[str, Any] | None:
        if not self._writer.record(category, LogLevel.INFO, event, snapshot):
            return None
        self._emitter.emit(completion, snapshot)
        return snapshot

    def _source_failed(self, snapshot: str) -> None:
        self._stats.record_error()
        logger.exception("snapshot_source_failed", snapshot=snapshot)
