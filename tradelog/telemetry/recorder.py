"""
Event recorder: synchronous API for discrete business events.

Called directly by trading code (fills, order lifecycle, risk events, metrics),
never on a timer. Inputs may be mappings or plain objects; fields are read by
name, first non-None alias wins.

Every method that writes emits a matching completion event. Metric methods are
silent no-ops when dashboard metric mode is off: no entry, no counter, no event.
"""

from __future__ import annotations

import time
from collections.abc import Iterable, Mapping
from typing import Any

import structlog

from ..core.config import TelemetryConfig
from ..core.types import Category, LogLevel, TelemetryEvent, TelemetryStats
from .events import EventEmitter
from .writer import ChannelWriter

logger = structlog.get_logger()


def _pick(source: Any, *names: str, default: Any = None) -> Any:
    """Read the first non-None field among ``names`` from a mapping or object."""
    for name in names:
        if isinstance(source, Mapping):
            value = source.get(name)
        else:
            value = getattr(source, name, None)
        if value is not None:
            return value
    return default


class EventRecorder:
    """Recording methods shared by the telemetry controller."""

    def __init__(
        self,
        config: TelemetryConfig,
        writer: ChannelWriter,
        emitter: EventEmitter,
        stats: TelemetryStats,
    ) -> None:
        self.config = config
        self._writer = writer
        self._emitter = emitter
        self._stats = stats

    # --- PnL ---

    def log_pnl(self, data: Mapping[str, Any]) -> bool:
        """Record a pnl entry outside the sampling cadence."""
        entry = dict(data)
        return self._record(Category.PNL, LogLevel.INFO, "pnl_update", entry, TelemetryEvent.PNL_LOGGED)

    # --- Trades and orders ---

    def log_trade(self, trade: Any) -> bool:
        """Record an executed trade (fill)."""
        entry = {
            "trade_id": _pick(trade, "id", "trade_id", "order_id"),
            "symbol": _pick(trade, "symbol"),
            "side": _pick(trade, "side"),
            "amount": _pick(trade, "amount", "filled"),
            "price": _pick(trade, "price", "average"),
            "fee": _pick(trade, "fee"),
            "exchange": _pick(trade, "exchange", "venue"),
            "pnl": _pick(trade, "pnl"),
            "order_type": _pick(trade, "order_type", "type"),
            "info": _pick(trade, "info"),
        }
        return self._record(Category.TRADE, LogLevel.INFO, "trade_executed", entry, TelemetryEvent.TRADE_LOGGED)

    def log_order(self, action: str, order: Any) -> bool:
        """Record an order lifecycle step (created, filled, cancelled, ...)."""
        entry = {
            "subtype": "order",
            "action": action,
            "order_id": _pick(order, "id", "order_id", "client_order_id"),
            "symbol": _pick(order, "symbol"),
            "side": _pick(order, "side"),
            "amount": _pick(order, "amount"),
            "price": _pick(order, "price"),
            "status": _pick(order, "status"),
            "filled": _pick(order, "filled"),
            "exchange": _pick(order, "exchange", "exchange_id"),
        }
        return self._record(Category.TRADE, LogLevel.INFO, f"order_{action}", entry, TelemetryEvent.ORDER_LOGGED)

    def log_signal(self, signal: Any) -> bool:
        """Record a strategy signal alongside the trades it may lead to."""
        entry = {
            "subtype": "signal",
            "strategy": _pick(signal, "strategy", default="unknown"),
            "symbol": _pick(signal, "symbol"),
            "signal_type": _pick(signal, "type", "side"),
            "strength": _pick(signal, "strength"),
            "reason": _pick(signal, "reason"),
            "price": _pick(signal, "price"),
            "amount": _pick(signal, "amount"),
            "indicators": _pick(signal, "indicators"),
            "extra": _pick(signal, "extra"),
        }
        return self._record(Category.TRADE, LogLevel.INFO, "strategy_signal", entry, TelemetryEvent.SIGNAL_LOGGED)

    # --- System ---

    def log_system(self, level: LogLevel | str, message: str, **meta: Any) -> bool:
        """Record a system entry at trace/debug/info/warn/error/fatal."""
        entry = {"message": message, **meta}
        return self._record(Category.SYSTEM, LogLevel.parse(level), "system", entry, TelemetryEvent.SYSTEM_LOGGED)

    def log_market_data(self, data: Any) -> bool:
        """Record one market data update (ticker, candle, funding rate...)."""
        entry = {
            "symbol": _pick(data, "symbol"),
            "data_type": _pick(data, "data_type"),
            "exchange": _pick(data, "exchange"),
            "price": _pick(data, "price", "close", "last"),
            "volume": _pick(data, "volume"),
            "bid": _pick(data, "bid"),
            "ask": _pick(data, "ask"),
            "open": _pick(data, "open"),
            "high": _pick(data, "high"),
            "low": _pick(data, "low"),
            "close": _pick(data, "close"),
            "funding_rate": _pick(data, "funding_rate"),
            "extra": _pick(data, "extra"),
        }
        return self._record(
            Category.SYSTEM, LogLevel.INFO, "market_data_update", entry, TelemetryEvent.SYSTEM_LOGGED
        )

    def log_market_data_stats(self, stats: Any) -> bool:
        """Record aggregated market data throughput for a period."""
        entry = {
            "period": _pick(stats, "period", default="1m"),
            "ticker_count": _pick(stats, "ticker_count", default=0),
            "candle_count": _pick(stats, "candle_count", default=0),
            "orderbook_count": _pick(stats, "orderbook_count", default=0),
            "funding_rate_count": _pick(stats, "funding_rate_count", default=0),
            "symbols": list(_pick(stats, "symbols", default=[])),
            "exchanges": list(_pick(stats, "exchanges", default=[])),
        }
        return self._record(
            Category.SYSTEM, LogLevel.INFO, "market_data_stats", entry, TelemetryEvent.SYSTEM_LOGGED
        )

    # --- Risk ---

    def log_risk_event(self, kind: str, detail: Mapping[str, Any] | None = None) -> bool:
        """Record a risk event (limit breach, halt, emergency close...) at warn."""
        entry = {"risk_event": kind, **(detail or {})}
        return self._record(Category.RISK, LogLevel.WARN, f"risk_{kind}", entry, TelemetryEvent.RISK_EVENT_LOGGED)

    # --- Metrics ---

    def log_metric(self, name: str, value: float, labels: Mapping[str, str] | None = None) -> bool:
        """Record one named sample in dashboard-compatible form.

        Labels are merged over the configured static labels. Does nothing when
        dashboard metric mode is disabled.
        """
        if not self.config.dashboard_metrics:
            return False

        entry = {
            "metric": name,
            "value": value,
            "labels": {**self.config.metric_labels, **(labels or {})},
            "timestamp_ns": time.time_ns(),
        }
        return self._record(Category.METRIC, LogLevel.INFO, "metric", entry, TelemetryEvent.METRIC_LOGGED)

    def log_metrics(self, metrics: Iterable[Any]) -> int:
        """Record several samples in input order, one entry each.

        Each item carries ``name``, ``value`` and optional ``labels`` (or
        ``tags``). Returns how many entries were written.
        """
        if not self.config.dashboard_metrics:
            return 0

        written = 0
        for item in metrics:
            name = _pick(item, "name")
            if name is None:
                self._stats.record_error()
                logger.warning("metric_missing_name", item=repr(item))
                continue
            if self.log_metric(name, _pick(item, "value"), _pick(item, "labels", "tags")):
                written += 1
        return written

    # --- Helpers ---

    def _record(
        self,
        category: Category,
        level: LogLevel,
        event: str,
        entry: dict[str, Any],
        completion: TelemetryEvent,
    ) -> bool:
        if not self._writer.record(category, level, event, entry):
            return False
        self._emitter.emit(completion, entry)
        return True
