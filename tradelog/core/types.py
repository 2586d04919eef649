"""Shared vocabulary for the telemetry pipeline.

Channel categories, severities, event names, the capability contracts of the
external data sources, and the validated shapes of what they return.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

# Severity below DEBUG for very chatty channel entries
TRACE = 5
logging.addLevelName(TRACE, "TRACE")


class Category(str, Enum):
    """A logical log channel with its own directory, file and counter."""

    PNL = "pnl"
    TRADE = "trade"
    POSITION = "position"
    BALANCE = "balance"
    RISK = "risk"
    SYSTEM = "system"
    METRIC = "metric"


class LogLevel(str, Enum):
    """The six severities a channel entry can be written at."""

    TRACE = "trace"
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    FATAL = "fatal"

    @property
    def stdlib_level(self) -> int:
        return _STDLIB_LEVELS[self]

    @classmethod
    def parse(cls, value: LogLevel | str) -> LogLevel:
        """Coerce a level name, falling back to INFO for unknown names."""
        if isinstance(value, LogLevel):
            return value
        name = str(value).lower()
        if name == "warning":
            name = "warn"
        elif name == "critical":
            name = "fatal"
        try:
            return cls(name)
        except ValueError:
            return cls.INFO


_STDLIB_LEVELS: dict[LogLevel, int] = {
    LogLevel.TRACE: TRACE,
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARN: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
    LogLevel.FATAL: logging.CRITICAL,
}


class TelemetryEvent(str, Enum):
    """Names of the events published to observers."""

    STARTED = "started"
    STOPPED = "stopped"
    PNL_LOGGED = "pnl_logged"
    POSITION_LOGGED = "position_logged"
    BALANCE_LOGGED = "balance_logged"
    TRADE_LOGGED = "trade_logged"
    ORDER_LOGGED = "order_logged"
    SIGNAL_LOGGED = "signal_logged"
    SYSTEM_LOGGED = "system_logged"
    RISK_EVENT_LOGGED = "risk_event_logged"
    METRIC_LOGGED = "metric_logged"


# --- Data source capability contracts ---


@runtime_checkable
class RiskStatusProvider(Protocol):
    """Anything that reports drawdown, risk level and per-account equity."""

    def get_status(self) -> Mapping[str, Any]: ...


@runtime_checkable
class PositionProvider(Protocol):
    """Anything that lists the currently open positions."""

    def get_active_positions(self) -> Sequence[Any]: ...


@runtime_checkable
class AccountProvider(Protocol):
    """Anything that lists per-exchange equity and margin usage."""

    def get_accounts(self) -> Sequence[Any]: ...


# --- Validated shapes read from data sources ---


class AccountEquity(BaseModel):
    """Equity figures for one exchange account."""

    model_config = ConfigDict(from_attributes=True, extra="ignore")

    exchange: str
    equity: float | None = None
    used_margin: float | None = None
    available: float | None = None


class PositionRecord(BaseModel):
    """One open position as sampled from the position provider."""

    model_config = ConfigDict(from_attributes=True, extra="ignore")

    symbol: str
    side: str
    size: float = Field(validation_alias=AliasChoices("size", "open_size"))
    entry_price: float = Field(validation_alias=AliasChoices("entry_price", "open_price"))
    unrealized_pnl: float | None = None


class RiskStatus(BaseModel):
    """The subset of a risk provider's status recorded in pnl snapshots."""

    model_config = ConfigDict(from_attributes=True, extra="ignore")

    drawdown: float | None = None
    risk_level: str | None = None
    trading_allowed: bool | None = None
    daily_equity: dict[str, Any] = Field(default_factory=dict)
    accounts: list[AccountEquity] = Field(default_factory=list)


# --- Operational counters ---


@dataclass
class TelemetryStats:
    """Counters owned by one pipeline instance; they only ever grow."""

    pnl_logs_count: int = 0
    trade_logs_count: int = 0
    position_logs_count: int = 0
    balance_logs_count: int = 0
    risk_logs_count: int = 0
    system_logs_count: int = 0
    metric_logs_count: int = 0
    errors_count: int = 0

    def increment(self, category: Category) -> None:
        field_name = f"{category.value}_logs_count"
        setattr(self, field_name, getattr(self, field_name) + 1)

    def record_error(self) -> None:
        self.errors_count += 1

    def to_dict(self) -> dict[str, int]:
        return asdict(self)
