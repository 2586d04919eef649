"""Shared test fixtures for all unit tests."""

from __future__ import annotations

import json
from datetime import date
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from tradelog.core.config import TelemetryConfig
from tradelog.telemetry import PnLLogger


class FakeClock:
    """Settable stand-in for date.today()."""

    def __init__(self, today: date) -> None:
        self.today = today

    def __call__(self) -> date:
        return self.today


def _read_entries(path: Path) -> list[dict]:
    """Parse a channel file into its JSON entries."""
    if not path.exists():
        return []
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines() if line]


@pytest.fixture
def log_dir(tmp_path: Path) -> Path:
    """Provide a temporary telemetry root."""
    return tmp_path / "logs"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(date(2024, 3, 14))


@pytest.fixture
def telemetry_config(log_dir: Path) -> TelemetryConfig:
    """Provide a config writing under the temp root, with short intervals."""
    return TelemetryConfig(
        log_dir=log_dir,
        pnl_interval_ms=20,
        position_interval_ms=20,
        balance_interval_ms=20,
        rotation_check_interval_ms=20,
        metric_labels={"app": "tradelog-test", "env": "test"},
    )


@pytest.fixture
def pnl_logger(telemetry_config: TelemetryConfig, clock: FakeClock) -> PnLLogger:
    """Provide a logger on the fixed clock; closed after the test."""
    instance = PnLLogger(telemetry_config, clock=clock)
    yield instance
    instance.close()


@pytest.fixture
def mock_risk_manager() -> MagicMock:
    """Provide a mock risk manager with two accounts."""
    manager = MagicMock()
    manager.get_status.return_value = {
        "drawdown": 0.0325,
        "risk_level": "normal",
        "trading_allowed": True,
        "daily_equity": {"start": 10_000.0, "current": 9_675.0},
        "accounts": [
            {"exchange": "binance", "equity": 6_000.0, "used_margin": 1_200.0, "available": 4_800.0},
            {"exchange": "okx", "equity": 3_675.0, "used_margin": 500.0, "available": 3_175.0},
        ],
    }
    return manager


@pytest.fixture
def mock_position_manager() -> MagicMock:
    """Provide a mock position manager with one open position."""
    manager = MagicMock()
    manager.get_active_positions.return_value = [
        {
            "symbol": "BTC/USDT",
            "side": "long",
            "open_size": 0.5,
            "open_price": 62_000.0,
            "unrealized_pnl": 150.0,
        },
    ]
    return manager


@pytest.fixture
def mock_account_manager() -> MagicMock:
    """Provide a mock account manager with two exchanges."""
    manager = MagicMock()
    manager.get_accounts.return_value = [
        {"exchange": "binance", "equity": 6_000.0, "used_margin": 1_200.0, "available": 4_800.0},
        {"exchange": "okx", "equity": 4_000.0, "used_margin": 800.0, "available": 3_200.0},
    ]
    return manager


@pytest.fixture
def read_entries():
    """Provide a parser for channel files: path -> list of JSON entries."""
    return _read_entries
