"""Unit tests for the listener registry."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from tradelog.core.types import TelemetryEvent, TelemetryStats
from tradelog.telemetry.events import EventEmitter


@pytest.fixture
def stats() -> TelemetryStats:
    return TelemetryStats()


@pytest.fixture
def emitter(stats: TelemetryStats) -> EventEmitter:
    return EventEmitter(stats)


class TestEventEmitter:
    """Tests for subscribe, unsubscribe and isolation."""

    def test_emit_reaches_listener(self, emitter: EventEmitter):
        callback = MagicMock()
        emitter.on(TelemetryEvent.TRADE_LOGGED, callback)
        emitter.emit(TelemetryEvent.TRADE_LOGGED, {"symbol": "BTC/USDT"})
        callback.assert_called_once_with({"symbol": "BTC/USDT"})

    def test_string_event_names_accepted(self, emitter: EventEmitter):
        callback = MagicMock()
        emitter.on("started", callback)
        emitter.emit(TelemetryEvent.STARTED)
        callback.assert_called_once_with(None)

    def test_unknown_event_name_rejected(self, emitter: EventEmitter):
        with pytest.raises(ValueError):
            emitter.on("exploded", MagicMock())

    def test_off_removes_listener(self, emitter: EventEmitter):
        callback = MagicMock()
        emitter.on(TelemetryEvent.PNL_LOGGED, callback)
        emitter.off(TelemetryEvent.PNL_LOGGED, callback)
        emitter.emit(TelemetryEvent.PNL_LOGGED, {})
        callback.assert_not_called()
        assert emitter.listener_count(TelemetryEvent.PNL_LOGGED) == 0

    def test_off_unknown_callback_ignored(self, emitter: EventEmitter):
        emitter.off(TelemetryEvent.PNL_LOGGED, MagicMock())

    def test_failing_listener_isolated(self, emitter: EventEmitter, stats: TelemetryStats):
        bad = MagicMock(side_effect=RuntimeError("boom"))
        good = MagicMock()
        emitter.on(TelemetryEvent.METRIC_LOGGED, bad)
        emitter.on(TelemetryEvent.METRIC_LOGGED, good)

        emitter.emit(TelemetryEvent.METRIC_LOGGED, {"value": 1})

        good.assert_called_once()
        assert stats.errors_count == 1

    def test_listener_may_unsubscribe_itself(self, emitter: EventEmitter):
        calls = []

        def once(payload):
            calls.append(payload)
            emitter.off(TelemetryEvent.STOPPED, once)

        emitter.on(TelemetryEvent.STOPPED, once)
        emitter.emit(TelemetryEvent.STOPPED, 1)
        emitter.emit(TelemetryEvent.STOPPED, 2)
        assert calls == [1]
