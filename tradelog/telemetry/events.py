"""Listener registry for observers of the telemetry pipeline (e.g. a dashboard)."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable
from typing import Any

import structlog

from ..core.types import TelemetryEvent, TelemetryStats

logger = structlog.get_logger()

# callback(payload): payload is the recorded entry, or None for lifecycle events
Listener = Callable[[Any], None]


class EventEmitter:
    """Publishes named events to registered callbacks.

    A listener that raises is logged and counted as an error; the remaining
    listeners still run and the recording call that triggered the event is
    unaffected.
    """

    def __init__(self, stats: TelemetryStats) -> None:
        self._stats = stats
        self._listeners: defaultdict[TelemetryEvent, list[Listener]] = defaultdict(list)

    def on(self, event: TelemetryEvent | str, callback: Listener) -> None:
        """Register a callback for an event."""
        self._listeners[TelemetryEvent(event)].append(callback)

    def off(self, event: TelemetryEvent | str, callback: Listener) -> None:
        """Remove a previously registered callback. Unknown callbacks are ignored."""
        listeners = self._listeners.get(TelemetryEvent(event), [])
        if callback in listeners:
            listeners.remove(callback)

    def listener_count(self, event: TelemetryEvent | str) -> int:
        return len(self._listeners.get(TelemetryEvent(event), []))

    def emit(self, event: TelemetryEvent, payload: Any = None) -> None:
        # Copy so a listener may unsubscribe itself while being notified
        for callback in list(self._listeners.get(event, [])):
            try:
                callback(payload)
            except Exception:
                self._stats.record_error()
                logger.exception("telemetry_listener_error", telemetry_event=event.value)
