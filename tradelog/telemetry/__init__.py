"""Telemetry: timed snapshots, event recording, daily rotation of channel logs."""

from ..core.types import Category, LogLevel, TelemetryEvent, TelemetryStats
from .controller import PnLLogger
from .events import EventEmitter
from .recorder import EventRecorder
from .rotation import RotationManager
from .sampler import DataSources, SnapshotSampler
from .writer import ChannelWriter

__all__ = [
    "Category",
    "ChannelWriter",
    "DataSources",
    "EventEmitter",
    "EventRecorder",
    "LogLevel",
    "PnLLogger",
    "RotationManager",
    "SnapshotSampler",
    "TelemetryEvent",
    "TelemetryStats",
]
