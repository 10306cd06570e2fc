"""Snapshot dataclasses exposed by tt-health."""

from __future__ import annotations

from .device_snapshot import (
    CollectionResult,
    DeviceFailure,
    DeviceSnapshot,
    PcieCounters,
    SensorTelemetry,
)

__all__ = [
    "CollectionResult",
    "DeviceFailure",
    "DeviceSnapshot",
    "PcieCounters",
    "SensorTelemetry",
]
