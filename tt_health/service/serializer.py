"""Line-oriented text rendering of collection results.

Wire format, one ``name: value`` line per field::

    device_path: /sys/class/tenstorrent/tenstorrent!0
    captured_at: 2024-05-01T12:00:00.000000+00:00
    card_type: n150
    ...
    fan_rpm: unknown
    <empty line>

Devices follow enumeration order and fields follow ``SNAPSHOT_FIELDS``.
Integers are decimal. Any absent value, including every field of an absent
counters or telemetry sub-record, is the literal ``unknown``; each snapshot
block therefore has the same number of lines. A device whose directory could
not be read renders as ``device_path`` plus an ``error`` line. A pass whose
device root could not be listed renders as a single ``error`` line.
"""

from __future__ import annotations

from dataclasses import fields
from typing import Any

from tt_health.models import (
    CollectionResult,
    DeviceFailure,
    DeviceSnapshot,
    PcieCounters,
    SensorTelemetry,
)

UNKNOWN = "unknown"

IDENTITY_FIELDS = ("card_type", "asic_id", "serial", "fw_bundle_version", "m3app_fw_version")
CLOCK_FIELDS = ("aiclk", "arcclk", "axiclk")
PCIE_COUNTER_FIELDS = tuple(f.name for f in fields(PcieCounters))
TELEMETRY_FIELDS = tuple(f.name for f in fields(SensorTelemetry))
SNAPSHOT_FIELDS = (
    ("device_path", "captured_at")
    + IDENTITY_FIELDS
    + CLOCK_FIELDS
    + PCIE_COUNTER_FIELDS
    + TELEMETRY_FIELDS
)


def _format_value(value: Any) -> str:
    if value is None:
        return UNKNOWN
    text = str(value)
    return text.replace("\r", " ").replace("\n", " ")


def _line(name: str, value: Any) -> str:
    return f"{name}: {_format_value(value)}\n"


def render_snapshot(snapshot: DeviceSnapshot) -> str:
    lines = [
        _line("device_path", snapshot.source_path),
        _line("captured_at", snapshot.captured_at.isoformat()),
    ]
    for name in IDENTITY_FIELDS + CLOCK_FIELDS:
        lines.append(_line(name, getattr(snapshot, name)))
    for sub_record, names in (
        (snapshot.pcie_counters, PCIE_COUNTER_FIELDS),
        (snapshot.telemetry, TELEMETRY_FIELDS),
    ):
        for name in names:
            lines.append(_line(name, getattr(sub_record, name) if sub_record else None))
    lines.append("\n")
    return "".join(lines)


def render_failure(failure: DeviceFailure) -> str:
    return _line("device_path", failure.source_path) + _line("error", failure.message) + "\n"


def render_collection(result: CollectionResult) -> str:
    if result.error is not None:
        return _line("error", result.error)
    parts = []
    for entry in result.entries:
        if isinstance(entry, DeviceFailure):
            parts.append(render_failure(entry))
        else:
            parts.append(render_snapshot(entry))
    return "".join(parts)
