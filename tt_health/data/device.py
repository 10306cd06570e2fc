"""Build a DeviceSnapshot from one device's sysfs directory."""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from tt_health.core.config import DEFAULT_CONFIG
from tt_health.core.errors import DeviceReadError
from tt_health.models import DeviceSnapshot, PcieCounters, SensorTelemetry

from .attributes import (
    DEVICE_ATTRIBUTES,
    PCIE_COUNTER_ATTRIBUTES,
    PCIE_COUNTERS_DIR,
    TELEMETRY_ATTRIBUTES,
    Encoding,
    read_attribute,
)

logger = logging.getLogger(__name__)

_HWMON_RE = re.compile(r"hwmon(\d+)")


def _read_table(directory: Path, table: Mapping[str, tuple[str, Encoding]]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for attr_name, (field_name, encoding) in table.items():
        values[field_name] = read_attribute(directory / attr_name, encoding)
    return values


def _hwmon_candidates(device_path: Path) -> list[Path]:
    base = device_path / "device" / "hwmon"
    found: list[tuple[int, Path]] = []
    try:
        with os.scandir(base) as it:
            for entry in it:
                match = _HWMON_RE.fullmatch(entry.name)
                if match and entry.is_dir():
                    found.append((int(match.group(1)), Path(entry.path)))
    except OSError as exc:
        logger.debug("Cannot scan %s: %s", base, exc)
        return []
    return [path for _, path in sorted(found)]


def find_hwmon_dir(device_path: Path, names: Iterable[str] = DEFAULT_CONFIG.hwmon_names) -> Path | None:
    """Locate the hwmon directory belonging to ``device_path``.

    The ``hwmonN`` index is assigned at probe time and is not stable, so the
    directory is picked by its ``name`` attribute. A lone unnamed candidate
    is accepted since it hangs off this device's own node.
    """

    wanted = set(names)
    candidates = _hwmon_candidates(device_path)
    for candidate in candidates:
        if read_attribute(candidate / "name", Encoding.TEXT) in wanted:
            return candidate
    if len(candidates) == 1:
        return candidates[0]
    if candidates:
        logger.debug(
            "No hwmon directory under %s matches %s; candidates: %s",
            device_path,
            sorted(wanted),
            [c.name for c in candidates],
        )
    return None


def _build_pcie_counters(device_path: Path) -> PcieCounters | None:
    counters_dir = device_path / PCIE_COUNTERS_DIR
    try:
        if not counters_dir.is_dir():
            return None
    except OSError as exc:
        # a listable but unsearchable device dir raises here instead of returning False
        logger.debug("Cannot stat %s: %s", counters_dir, exc)
        return None
    return PcieCounters(**_read_table(counters_dir, PCIE_COUNTER_ATTRIBUTES))


def _build_telemetry(device_path: Path, hwmon_names: Iterable[str]) -> SensorTelemetry | None:
    hwmon_dir = find_hwmon_dir(device_path, hwmon_names)
    if hwmon_dir is None:
        return None
    return SensorTelemetry(**_read_table(hwmon_dir, TELEMETRY_ATTRIBUTES))


def build_device_snapshot(
    device_path: Path,
    *,
    hwmon_names: Iterable[str] = DEFAULT_CONFIG.hwmon_names,
) -> DeviceSnapshot:
    """Read every known attribute of one device.

    Raises :class:`DeviceReadError` only when the directory itself cannot be
    listed; anything narrower degrades to an absent field.
    """

    device_path = Path(device_path)
    captured_at = datetime.now(timezone.utc)
    try:
        with os.scandir(device_path) as entries:
            present = [entry.name for entry in entries]
    except OSError as exc:
        raise DeviceReadError(device_path, exc.strerror or str(exc)) from exc

    values: dict[str, Any] = {}
    for name in present:
        known = DEVICE_ATTRIBUTES.get(name)
        if known is None:
            continue
        field_name, encoding = known
        values[field_name] = read_attribute(device_path / name, encoding)

    return DeviceSnapshot(
        captured_at=captured_at,
        source_path=device_path,
        pcie_counters=_build_pcie_counters(device_path),
        telemetry=_build_telemetry(device_path, hwmon_names),
        **values,
    )
