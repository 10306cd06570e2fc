"""Device discovery under the tenstorrent sysfs class directory."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path

from tt_health.core.config import DEFAULT_CONFIG
from tt_health.core.errors import DeviceReadError, EnumerationError
from tt_health.models import CollectionResult, DeviceFailure, DeviceSnapshot

from .device import build_device_snapshot

logger = logging.getLogger(__name__)


def enumerate_devices(root: Path = DEFAULT_CONFIG.sysfs_root) -> list[Path]:
    """Return device directories under ``root`` in directory-listing order."""

    root = Path(root)
    try:
        with os.scandir(root) as entries:
            # class entries are usually symlinks into /sys/devices
            return [Path(entry.path) for entry in entries if entry.is_dir()]
    except OSError as exc:
        raise EnumerationError(root, exc.strerror or str(exc)) from exc


def collect_devices(
    root: Path = DEFAULT_CONFIG.sysfs_root,
    *,
    hwmon_names: Iterable[str] = DEFAULT_CONFIG.hwmon_names,
) -> CollectionResult:
    """Run one enumeration pass.

    A device that disappears mid-pass is recorded as a :class:`DeviceFailure`
    in its enumeration slot; only an unreadable ``root`` raises.
    """

    captured_at = datetime.now(timezone.utc)
    hwmon_names = tuple(hwmon_names)
    entries: list[DeviceSnapshot | DeviceFailure] = []
    for device_path in enumerate_devices(root):
        try:
            entries.append(build_device_snapshot(device_path, hwmon_names=hwmon_names))
        except DeviceReadError as exc:
            logger.warning("Skipping device %s: %s", device_path, exc.reason)
            entries.append(DeviceFailure(source_path=device_path, message=exc.reason))
    return CollectionResult(captured_at=captured_at, entries=tuple(entries))
