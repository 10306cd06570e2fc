"""Sysfs collectors for Tenstorrent devices."""

from __future__ import annotations

from .attributes import Encoding, parse_u32, read_attribute
from .device import build_device_snapshot, find_hwmon_dir
from .enumerate import collect_devices, enumerate_devices

__all__ = [
    "Encoding",
    "build_device_snapshot",
    "collect_devices",
    "enumerate_devices",
    "find_hwmon_dir",
    "parse_u32",
    "read_attribute",
]
