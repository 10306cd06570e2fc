from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest


def write_attrs(directory: Path, attrs: dict[str, str | bytes]) -> None:
    directory.mkdir(parents=True, exist_ok=True)
    for name, value in attrs.items():
        target = directory / name
        if isinstance(value, bytes):
            target.write_bytes(value)
        else:
            target.write_text(value)


@pytest.fixture
def sysfs_root(tmp_path: Path) -> Path:
    root = tmp_path / "tenstorrent"
    root.mkdir()
    return root


@pytest.fixture
def make_device(sysfs_root: Path) -> Callable[..., Path]:
    """Create ``<root>/<name>`` with attributes and optional sub-directories."""

    def _make(
        name: str,
        attrs: dict[str, str | bytes] | None = None,
        *,
        counters: dict[str, str] | None = None,
        hwmon: dict[str, str] | None = None,
        hwmon_index: int = 2,
    ) -> Path:
        device = sysfs_root / name
        write_attrs(device, attrs or {})
        if counters is not None:
            write_attrs(device / "pcie_perf_counters", counters)
        if hwmon is not None:
            write_attrs(device / "device" / "hwmon" / f"hwmon{hwmon_index}", hwmon)
        return device

    return _make
