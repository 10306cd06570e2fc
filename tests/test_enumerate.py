from __future__ import annotations

import dataclasses
import os

import pytest

from tt_health.core.errors import DeviceReadError, EnumerationError
from tt_health.data import collect_devices, enumerate_devices
from tt_health.data import enumerate as enumerate_module
from tt_health.models import DeviceFailure, DeviceSnapshot


def test_enumerate_follows_directory_listing_order(sysfs_root, make_device):
    for index in (3, 0, 1):
        make_device(f"tenstorrent!{index}", {"tt_card_type": "n150\n"})
    (sysfs_root / "stray_file").write_text("x")

    expected = [entry.path for entry in os.scandir(sysfs_root) if entry.is_dir()]

    assert [str(p) for p in enumerate_devices(sysfs_root)] == expected
    assert len(expected) == 3


def test_enumerate_follows_symlinked_devices(tmp_path, sysfs_root):
    real = tmp_path / "devices" / "pci0000:00" / "tenstorrent" / "tenstorrent!0"
    real.mkdir(parents=True)
    (sysfs_root / "tenstorrent!0").symlink_to(real, target_is_directory=True)

    assert enumerate_devices(sysfs_root) == [sysfs_root / "tenstorrent!0"]


def test_enumerate_missing_root_raises(tmp_path):
    with pytest.raises(EnumerationError) as excinfo:
        enumerate_devices(tmp_path / "absent")
    assert excinfo.value.path == tmp_path / "absent"


def test_collect_three_devices(sysfs_root, make_device):
    for index, serial in enumerate(("SN001", "SN002", "SN003")):
        make_device(f"tenstorrent!{index}", {"tt_card_type": "n150\n", "tt_serial": f"{serial}\n"})

    result = collect_devices(sysfs_root)

    assert result.error is None
    assert len(result.snapshots) == 3
    assert {snap.serial for snap in result.snapshots} == {"SN001", "SN002", "SN003"}
    assert all(snap.card_type == "n150" for snap in result.snapshots)
    assert all(snap.pcie_counters is None and snap.telemetry is None for snap in result.snapshots)


def test_collect_preserves_enumeration_order(sysfs_root, make_device):
    for index in range(4):
        make_device(f"tenstorrent!{index}", {"tt_serial": f"SN{index}\n"})

    order = enumerate_devices(sysfs_root)
    result = collect_devices(sysfs_root)

    assert [snap.source_path for snap in result.snapshots] == order


def test_collect_skips_dangling_entries(sysfs_root, make_device):
    make_device("tenstorrent!0", {"tt_serial": "SN0\n"})
    make_device("tenstorrent!1", {"tt_serial": "SN1\n"})
    # dangling symlink: listed as an entry but not a directory, so skipped
    (sysfs_root / "tenstorrent!9").symlink_to(sysfs_root / "missing")

    result = collect_devices(sysfs_root)

    assert len(result.entries) == 2
    assert all(isinstance(entry, DeviceSnapshot) for entry in result.entries)


def test_collect_turns_device_read_errors_into_failures(sysfs_root, make_device, monkeypatch):
    make_device("tenstorrent!0", {"tt_serial": "SN0\n"})
    make_device("tenstorrent!1", {"tt_serial": "SN1\n"})
    order = enumerate_devices(sysfs_root)
    doomed = order[0]

    real_build = enumerate_module.build_device_snapshot

    def flaky_build(device_path, **kwargs):
        if device_path == doomed:
            raise DeviceReadError(device_path, "No such file or directory")
        return real_build(device_path, **kwargs)

    monkeypatch.setattr(enumerate_module, "build_device_snapshot", flaky_build)

    result = collect_devices(sysfs_root)

    assert isinstance(result.entries[0], DeviceFailure)
    assert result.entries[0].source_path == doomed
    assert result.entries[0].message == "No such file or directory"
    assert isinstance(result.entries[1], DeviceSnapshot)
    assert len(result.failures) == 1 and len(result.snapshots) == 1


def test_consecutive_passes_are_identical_except_timestamp(sysfs_root, make_device):
    make_device(
        "tenstorrent!0",
        {"tt_card_type": "n300\n", "tt_aiclk": "3e8\n"},
        counters={"slv_rd_data_word_sent0": "5\n"},
        hwmon={"name": "wormhole\n", "temp1_input": "41000\n"},
    )
    make_device("tenstorrent!1", {"tt_serial": "SN1\n"})

    first = collect_devices(sysfs_root)
    second = collect_devices(sysfs_root)

    assert len(first.snapshots) == len(second.snapshots) == 2
    for a, b in zip(first.snapshots, second.snapshots):
        assert dataclasses.replace(a, captured_at=b.captured_at) == b


def test_unsearchable_device_does_not_abort_pass(sysfs_root, make_device):
    make_device("tenstorrent!0", {"tt_serial": "SN0\n"})
    locked = make_device(
        "tenstorrent!1",
        {"tt_serial": "SN1\n"},
        counters={"slv_rd_data_word_sent0": "5\n"},
        hwmon={"name": "wormhole\n", "temp1_input": "41000\n"},
    )
    locked.chmod(0o444)  # listable, not enterable
    try:
        result = collect_devices(sysfs_root)
    finally:
        locked.chmod(0o755)

    assert result.error is None
    assert len(result.entries) == 2
    assert all(isinstance(entry, DeviceSnapshot) for entry in result.entries)
    by_path = {snap.source_path: snap for snap in result.snapshots}
    assert by_path[sysfs_root / "tenstorrent!0"].serial == "SN0"
