"""Dataclasses representing per-device telemetry snapshots."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from datetime import datetime
from pathlib import Path
from typing import Any


@dataclass(frozen=True, slots=True)
class PcieCounters:
    """Bus-transaction word counts from ``pcie_perf_counters/``."""

    mst_nonposted_wr_data_word_sent0: int | None = None
    mst_nonposted_wr_data_word_sent1: int | None = None
    mst_posted_wr_data_word_sent0: int | None = None
    mst_posted_wr_data_word_sent1: int | None = None
    mst_rd_data_word_received0: int | None = None
    mst_rd_data_word_received1: int | None = None
    slv_nonposted_wr_data_word_received0: int | None = None
    slv_nonposted_wr_data_word_received1: int | None = None
    slv_posted_wr_data_word_received0: int | None = None
    slv_posted_wr_data_word_received1: int | None = None
    slv_rd_data_word_sent0: int | None = None
    slv_rd_data_word_sent1: int | None = None


@dataclass(frozen=True, slots=True)
class SensorTelemetry:
    """Instantaneous hwmon readings, in the units the driver reports."""

    current: int | None = None
    power: int | None = None
    asic_temp: int | None = None
    vcore: int | None = None
    fan_rpm: int | None = None


@dataclass(frozen=True, slots=True)
class DeviceSnapshot:
    """Point-in-time record for one device, keyed by ``source_path``.

    Every optional field is ``None`` only when the attribute could not be
    read or decoded. A reading of zero is stored as ``0``.
    """

    captured_at: datetime
    source_path: Path
    card_type: str | None = None
    asic_id: str | None = None
    serial: str | None = None
    fw_bundle_version: str | None = None
    m3app_fw_version: str | None = None
    aiclk: int | None = None
    arcclk: int | None = None
    axiclk: int | None = None
    pcie_counters: PcieCounters | None = None
    telemetry: SensorTelemetry | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["captured_at"] = self.captured_at.isoformat()
        data["source_path"] = str(self.source_path)
        return data

    def to_flat_record(self) -> dict[str, Any]:
        """Flatten into one row for a time-series writer.

        Counter and telemetry columns are always present; they are ``None``
        when the sub-record or the individual reading is absent.
        """

        record: dict[str, Any] = {
            "time": self.captured_at,
            "device_path": str(self.source_path),
            "tt_asic_id": self.asic_id,
            "tt_serial": self.serial,
            "tt_aiclk": self.aiclk,
            "tt_arcclk": self.arcclk,
            "tt_axiclk": self.axiclk,
            "tt_card_type": self.card_type,
            "tt_fw_bundle_ver": self.fw_bundle_version,
            "tt_m3app_fw_ver": self.m3app_fw_version,
        }
        for sub_type, sub_record in (
            (PcieCounters, self.pcie_counters),
            (SensorTelemetry, self.telemetry),
        ):
            for item in fields(sub_type):
                record[item.name] = getattr(sub_record, item.name) if sub_record else None
        return record


@dataclass(frozen=True, slots=True)
class DeviceFailure:
    """A device whose directory could not be read during a pass."""

    source_path: Path
    message: str


@dataclass(frozen=True, slots=True)
class CollectionResult:
    """Outcome of one enumeration pass, entries in enumeration order."""

    captured_at: datetime
    entries: tuple[DeviceSnapshot | DeviceFailure, ...] = field(default_factory=tuple)
    error: str | None = None

    @property
    def snapshots(self) -> list[DeviceSnapshot]:
        return [entry for entry in self.entries if isinstance(entry, DeviceSnapshot)]

    @property
    def failures(self) -> list[DeviceFailure]:
        return [entry for entry in self.entries if isinstance(entry, DeviceFailure)]
