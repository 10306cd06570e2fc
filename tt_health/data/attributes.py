"""Sysfs attribute decoding and the attribute -> field tables."""

from __future__ import annotations

import enum
import logging
import re
from pathlib import Path

logger = logging.getLogger(__name__)

_U32_MAX = 0xFFFF_FFFF
_DIGITS = {
    16: re.compile(r"\+?[0-9A-Fa-f]+"),
    10: re.compile(r"\+?[0-9]+"),
}


class Encoding(enum.Enum):
    """How an attribute file's contents are decoded. Fixed per attribute name."""

    TEXT = "text"
    HEX_U32 = "hex_u32"
    DEC_U32 = "dec_u32"


def parse_u32(text: str, base: int) -> int | None:
    """Parse ``text`` as an unsigned 32-bit integer, or return ``None``."""

    if not _DIGITS[base].fullmatch(text):
        return None
    value = int(text, base)
    if value > _U32_MAX:
        return None
    return value


def read_attribute(path: Path, encoding: Encoding) -> str | int | None:
    """Read one attribute file.

    Missing files, permission errors, invalid UTF-8 and unparsable numbers
    all yield ``None``; partial telemetry beats no telemetry.
    """

    try:
        text = path.read_bytes().decode("utf-8").strip()
    except OSError as exc:
        logger.debug("Attribute %s unreadable: %s", path, exc)
        return None
    except UnicodeDecodeError:
        logger.debug("Attribute %s is not valid UTF-8", path)
        return None

    if encoding is Encoding.TEXT:
        return text
    value = parse_u32(text, 16 if encoding is Encoding.HEX_U32 else 10)
    if value is None:
        logger.debug("Attribute %s: cannot parse %r as %s", path, text, encoding.value)
    return value


# attribute file name -> (snapshot field, encoding)
DEVICE_ATTRIBUTES: dict[str, tuple[str, Encoding]] = {
    "tt_card_type": ("card_type", Encoding.TEXT),
    "tt_asic_id": ("asic_id", Encoding.TEXT),
    "tt_serial": ("serial", Encoding.TEXT),
    "tt_fw_bundle_ver": ("fw_bundle_version", Encoding.TEXT),
    "tt_m3app_fw_ver": ("m3app_fw_version", Encoding.TEXT),
    "tt_aiclk": ("aiclk", Encoding.HEX_U32),
    "tt_arcclk": ("arcclk", Encoding.HEX_U32),
    "tt_axiclk": ("axiclk", Encoding.HEX_U32),
}

PCIE_COUNTERS_DIR = "pcie_perf_counters"
PCIE_COUNTER_ATTRIBUTES: dict[str, tuple[str, Encoding]] = {
    name: (name, Encoding.DEC_U32)
    for name in (
        "mst_nonposted_wr_data_word_sent0",
        "mst_nonposted_wr_data_word_sent1",
        "mst_posted_wr_data_word_sent0",
        "mst_posted_wr_data_word_sent1",
        "mst_rd_data_word_received0",
        "mst_rd_data_word_received1",
        "slv_nonposted_wr_data_word_received0",
        "slv_nonposted_wr_data_word_received1",
        "slv_posted_wr_data_word_received0",
        "slv_posted_wr_data_word_received1",
        "slv_rd_data_word_sent0",
        "slv_rd_data_word_sent1",
    )
}

TELEMETRY_ATTRIBUTES: dict[str, tuple[str, Encoding]] = {
    "curr1_input": ("current", Encoding.DEC_U32),
    "power1_input": ("power", Encoding.DEC_U32),
    "temp1_input": ("asic_temp", Encoding.DEC_U32),
    "in0_input": ("vcore", Encoding.DEC_U32),
    "fan1_input": ("fan_rpm", Encoding.DEC_U32),
}
