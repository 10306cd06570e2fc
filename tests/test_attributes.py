from __future__ import annotations

import os

import pytest

from tt_health.data.attributes import (
    DEVICE_ATTRIBUTES,
    PCIE_COUNTER_ATTRIBUTES,
    TELEMETRY_ATTRIBUTES,
    Encoding,
    parse_u32,
    read_attribute,
)


@pytest.mark.parametrize(
    "text, base, expected",
    [
        ("1a2b", 16, 0x1A2B),
        ("FFFFFFFF", 16, 0xFFFFFFFF),
        ("0", 16, 0),
        ("4294967295", 10, 4294967295),
        ("0", 10, 0),
        ("+17", 10, 17),
    ],
)
def test_parse_u32_accepts_valid_values(text, base, expected):
    assert parse_u32(text, base) == expected


@pytest.mark.parametrize(
    "text, base",
    [
        ("", 16),
        ("0x1a", 16),
        ("1g", 16),
        ("100000000", 16),
        ("4294967296", 10),
        ("-1", 10),
        ("1_000", 10),
        ("ff", 10),
        ("12 34", 10),
        ("٣", 10),  # arabic-indic digit three
    ],
)
def test_parse_u32_rejects_invalid_values(text, base):
    assert parse_u32(text, base) is None


def test_hex_attribute_is_trimmed_before_parsing(tmp_path):
    path = tmp_path / "tt_aiclk"
    path.write_text(" 1a2b\n")
    assert read_attribute(path, Encoding.HEX_U32) == 6699


def test_text_attribute_returns_trimmed_string(tmp_path):
    path = tmp_path / "tt_card_type"
    path.write_text("  n300 \n")
    assert read_attribute(path, Encoding.TEXT) == "n300"


def test_decimal_zero_is_distinct_from_absence(tmp_path):
    path = tmp_path / "fan1_input"
    path.write_text("0\n")
    assert read_attribute(path, Encoding.DEC_U32) == 0


def test_malformed_number_is_absent(tmp_path):
    path = tmp_path / "tt_aiclk"
    path.write_text("not-a-clock\n")
    assert read_attribute(path, Encoding.HEX_U32) is None


def test_missing_file_is_absent(tmp_path):
    assert read_attribute(tmp_path / "nope", Encoding.TEXT) is None


def test_directory_is_absent(tmp_path):
    assert read_attribute(tmp_path, Encoding.TEXT) is None


def test_invalid_utf8_is_absent(tmp_path):
    path = tmp_path / "tt_serial"
    path.write_bytes(b"\xff\xfe\x00bad")
    assert read_attribute(path, Encoding.TEXT) is None


@pytest.mark.skipif(hasattr(os, "geteuid") and os.geteuid() == 0, reason="root ignores file modes")
def test_unreadable_file_is_absent(tmp_path):
    path = tmp_path / "tt_serial"
    path.write_text("SN1\n")
    path.chmod(0)
    try:
        assert read_attribute(path, Encoding.TEXT) is None
    finally:
        path.chmod(0o644)


def test_attribute_tables_use_fixed_encodings():
    assert DEVICE_ATTRIBUTES["tt_card_type"] == ("card_type", Encoding.TEXT)
    assert {enc for _, enc in (DEVICE_ATTRIBUTES[n] for n in ("tt_aiclk", "tt_arcclk", "tt_axiclk"))} == {
        Encoding.HEX_U32
    }
    assert len(PCIE_COUNTER_ATTRIBUTES) == 12
    assert all(enc is Encoding.DEC_U32 for _, enc in PCIE_COUNTER_ATTRIBUTES.values())
    assert [field for field, _ in TELEMETRY_ATTRIBUTES.values()] == [
        "current",
        "power",
        "asic_temp",
        "vcore",
        "fan_rpm",
    ]
