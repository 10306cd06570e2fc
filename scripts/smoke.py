"""Smoke test for the tt-health snapshot server against a fake sysfs tree."""

from __future__ import annotations

import json
import sys
import tempfile
import threading
import time
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from tt_health.core import load_config  # noqa: E402
from tt_health.service import create_app, fetch_snapshots  # noqa: E402


def _fake_device(root: Path, name: str, serial: str) -> None:
    device = root / name
    device.mkdir(parents=True)
    (device / "tt_card_type").write_text("n150\n")
    (device / "tt_serial").write_text(f"{serial}\n")
    (device / "tt_aiclk").write_text("3e8\n")
    counters = device / "pcie_perf_counters"
    counters.mkdir()
    (counters / "mst_rd_data_word_received0").write_text("42\n")
    hwmon = device / "device" / "hwmon" / "hwmon3"
    hwmon.mkdir(parents=True)
    (hwmon / "name").write_text("wormhole\n")
    (hwmon / "temp1_input").write_text("45000\n")


def run_smoke() -> None:
    with tempfile.TemporaryDirectory(prefix="tt-health-") as tmp:
        tmp_path = Path(tmp)
        sysfs = tmp_path / "tenstorrent"
        for index in range(2):
            _fake_device(sysfs, f"tenstorrent!{index}", f"SN00{index}")

        config = load_config(environ={}, sysfs_root=sysfs, socket_path=tmp_path / "tt.sock")
        server = create_app(config)
        print(f"Starting server on {server.server_address()}")

        thread = threading.Thread(target=server.serve_forever, daemon=True)
        thread.start()
        try:
            time.sleep(0.2)
            payload = fetch_snapshots(config.socket_path)
            assert payload.count("device_path: ") == 2, "expected two device blocks"
            assert "card_type: n150" in payload, "card type missing"
            print(payload, end="")
            print("SMOKE_OK", json.dumps(server.collector.diagnostics(), default=str))
        finally:
            server.stop()
            thread.join()


if __name__ == "__main__":
    run_smoke()
