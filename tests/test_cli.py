from __future__ import annotations

import json
import threading

from tt_health.cli import main
from tt_health.core import load_config
from tt_health.service import SnapshotServer


def test_collect_text(sysfs_root, make_device, capsys):
    make_device("tenstorrent!0", {"tt_card_type": "n150\n", "tt_serial": "SN001\n"})

    assert main(["collect", "--root", str(sysfs_root)]) == 0

    out = capsys.readouterr().out
    assert "card_type: n150\n" in out
    assert "serial: SN001\n" in out
    assert "fan_rpm: unknown\n" in out


def test_collect_json(sysfs_root, make_device, capsys):
    make_device("tenstorrent!0", {"tt_serial": "SN001\n", "tt_axiclk": "384\n"})

    assert main(["collect", "--root", str(sysfs_root), "--format", "json"]) == 0

    payload = json.loads(capsys.readouterr().out)
    assert set(payload) == {"captured_at", "devices", "failures"}
    assert payload["failures"] == []
    [device] = payload["devices"]
    assert device["tt_serial"] == "SN001"
    assert device["tt_axiclk"] == 900
    assert device["current"] is None
    assert device["device_path"].endswith("tenstorrent!0")


def test_collect_missing_root_exits_nonzero(tmp_path, capsys):
    assert main(["collect", "--root", str(tmp_path / "absent")]) == 1
    assert "cannot enumerate devices" in capsys.readouterr().err


def test_query_running_server(sysfs_root, make_device, tmp_path, capsys):
    make_device("tenstorrent!0", {"tt_serial": "SN7\n"})
    socket_path = tmp_path / "q.sock"
    server = SnapshotServer(load_config(environ={}, sysfs_root=sysfs_root, socket_path=socket_path))
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        assert main(["query", "--socket", str(socket_path)]) == 0
    finally:
        server.stop()
        thread.join(timeout=5)

    assert "serial: SN7\n" in capsys.readouterr().out


def test_query_without_server_fails(tmp_path, capsys):
    assert main(["query", "--socket", str(tmp_path / "none.sock")]) == 1
    assert "cannot query" in capsys.readouterr().err


def test_serve_reports_bind_failure(sysfs_root, tmp_path, capsys):
    code = main(["serve", "--root", str(sysfs_root), "--socket", str(tmp_path / "missing" / "s.sock")])
    assert code == 1
    assert "cannot bind" in capsys.readouterr().err
