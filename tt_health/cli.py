"""Command line entry point.

Examples::

    tt-health serve --socket /run/tt-health.sock --mode interval --interval 2
    tt-health collect --format json
    tt-health query --socket /run/tt-health.sock
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import signal
import sys
import threading
from pathlib import Path
from typing import Any, Sequence

from tt_health.core import APP_NAME, REFRESH_MODES, DaemonConfig, TTHealthError, load_config
from tt_health.data import collect_devices
from tt_health.service import SnapshotServer, fetch_snapshots, render_collection

logger = logging.getLogger(__name__)


def _configure_logging(level: str | None) -> None:
    logging.basicConfig(
        level=(level or os.getenv("TT_HEALTH_LOG_LEVEL", "INFO")).upper(),
        format="%(asctime)s  %(levelname)s %(name)s: %(message)s",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=APP_NAME, description="Tenstorrent device telemetry daemon")
    parser.add_argument("--log-level", default=None, help="logging level (default: $TT_HEALTH_LOG_LEVEL or INFO)")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="serve snapshots on a Unix socket")
    serve.add_argument("--socket", type=Path, default=None, help="socket path")
    serve.add_argument("--root", type=Path, default=None, help="sysfs device class directory")
    serve.add_argument("--mode", choices=REFRESH_MODES, default=None, help="refresh policy")
    serve.add_argument("--interval", type=float, default=None, help="refresh period in seconds (interval mode)")
    serve.add_argument("--workers", type=int, default=None, help="maximum concurrent connection workers")

    collect = sub.add_parser("collect", help="run one collection pass and print it")
    collect.add_argument("--root", type=Path, default=None, help="sysfs device class directory")
    collect.add_argument("--format", choices=("text", "json"), default="text")

    query = sub.add_parser("query", help="read snapshots from a running server")
    query.add_argument("--socket", type=Path, default=None, help="socket path")
    query.add_argument("--timeout", type=float, default=10.0)
    return parser


def _serve(config: DaemonConfig) -> int:
    server = SnapshotServer(config)
    stop_event = threading.Event()

    def _request_stop(signum: int, _frame: Any) -> None:
        logger.info("Received signal %d, shutting down", signum)
        stop_event.set()

    signal.signal(signal.SIGINT, _request_stop)
    signal.signal(signal.SIGTERM, _request_stop)

    failure: list[BaseException] = []

    def _accept_loop() -> None:
        try:
            server.serve_forever()
        except TTHealthError as exc:
            failure.append(exc)
        finally:
            stop_event.set()

    thread = threading.Thread(target=_accept_loop, name="SnapshotAcceptLoop", daemon=True)
    thread.start()
    try:
        while not stop_event.wait(0.5):
            pass
    finally:
        server.stop()
        thread.join()
    if failure:
        raise failure[0]
    return 0


def _json_default(value: Any) -> Any:
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


def _collect(config: DaemonConfig, output_format: str) -> int:
    result = collect_devices(config.sysfs_root, hwmon_names=config.hwmon_names)
    if output_format == "json":
        payload = {
            "captured_at": result.captured_at,
            "devices": [snapshot.to_flat_record() for snapshot in result.snapshots],
            "failures": [
                {"device_path": str(failure.source_path), "message": failure.message}
                for failure in result.failures
            ],
        }
        print(json.dumps(payload, indent=2, default=_json_default))
    else:
        sys.stdout.write(render_collection(result))
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    _configure_logging(args.log_level)

    try:
        if args.command == "serve":
            config = load_config(
                socket_path=args.socket,
                sysfs_root=args.root,
                refresh_mode=args.mode,
                refresh_interval=args.interval,
                max_workers=args.workers,
            )
            return _serve(config)
        if args.command == "collect":
            return _collect(load_config(sysfs_root=args.root), args.format)
        config = load_config(socket_path=args.socket)
        try:
            sys.stdout.write(fetch_snapshots(config.socket_path, timeout=args.timeout))
        except OSError as exc:
            print(f"{APP_NAME}: cannot query {config.socket_path}: {exc}", file=sys.stderr)
            return 1
        return 0
    except TTHealthError as exc:
        print(f"{APP_NAME}: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
