"""Snapshot caching and refresh policy for the socket server."""

from __future__ import annotations

import logging
import os
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import psutil

from tt_health.core.config import DEFAULT_CONFIG, DaemonConfig
from tt_health.core.errors import EnumerationError
from tt_health.data import collect_devices
from tt_health.models import CollectionResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class _CachedPass:
    result: CollectionResult
    started: float  # time.monotonic() at pass start
    duration: float


class SnapshotCollector:
    """Produces :class:`CollectionResult` objects for connection handlers.

    ``on_demand`` runs a fresh pass per :meth:`current` call. ``interval``
    keeps a background thread refreshing a cached result; the cache is a
    single immutable object replaced by assignment, so readers never lock
    and never see a half-built pass.
    """

    def __init__(self, config: DaemonConfig = DEFAULT_CONFIG) -> None:
        self._config = config
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()  # guards diagnostics only
        self._cached: _CachedPass | None = None

        self._diagnostics: dict[str, Any] = {
            "refresh_mode": config.refresh_mode,
            "passes": 0,
            "last_run_started": None,
            "last_run_duration": 0.0,
            "last_success_at": None,
            "consecutive_failures": 0,
            "last_error": None,
        }

    @property
    def config(self) -> DaemonConfig:
        return self._config

    def start(self) -> None:
        if self._config.refresh_mode != "interval":
            return
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._cached = self._run_pass()
        self._thread = threading.Thread(target=self._run, name="SnapshotCollector", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        thread = self._thread
        if thread and thread.is_alive():
            thread.join(timeout=timeout)
        self._thread = None

    def current(self) -> CollectionResult:
        """Return the result a connection should serve right now."""

        if self._config.refresh_mode == "on_demand":
            return self._run_pass().result

        cached = self._cached
        if cached is None or self._is_stale(cached):
            logger.debug("Cached snapshot missing or stale, refreshing synchronously")
            cached = self._run_pass()
            self._cached = cached
        return cached.result

    def _is_stale(self, cached: _CachedPass) -> bool:
        # one interval plus one in-flight build
        age = time.monotonic() - cached.started
        return age > self._config.refresh_interval + cached.duration

    def _run(self) -> None:
        # start() already produced the first pass
        cached = self._cached
        delay = self._config.refresh_interval - (cached.duration if cached else 0.0)
        while not self._stop.wait(max(0.0, delay)):
            cached = self._run_pass()
            self._cached = cached
            delay = self._config.refresh_interval - cached.duration

    def _run_pass(self) -> _CachedPass:
        started = time.monotonic()
        try:
            result = collect_devices(self._config.sysfs_root, hwmon_names=self._config.hwmon_names)
        except EnumerationError as exc:
            logger.error("Device enumeration failed: %s", exc)
            result = CollectionResult(captured_at=datetime.now(timezone.utc), error=str(exc))
        except Exception as exc:
            logger.exception("Unexpected error during device collection")
            result = CollectionResult(
                captured_at=datetime.now(timezone.utc),
                error=f"{exc.__class__.__name__}: {exc}",
            )
        duration = time.monotonic() - started
        self._update_diagnostics(result, duration)
        return _CachedPass(result=result, started=started, duration=duration)

    def _update_diagnostics(self, result: CollectionResult, duration: float) -> None:
        now = time.time()
        with self._lock:
            self._diagnostics["passes"] += 1
            self._diagnostics["last_run_started"] = now - duration
            self._diagnostics["last_run_duration"] = duration
            if result.error is None:
                self._diagnostics["last_success_at"] = now
                self._diagnostics["consecutive_failures"] = 0
            else:
                self._diagnostics["consecutive_failures"] += 1
                self._diagnostics["last_error"] = {"message": result.error, "timestamp": now}
            self._diagnostics["devices"] = len(result.snapshots)
            self._diagnostics["device_failures"] = len(result.failures)

    def diagnostics(self) -> dict[str, Any]:
        with self._lock:
            data = dict(self._diagnostics)
        process = psutil.Process(os.getpid())
        with process.oneshot():
            data["process"] = {
                "open_fds": process.num_fds(),
                "num_threads": process.num_threads(),
                "rss_bytes": process.memory_info().rss,
            }
        return data
