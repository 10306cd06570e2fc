"""Unix-domain socket server that hands each client a full snapshot dump."""

from __future__ import annotations

import errno
import logging
import os
import socket
import socketserver
import stat
import threading
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from pathlib import Path
from typing import Any

from tt_health.core.config import DEFAULT_CONFIG, DaemonConfig
from tt_health.core.errors import ListenerError, SocketBindError

from .collector import SnapshotCollector
from .serializer import render_collection

logger = logging.getLogger(__name__)

_FATAL_ACCEPT_ERRNOS = {errno.EBADF, errno.EINVAL, errno.ENOTSOCK}


class SnapshotRequestHandler(socketserver.StreamRequestHandler):
    """Accepted -> refresh -> serialize -> closed. There is no request body."""

    def __init__(
        self,
        *args: Any,
        collector: SnapshotCollector,
        write_timeout: float | None = None,
        **kwargs: Any,
    ) -> None:
        self._collector = collector
        # StreamRequestHandler applies this to the connection in setup()
        self.timeout = write_timeout
        super().__init__(*args, **kwargs)

    def handle(self) -> None:
        result = self._collector.current()
        payload = render_collection(result).encode("utf-8")
        try:
            self.wfile.write(payload)
            self.wfile.flush()
        except (BrokenPipeError, ConnectionResetError) as exc:
            logger.warning("Client disconnected before the snapshot was sent: %s", exc)
        except TimeoutError:
            logger.warning("Timed out writing snapshot to a slow client")
        except OSError as exc:
            logger.warning("Error writing snapshot to client: %s", exc)

    def finish(self) -> None:
        try:
            super().finish()
        except OSError as exc:
            logger.debug("Error closing client stream: %s", exc)


class _PooledUnixStreamServer(socketserver.UnixStreamServer):
    """UnixStreamServer that dispatches each connection to a bounded pool.

    At most ``max_workers * pending_per_worker`` accepted connections are held
    at once, running or queued. Past that the accept loop blocks until a
    worker finishes and further clients wait in the kernel listen backlog.
    """

    pending_per_worker = 2

    def __init__(self, address: str, handler: Any, max_workers: int) -> None:
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="SnapshotWorker")
        self._slots = threading.BoundedSemaphore(max_workers * self.pending_per_worker)
        self._in_flight = 0
        self._in_flight_lock = threading.Lock()
        try:
            super().__init__(address, handler)
        except BaseException:
            self._executor.shutdown(wait=False)
            raise

    def get_request(self) -> tuple[Any, Any]:
        try:
            return super().get_request()
        except OSError as exc:
            # socketserver swallows accept() errors; only transient ones may be retried
            if exc.errno in _FATAL_ACCEPT_ERRNOS or self.socket.fileno() < 0:
                raise ListenerError(f"accept failed: {exc}") from exc
            raise

    @property
    def in_flight(self) -> int:
        return self._in_flight

    def process_request(self, request: Any, client_address: Any) -> None:
        self._slots.acquire()
        with self._in_flight_lock:
            self._in_flight += 1
        try:
            self._executor.submit(self._process_request_worker, request, client_address)
        except RuntimeError:
            # executor already shut down; socketserver closes the request
            self._release_slot()
            raise

    def _process_request_worker(self, request: Any, client_address: Any) -> None:
        try:
            self.finish_request(request, client_address)
        except Exception:
            self.handle_error(request, client_address)
        finally:
            self.shutdown_request(request)
            self._release_slot()

    def _release_slot(self) -> None:
        with self._in_flight_lock:
            self._in_flight -= 1
        self._slots.release()

    def handle_error(self, request: Any, client_address: Any) -> None:
        logger.exception("Unhandled error while serving a snapshot connection")

    def server_close(self) -> None:
        super().server_close()
        self._executor.shutdown(wait=True)


def _remove_stale_socket(path: Path) -> None:
    try:
        mode = path.lstat().st_mode
    except FileNotFoundError:
        return
    except OSError as exc:
        raise SocketBindError(f"cannot inspect {path}: {exc}") from exc

    if not stat.S_ISSOCK(mode):
        raise SocketBindError(f"{path} exists and is not a socket; refusing to remove it")

    probe = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    try:
        probe.settimeout(1.0)
        probe.connect(str(path))
    except (ConnectionRefusedError, FileNotFoundError):
        pass
    except OSError as exc:
        raise SocketBindError(f"cannot probe existing socket {path}: {exc}") from exc
    else:
        raise SocketBindError(f"another server is already listening on {path}")
    finally:
        probe.close()

    logger.info("Removing stale socket %s", path)
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as exc:
        raise SocketBindError(f"cannot remove stale socket {path}: {exc}") from exc


class SnapshotServer:
    """Owns the listening socket, the worker pool and the snapshot collector."""

    def __init__(
        self,
        config: DaemonConfig = DEFAULT_CONFIG,
        collector: SnapshotCollector | None = None,
    ) -> None:
        self.config = config
        self.socket_path = Path(config.socket_path)
        self._collector = collector or SnapshotCollector(config)
        self._closed = threading.Event()
        self._serving = threading.Event()

        _remove_stale_socket(self.socket_path)
        handler = partial(
            SnapshotRequestHandler,
            collector=self._collector,
            write_timeout=config.write_timeout,
        )
        try:
            self._server = _PooledUnixStreamServer(str(self.socket_path), handler, config.max_workers)
        except OSError as exc:
            if exc.errno == errno.EADDRINUSE:
                raise SocketBindError(f"{self.socket_path} is already in use") from exc
            raise SocketBindError(f"cannot bind {self.socket_path}: {exc}") from exc

        try:
            if config.socket_mode is not None:
                os.chmod(self.socket_path, config.socket_mode)
            self._collector.start()
        except BaseException:
            self._close_listener()
            raise
        logger.info(
            "Serving device snapshots on %s (refresh=%s, workers=%d)",
            self.socket_path,
            config.refresh_mode,
            config.max_workers,
        )

    @property
    def collector(self) -> SnapshotCollector:
        return self._collector

    @property
    def in_flight(self) -> int:
        """Accepted connections currently running or queued for a worker."""
        return self._server.in_flight

    def serve_forever(self, poll_interval: float = 0.5) -> None:
        """Accept connections until :meth:`stop` is called.

        Raises :class:`ListenerError` if the listening socket fails underneath
        the loop; per-connection errors never reach this level.
        """

        if self._closed.is_set():
            return
        self._serving.set()
        try:
            self._server.serve_forever(poll_interval=poll_interval)
        except ListenerError:
            if self._closed.is_set():
                return
            logger.error("Accept loop stopped on %s", self.socket_path)
            raise
        except (OSError, ValueError) as exc:
            if self._closed.is_set():
                return
            logger.error("Accept loop stopped: %s", exc)
            raise ListenerError(f"listener on {self.socket_path} failed: {exc}") from exc

    def stop(self) -> None:
        """Stop accepting, close the listener and remove the socket file.

        Must not be called from the thread running :meth:`serve_forever`.
        """

        if self._closed.is_set():
            return
        self._closed.set()
        try:
            if self._serving.is_set():
                self._server.shutdown()
        finally:
            self._close_listener()
            self._collector.stop()
            logger.info("Snapshot server on %s stopped", self.socket_path)

    def _close_listener(self) -> None:
        self._server.server_close()
        try:
            self.socket_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("Could not remove socket %s: %s", self.socket_path, exc)

    def server_address(self) -> str:
        return str(self.socket_path)

    def __enter__(self) -> SnapshotServer:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.stop()


def create_app(config: DaemonConfig = DEFAULT_CONFIG) -> SnapshotServer:
    """Factory helper used by the CLI, scripts and tests."""

    return SnapshotServer(config)


def fetch_snapshots(socket_path: Path, timeout: float = 10.0) -> str:
    """Connect to a running server and return the full text payload."""

    chunks: list[bytes] = []
    with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as client:
        client.settimeout(timeout)
        client.connect(str(socket_path))
        while True:
            chunk = client.recv(65536)
            if not chunk:
                break
            chunks.append(chunk)
    return b"".join(chunks).decode("utf-8")
