"""Exception hierarchy shared by the collectors and the socket server."""

from __future__ import annotations

from pathlib import Path


class TTHealthError(RuntimeError):
    """Base class for every error raised by tt-health."""


class ConfigError(TTHealthError):
    """Raised when a configuration value is missing or malformed."""


class EnumerationError(TTHealthError):
    """Raised when the device registry directory cannot be listed."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"cannot enumerate devices under {path}: {reason}")
        self.path = path
        self.reason = reason


class DeviceReadError(TTHealthError):
    """Raised when a device's attribute directory vanished or is unreadable."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"cannot read device directory {path}: {reason}")
        self.path = path
        self.reason = reason


class SocketBindError(TTHealthError):
    """Raised when the snapshot socket cannot be prepared or bound."""


class ListenerError(TTHealthError):
    """Raised when the accept loop stops because the listener was torn down."""
