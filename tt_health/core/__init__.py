"""Core utilities for tt-health."""

from __future__ import annotations

from .config import APP_NAME, DEFAULT_CONFIG, REFRESH_MODES, DaemonConfig, load_config
from .errors import (
    ConfigError,
    DeviceReadError,
    EnumerationError,
    ListenerError,
    SocketBindError,
    TTHealthError,
)

__all__ = [
    "APP_NAME",
    "DEFAULT_CONFIG",
    "REFRESH_MODES",
    "ConfigError",
    "DaemonConfig",
    "DeviceReadError",
    "EnumerationError",
    "ListenerError",
    "SocketBindError",
    "TTHealthError",
    "load_config",
]
