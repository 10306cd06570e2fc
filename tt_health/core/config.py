"""Runtime configuration for the tt-health daemon."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .errors import ConfigError

APP_NAME = "tt-health"
REFRESH_MODES = ("on_demand", "interval")


def _default_socket_path() -> Path:
    runtime_dir = os.environ.get("XDG_RUNTIME_DIR") or "/tmp"
    return Path(runtime_dir) / "tt-health.sock"


@dataclass(frozen=True)
class DaemonConfig:
    """Settings for collection and for the snapshot socket."""

    sysfs_root: Path = Path("/sys/class/tenstorrent")
    socket_path: Path = dataclasses.field(default_factory=_default_socket_path)
    refresh_mode: str = "on_demand"  # or "interval"
    refresh_interval: float = 5.0  # seconds, interval mode only
    max_workers: int = 8
    write_timeout: float | None = 5.0  # seconds per connection, None disables
    socket_mode: int | None = None  # chmod applied after bind
    hwmon_names: tuple[str, ...] = ("grayskull", "wormhole", "blackhole")

    def __post_init__(self) -> None:
        if self.refresh_mode not in REFRESH_MODES:
            raise ConfigError(
                f"refresh_mode must be one of {', '.join(REFRESH_MODES)}, got {self.refresh_mode!r}"
            )
        if self.refresh_interval <= 0:
            raise ConfigError(f"refresh_interval must be positive, got {self.refresh_interval}")
        if self.max_workers < 1:
            raise ConfigError(f"max_workers must be at least 1, got {self.max_workers}")
        if self.write_timeout is not None and self.write_timeout <= 0:
            raise ConfigError(f"write_timeout must be positive, got {self.write_timeout}")


def _optional_float(raw: str) -> float | None:
    if raw.strip().lower() in {"", "none", "off", "0"}:
        return None
    return float(raw)


def _names(raw: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in raw.split(",") if part.strip())


# env var -> (field, parser)
_ENV_FIELDS: dict[str, tuple[str, Callable[[str], Any]]] = {
    "TT_HEALTH_SYSFS_ROOT": ("sysfs_root", Path),
    "TT_HEALTH_SOCKET": ("socket_path", Path),
    "TT_HEALTH_REFRESH": ("refresh_mode", str.strip),
    "TT_HEALTH_INTERVAL": ("refresh_interval", float),
    "TT_HEALTH_WORKERS": ("max_workers", int),
    "TT_HEALTH_WRITE_TIMEOUT": ("write_timeout", _optional_float),
    "TT_HEALTH_SOCKET_MODE": ("socket_mode", lambda raw: int(raw, 8)),
    "TT_HEALTH_HWMON_NAMES": ("hwmon_names", _names),
}


def load_config(environ: Mapping[str, str] | None = None, **overrides: Any) -> DaemonConfig:
    """Build a config from defaults, then ``TT_HEALTH_*`` variables, then ``overrides``.

    Overrides whose value is ``None`` are ignored so that unset CLI flags
    fall through to the environment.
    """

    env = os.environ if environ is None else environ
    values: dict[str, Any] = {}
    for key, (name, parse) in _ENV_FIELDS.items():
        raw = env.get(key)
        if raw is None:
            continue
        try:
            values[name] = parse(raw)
        except ValueError as exc:
            raise ConfigError(f"invalid value for {key}: {raw!r}") from exc

    known = {f.name for f in dataclasses.fields(DaemonConfig)}
    for name, value in overrides.items():
        if name not in known:
            raise ConfigError(f"unknown configuration field {name!r}")
        if value is not None:
            values[name] = value

    for name in ("sysfs_root", "socket_path"):
        if name in values:
            values[name] = Path(values[name])
    if "hwmon_names" in values:
        values["hwmon_names"] = tuple(values["hwmon_names"])
    return DaemonConfig(**values)


DEFAULT_CONFIG = DaemonConfig()
