"""tt-health: Tenstorrent device telemetry over a local socket."""

from __future__ import annotations

__all__ = [
    "__version__",
    "collect_devices",
    "create_app",
    "core",
    "data",
    "models",
    "service",
]
__version__ = "0.1.0"

from .data import collect_devices  # noqa: E402
from .service import create_app  # noqa: E402
