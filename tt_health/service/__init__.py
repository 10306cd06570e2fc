"""Snapshot serving: refresh policy, wire format and the socket server."""

from __future__ import annotations

__all__ = [
    "SnapshotCollector",
    "SnapshotServer",
    "create_app",
    "fetch_snapshots",
    "render_collection",
    "render_snapshot",
]

from .collector import SnapshotCollector  # noqa: E402
from .serializer import render_collection, render_snapshot  # noqa: E402
from .server import SnapshotServer, create_app, fetch_snapshots  # noqa: E402
