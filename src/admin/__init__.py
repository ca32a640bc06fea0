"""Read-only HTTP panel for inspecting spreads and subscribers."""

from .web import SnapshotPanel, create_snapshot_app

__all__ = ["SnapshotPanel", "create_snapshot_app"]
