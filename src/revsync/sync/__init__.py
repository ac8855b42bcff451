"""Sync engine, snapshot rotation and restore."""

from .engine import MergeAction, SyncEngine, SyncReport, is_up_to_date, merge_children
from .restore import SnapshotRestorer
from .snapshot_manager import RotationPlan, SnapshotManager
from .snapshots import SnapshotInfo, SnapshotNamer

__all__ = [
    "MergeAction",
    "SyncEngine",
    "SyncReport",
    "is_up_to_date",
    "merge_children",
    "SnapshotRestorer",
    "RotationPlan",
    "SnapshotManager",
    "SnapshotInfo",
    "SnapshotNamer",
]
