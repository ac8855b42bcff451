"""
revsync - reverse-incremental directory snapshots

Mirrors a source directory into a timestamp-named snapshot under a backups
root. Older snapshots keep only the entries that later runs replaced or
removed, so the newest snapshot is always a full copy of the source.
"""

__version__ = "1.0.0"
__description__ = "Reverse-incremental local directory snapshots"

from .config.settings import RevsyncConfig, SyncOptions
from .sync.snapshot_manager import SnapshotManager

__all__ = ["RevsyncConfig", "SyncOptions", "SnapshotManager"]
