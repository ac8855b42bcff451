"""Snapshot manager orchestrating one rotation and sync run."""

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Dict, Optional

from ..config.settings import FallbackPolicy, SyncOptions
from ..exceptions import RotationError, SnapshotNotFoundError, SyncError
from ..fs.local import LocalFileSystem
from ..fs.mkdir import DirectoryCreator
from ..utils.logging import TimedOperation
from .engine import RelPath, SyncEngine, SyncReport
from .snapshots import SnapshotNamer

# Module logger
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RotationPlan:
    """The directory pair a run synchronizes into."""
    snapshot_name: str
    destination: Path
    backup: Path
    previous_name: Optional[str] = None
    degraded: bool = False

    @property
    def scratch(self) -> bool:
        """Whether the backup directory is a throwaway scratch directory."""
        return self.previous_name is None


class SnapshotManager:
    """Rotate the newest snapshot forward and sync the source into it.

    The previous snapshot is renamed to the new snapshot name and updated in
    place. Its vacated path then receives every entry the update replaces or
    removes, so it ends up holding only the differences to its successor.
    """

    def __init__(self, source: Path, backups_root: Path,
                 options: Optional[SyncOptions] = None,
                 fs: Optional[LocalFileSystem] = None,
                 namer: Optional[SnapshotNamer] = None):
        """Initialize snapshot manager.

        Args:
            source: Directory to back up
            backups_root: Directory holding the snapshot chain
            options: Synchronization options
            fs: Filesystem abstraction (created from ``options`` when omitted)
            namer: Snapshot namer (uses the current time when omitted)
        """
        self.source = Path(source).absolute()
        self.backups_root = Path(backups_root).absolute()
        self.options = options or SyncOptions()
        self._owns_fs = fs is None
        self.fs = fs or LocalFileSystem(max_concurrency=self.options.max_concurrency)
        self.namer = namer or SnapshotNamer(self.fs)
        self.plan: Optional[RotationPlan] = None
        self.report: Optional[SyncReport] = None

    async def rotate(self, directories: DirectoryCreator) -> RotationPlan:
        """Choose and prepare the destination and backup directories.

        Raises:
            RotationError: If the backups root cannot be created, or the
                rename failed and the fallback policy is ``fail``
        """
        try:
            await directories.ensure_directory(self.backups_root)
        except SyncError as e:
            raise RotationError(f"Cannot create backups root {self.backups_root}: {e}",
                                self.backups_root) from e

        snapshot_name = self.namer.new_name()
        destination = self.backups_root / snapshot_name

        if await self.fs.exists(destination):
            raise RotationError(f"Snapshot {snapshot_name} already exists", destination)

        try:
            previous_name = await self.namer.latest_name(self.backups_root)
            await self.fs.rename(self.backups_root / previous_name, destination)
        except SnapshotNotFoundError:
            logger.info(f"No previous snapshot in {self.backups_root} - performing full sync")
            return await self._scratch_plan(directories, snapshot_name, destination, degraded=False)
        except SyncError as e:
            if self.options.fallback is FallbackPolicy.FAIL:
                raise RotationError(f"Could not rotate previous snapshot: {e}", self.backups_root) from e
            logger.warning(f"Could not rotate previous snapshot ({e}) - "
                           f"changes replaced by this run will not be kept")
            return await self._scratch_plan(directories, snapshot_name, destination, degraded=True)

        logger.info(f"Rotated snapshot {previous_name} -> {snapshot_name}")
        return RotationPlan(
            snapshot_name=snapshot_name,
            destination=destination,
            backup=self.backups_root / previous_name,
            previous_name=previous_name
        )

    async def _scratch_plan(self, directories: DirectoryCreator, snapshot_name: str,
                            destination: Path, degraded: bool) -> RotationPlan:
        scratch_parent = self.options.scratch_dir
        try:
            if scratch_parent is not None:
                await directories.ensure_directory(scratch_parent)
            scratch = await self.fs.make_temp_directory(scratch_parent, prefix="revsync-")
        except SyncError as e:
            raise RotationError(f"Cannot create scratch backup directory: {e}", scratch_parent) from e
        logger.debug(f"Using scratch backup directory {scratch}")
        return RotationPlan(
            snapshot_name=snapshot_name,
            destination=destination,
            backup=scratch,
            degraded=degraded
        )

    async def sync(self) -> AsyncIterator[RelPath]:
        """Rotate and synchronize, yielding each processed relative path.

        Rotation failures and fatal sync errors are raised from the iterator.
        """
        directories = DirectoryCreator(self.fs)
        self.plan = await self.rotate(directories)
        engine = SyncEngine(self.fs, self.source, self.plan.destination, self.plan.backup, directories)
        self.report = engine.report

        stream = engine.sync()
        try:
            async for rel in stream:
                yield rel
        finally:
            await stream.aclose()
            if self.plan.scratch:
                await self._remove_scratch(self.plan.backup)

    async def _remove_scratch(self, scratch: Path) -> None:
        try:
            await self.fs.remove(scratch)
        except SyncError as e:
            logger.warning(f"Could not remove scratch directory {scratch}: {e}")

    async def run(self, on_path: Optional[Callable[[RelPath], None]] = None) -> Dict[str, Any]:
        """Run one complete sync.

        Args:
            on_path: Called with every processed relative path

        Returns:
            Dictionary with run results
        """
        start_time = datetime.now()
        results: Dict[str, Any] = {
            'source': str(self.source),
            'backups_root': str(self.backups_root),
            'status': 'started',
            'snapshot': None,
            'previous_snapshot': None,
            'degraded': False,
            'paths_processed': 0,
            'files_copied': 0,
            'entries_backed_up': 0,
            'files_unchanged': 0,
            'skipped': [],
            'errors': []
        }

        try:
            with TimedOperation(logger, f"sync of {self.source} into {self.backups_root}"):
                async for rel in self.sync():
                    results['paths_processed'] += 1
                    if on_path is not None:
                        on_path(rel)
            results['status'] = 'completed'
        except SyncError as e:
            results['status'] = 'failed'
            results['errors'].append(str(e))
        finally:
            if self.plan is not None:
                results['snapshot'] = self.plan.snapshot_name
                results['previous_snapshot'] = self.plan.previous_name
                results['degraded'] = self.plan.degraded
            if self.report is not None:
                results['files_copied'] = self.report.copied
                results['entries_backed_up'] = self.report.backed_up
                results['files_unchanged'] = self.report.unchanged
                results['skipped'] = [
                    f"{entry.display_path}: {entry.error}" for entry in self.report.skipped
                ]
            results['end_time'] = datetime.now()
            results['duration'] = (results['end_time'] - start_time).total_seconds()
            if self._owns_fs:
                self.fs.close()

        if results['skipped']:
            logger.warning(f"{len(results['skipped'])} entries were skipped during the sync")
        return results

    def __repr__(self):
        return f"SnapshotManager(source={self.source}, backups_root={self.backups_root})"
