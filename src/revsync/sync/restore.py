"""Reconstruction of past source states from the snapshot chain."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from ..exceptions import EntryNotFoundError, RestoreError, SnapshotNotFoundError
from ..fs.local import EntryStat, LocalFileSystem
from ..fs.mkdir import DirectoryCreator
from .engine import RelPath, fan_out
from .snapshots import SnapshotNamer

logger = logging.getLogger(__name__)


@dataclass
class RestoreResult:
    """Outcome of a restore."""
    snapshot: str
    target: Path
    layers: List[str] = field(default_factory=list)
    entries_overlaid: int = 0


class SnapshotRestorer:
    """Rebuild the tree of a snapshot by overlaying the chain.

    The newest snapshot is a full mirror; every older one holds the entries
    its successor replaced or removed. Starting from a copy of the newest
    snapshot and overlaying each older one down to the requested snapshot,
    older entries winning, yields the tree as of that snapshot's run.
    Entries created after that run are not recorded anywhere in the chain and
    therefore remain in the result.
    """

    def __init__(self, backups_root: Path, fs: LocalFileSystem,
                 namer: Optional[SnapshotNamer] = None):
        self.backups_root = Path(backups_root).absolute()
        self.fs = fs
        self.namer = namer or SnapshotNamer(fs)

    async def restore(self, snapshot_name: str, target: Path) -> RestoreResult:
        """Reconstruct ``snapshot_name`` into ``target``.

        Raises:
            SnapshotNotFoundError: If there is no such snapshot
            RestoreError: If ``target`` exists and is not an empty directory
        """
        target = Path(target).absolute()
        snapshots = await self.namer.list_snapshots(self.backups_root)
        names = [info.name for info in snapshots]
        if snapshot_name not in names:
            raise SnapshotNotFoundError(f"No snapshot named {snapshot_name} in {self.backups_root}",
                                        self.backups_root / snapshot_name)

        await self._prepare_target(target)

        chain = names[:names.index(snapshot_name) + 1]
        result = RestoreResult(snapshot=snapshot_name, target=target, layers=list(chain))

        logger.info(f"Restoring {snapshot_name} from {len(chain)} snapshot(s) into {target}")
        await self.fs.copy_tree(self.backups_root / chain[0], target)
        for name in chain[1:]:
            logger.debug(f"Overlaying snapshot {name}")
            layer = _Overlay(self.fs, self.backups_root / name, target)
            await layer.apply(())
            result.entries_overlaid += layer.written

        return result

    async def _prepare_target(self, target: Path) -> None:
        try:
            entry = await self.fs.stat(target)
        except EntryNotFoundError:
            await DirectoryCreator(self.fs).ensure_directory(target.parent)
            return

        if not entry.is_directory or await self.fs.list_directory(target):
            raise RestoreError(f"Restore target is not an empty directory: {target}", target)
        # copy_tree creates the directory itself
        await self.fs.remove(target)


class _Overlay:
    """Copy one snapshot over the target, replacing whatever is in the way."""

    def __init__(self, fs: LocalFileSystem, layer: Path, target: Path):
        self.fs = fs
        self.layer = layer
        self.target = target
        # One creator per layer: within a layer each path has a single kind.
        self.directories = DirectoryCreator(fs)
        self.written = 0

    async def apply(self, rel: RelPath) -> None:
        names = await self.fs.list_directory(self.layer.joinpath(*rel))
        await fan_out([self._apply_entry(rel + (name,)) for name in sorted(names)])

    async def _existing(self, path: Path) -> Optional[EntryStat]:
        try:
            return await self.fs.stat(path)
        except EntryNotFoundError:
            return None

    async def _apply_entry(self, rel: RelPath) -> None:
        source = self.layer.joinpath(*rel)
        destination = self.target.joinpath(*rel)
        entry = await self.fs.stat(source)
        existing = await self._existing(destination)

        if entry.is_directory:
            if existing is not None and not existing.is_directory:
                await self.fs.remove(destination)
            await self.directories.ensure_directory(destination)
            self.written += 1
            await self.apply(rel)
        elif entry.is_file:
            if existing is not None and existing.is_directory:
                await self.fs.remove(destination)
            await self.fs.copy_file(source, destination)
            self.written += 1
        else:
            logger.warning(f"Not restoring special file {source}")
