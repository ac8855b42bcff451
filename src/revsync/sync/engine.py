"""Recursive tree diff and merge between a source and a destination directory.

The engine walks both trees side by side. For every directory level the
children of both sides are classified by ``merge_children`` into entries that
exist only in the source (copied), only in the destination (moved into the
backup directory) or on both sides (compared and, where needed, backed up
and replaced). Every classified entry is processed by its own task; the
paths touched are streamed back to the caller as they complete.

A failure on one entry is recorded in the report and abandons only that
entry; failures listing or statting the two roots abort the run.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import AsyncIterator, Awaitable, Iterable, List, Optional, Sequence, Tuple

from ..exceptions import EntryTypeMismatchError, SyncError
from ..fs.local import EntryStat, LocalFileSystem
from ..fs.mkdir import DirectoryCreator

logger = logging.getLogger(__name__)

RelPath = Tuple[str, ...]

_DONE = object()


class MergeAction(str, Enum):
    """Operation chosen for a child entry by the merge-diff."""
    NEW = "new"
    BACKUP = "backup"
    SINGLE = "single"


@dataclass(frozen=True)
class SkippedEntry:
    """An entry abandoned during the run together with the reason."""
    path: RelPath
    error: Exception

    @property
    def display_path(self) -> str:
        return format_rel_path(self.path)


@dataclass
class SyncReport:
    """Aggregate counters for one sync run."""
    copied: int = 0
    backed_up: int = 0
    unchanged: int = 0
    skipped: List[SkippedEntry] = field(default_factory=list)

    @property
    def has_skipped(self) -> bool:
        return bool(self.skipped)


def format_rel_path(rel: RelPath) -> str:
    return "/".join(rel) if rel else "."


def is_up_to_date(source: EntryStat, destination: EntryStat) -> bool:
    """Whether a destination file already holds the current source content."""
    return source.size == destination.size and source.modified_ns <= destination.modified_ns


def merge_children(left: Iterable[str], right: Iterable[str]) -> List[Tuple[MergeAction, str]]:
    """Classify the children of a source (left) and destination (right) directory.

    Both name lists are sorted and walked with two cursors. Names present on
    both sides yield ``SINGLE``, source-only names ``NEW`` and
    destination-only names ``BACKUP``. Each name appears exactly once in the
    result.
    """
    left = sorted(left)
    right = sorted(right)
    result = []
    idx_left = idx_right = 0

    while idx_left < len(left) and idx_right < len(right):
        name_left = left[idx_left]
        name_right = right[idx_right]
        if name_left == name_right:
            result.append((MergeAction.SINGLE, name_left))
            idx_left += 1
            idx_right += 1
        elif name_left < name_right:
            result.append((MergeAction.NEW, name_left))
            idx_left += 1
        else:
            result.append((MergeAction.BACKUP, name_right))
            idx_right += 1

    result.extend((MergeAction.NEW, name) for name in left[idx_left:])
    result.extend((MergeAction.BACKUP, name) for name in right[idx_right:])
    return result


async def fan_out(operations: Sequence[Awaitable[None]]) -> None:
    """Run operations concurrently and wait for all of them.

    On the first failure the remaining operations are cancelled and the
    failure is re-raised. Cancelling the caller cancels every operation.
    """
    tasks = [asyncio.ensure_future(operation) for operation in operations]
    if not tasks:
        return

    try:
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
    except asyncio.CancelledError:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

    if pending:
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

    error = None
    for task in done:
        if task.cancelled():
            continue
        task_error = task.exception()
        if task_error is not None and error is None:
            error = task_error
    if error is not None:
        raise error


class SyncEngine:
    """Bring ``destination`` in line with ``source``, moving replaced entries to ``backup``."""

    def __init__(self, fs: LocalFileSystem, source: Path, destination: Path, backup: Path,
                 directories: Optional[DirectoryCreator] = None):
        """Initialize the engine.

        Args:
            fs: Filesystem abstraction
            source: Root of the tree to mirror
            destination: Root of the mirror, updated in place
            backup: Root receiving replaced and removed destination entries
            directories: Run-scoped directory creator (a fresh one when omitted)
        """
        self.fs = fs
        self.source = Path(source)
        self.destination = Path(destination)
        self.backup = Path(backup)
        self.directories = directories or DirectoryCreator(fs)
        self.report = SyncReport()
        self._queue: Optional[asyncio.Queue] = None

    async def sync(self) -> AsyncIterator[RelPath]:
        """Synchronize the trees, yielding each relative path as it is processed.

        Fatal errors are raised from the iterator once the walk has stopped.
        Closing the iterator early cancels the remaining work; filesystem
        calls already issued are not rolled back.
        """
        if self._queue is not None:
            raise RuntimeError("SyncEngine.sync() can only be consumed once")
        queue: asyncio.Queue = asyncio.Queue()
        self._queue = queue

        walker = asyncio.ensure_future(self._walk())
        try:
            while True:
                item = await queue.get()
                if item is _DONE:
                    break
                yield item
            await walker
        finally:
            if not walker.done():
                walker.cancel()
                await asyncio.gather(walker, return_exceptions=True)

    async def _walk(self) -> None:
        try:
            await asyncio.gather(
                self.directories.ensure_directory(self.destination),
                self.directories.ensure_directory(self.backup),
            )
            await self._sync_recurse(())
        finally:
            self._queue.put_nowait(_DONE)

    def _emit(self, rel: RelPath) -> None:
        self._queue.put_nowait(rel)

    def _source_path(self, rel: RelPath) -> Path:
        return self.source.joinpath(*rel)

    def _destination_path(self, rel: RelPath) -> Path:
        return self.destination.joinpath(*rel)

    def _backup_path(self, rel: RelPath) -> Path:
        return self.backup.joinpath(*rel)

    def _dispatch(self, action: MergeAction, rel: RelPath) -> Awaitable[None]:
        if action is MergeAction.SINGLE:
            return self._sync_single(rel)
        if action is MergeAction.NEW:
            return self._sync_new(rel)
        return self._backup(rel)

    async def _sync_recurse(self, rel: RelPath) -> None:
        logger.debug(f"Comparing directory {format_rel_path(rel)}")
        left, right = await asyncio.gather(
            self.fs.list_directory(self._source_path(rel)),
            self.fs.list_directory(self._destination_path(rel)),
        )
        await fan_out([
            self._dispatch(action, rel + (name,))
            for action, name in merge_children(left, right)
        ])

    async def _sync_single(self, rel: RelPath) -> None:
        try:
            source_stat, destination_stat = await asyncio.gather(
                self.fs.stat(self._source_path(rel)),
                self.fs.stat(self._destination_path(rel)),
            )

            if source_stat.is_directory and destination_stat.is_directory:
                await self._sync_recurse(rel)
                return

            if source_stat.is_file and destination_stat.is_file and is_up_to_date(source_stat, destination_stat):
                self.report.unchanged += 1
                return

            # The old entry must be out of the way before the new one is written.
            await self._move_to_backup(rel)
        except SyncError as e:
            self._skip(rel, f"Failed to update {format_rel_path(rel)}", e)
            return

        await self._sync_new(rel)

    async def _sync_new(self, rel: RelPath) -> None:
        try:
            entry = await self.fs.stat(self._source_path(rel))
            if entry.is_directory:
                await self.directories.ensure_directory(self._destination_path(rel))
                self.report.copied += 1
                self._emit(rel)
                children = await self.fs.list_directory(self._source_path(rel))
                await fan_out([self._sync_new(rel + (name,)) for name in sorted(children)])
            elif entry.is_file:
                await self.fs.copy_file(self._source_path(rel), self._destination_path(rel))
                self.report.copied += 1
                self._emit(rel)
            else:
                logger.warning(f"Skipping special file {format_rel_path(rel)}")
                error = EntryTypeMismatchError(
                    f"Neither a file nor a directory: {self._source_path(rel)}", self._source_path(rel)
                )
                self.report.skipped.append(SkippedEntry(rel, error))
        except SyncError as e:
            self._skip(rel, f"Failed to copy {format_rel_path(rel)}", e)

    async def _backup(self, rel: RelPath) -> None:
        try:
            await self._move_to_backup(rel)
        except SyncError as e:
            self._skip(rel, f"Failed to back up {format_rel_path(rel)}", e)
            return
        self._emit(rel)

    async def _move_to_backup(self, rel: RelPath) -> None:
        await self.directories.ensure_directory(self._backup_path(rel[:-1]))
        await self.fs.move(self._destination_path(rel), self._backup_path(rel))
        self.report.backed_up += 1
        logger.debug(f"Moved {format_rel_path(rel)} to backup")

    def _skip(self, rel: RelPath, message: str, error: SyncError) -> None:
        logger.error(f"{message}, skipping: {error}")
        self.report.skipped.append(SkippedEntry(rel, error))
