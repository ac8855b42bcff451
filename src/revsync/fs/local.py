"""Asynchronous access to the local filesystem.

Every blocking call is offloaded to a thread pool and guarded by a semaphore,
so the number of filesystem operations in flight never exceeds
``max_concurrency`` no matter how wide the synchronized tree is.
"""

import asyncio
import concurrent.futures
import errno
import functools
import os
import shutil
import stat as stat_module
import tempfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, List, Optional

from ..exceptions import (
    EntryExistsError,
    EntryNotFoundError,
    EntryTypeMismatchError,
    SyncError,
    SyncIOError,
)


class EntryKind(str, Enum):
    """Kind of a filesystem entry."""
    FILE = "file"
    DIRECTORY = "directory"
    OTHER = "other"


@dataclass(frozen=True)
class EntryStat:
    """The subset of ``os.stat`` results the sync algorithm relies on."""
    kind: EntryKind
    size: int
    modified_ns: int

    @property
    def is_file(self) -> bool:
        return self.kind is EntryKind.FILE

    @property
    def is_directory(self) -> bool:
        return self.kind is EntryKind.DIRECTORY

    @classmethod
    def from_os_stat(cls, result: os.stat_result) -> "EntryStat":
        if stat_module.S_ISDIR(result.st_mode):
            kind = EntryKind.DIRECTORY
        elif stat_module.S_ISREG(result.st_mode):
            kind = EntryKind.FILE
        else:
            kind = EntryKind.OTHER
        return cls(kind=kind, size=result.st_size, modified_ns=result.st_mtime_ns)


def translate_os_error(error: OSError, path: Path) -> SyncError:
    """Map an ``OSError`` onto the revsync exception hierarchy."""
    message = f"{error.strerror or error}: {path}"
    if isinstance(error, FileNotFoundError):
        return EntryNotFoundError(message, path)
    if isinstance(error, FileExistsError):
        return EntryExistsError(message, path)
    if isinstance(error, (NotADirectoryError, IsADirectoryError)):
        return EntryTypeMismatchError(message, path)
    if error.errno == errno.ENOTEMPTY:
        return EntryExistsError(message, path)
    return SyncIOError(message, path)


class LocalFileSystem:
    """Async wrapper around ``os`` and ``shutil`` primitives."""

    def __init__(self, max_concurrency: int = 32,
                 executor: Optional[concurrent.futures.Executor] = None):
        """Initialize the filesystem.

        Args:
            max_concurrency: Maximum number of filesystem calls in flight
            executor: Executor running the blocking calls (a private
                thread pool sized to ``max_concurrency`` when omitted)
        """
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.max_concurrency = max_concurrency
        self._owns_executor = executor is None
        self._executor = executor or concurrent.futures.ThreadPoolExecutor(
            max_workers=max_concurrency,
            thread_name_prefix="RevsyncFS"
        )
        self._semaphore: Optional[asyncio.Semaphore] = None

    async def _call(self, path: Path, func: Callable[..., Any], *args) -> Any:
        # Created lazily so it binds to the loop that actually runs the sync.
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self.max_concurrency)
        async with self._semaphore:
            loop = asyncio.get_running_loop()
            try:
                return await loop.run_in_executor(self._executor, functools.partial(func, *args))
            except OSError as e:
                raise translate_os_error(e, path) from e

    async def list_directory(self, path: Path) -> List[str]:
        """List the names of the immediate children of ``path``."""
        return await self._call(path, os.listdir, path)

    async def stat(self, path: Path) -> EntryStat:
        """Stat ``path``, following symbolic links."""
        result = await self._call(path, os.stat, path)
        return EntryStat.from_os_stat(result)

    async def exists(self, path: Path) -> bool:
        return await self._call(path, os.path.lexists, path)

    async def copy_file(self, source: Path, destination: Path) -> None:
        """Copy a single file, preserving its modification time."""
        await self._call(source, shutil.copy2, source, destination)

    async def copy_tree(self, source: Path, destination: Path) -> None:
        """Copy a whole directory tree to a destination that does not exist yet."""
        await self._call(source, shutil.copytree, source, destination)

    async def move(self, source: Path, destination: Path) -> None:
        """Move an entry, falling back to copy and delete across devices."""
        await self._call(source, shutil.move, str(source), str(destination))

    async def rename(self, source: Path, destination: Path) -> None:
        """Rename an entry in place; fails rather than copying across devices."""
        await self._call(source, os.rename, source, destination)

    async def create_directory(self, path: Path) -> None:
        """Create a single directory whose parent already exists."""
        await self._call(path, os.mkdir, path)

    async def make_temp_directory(self, parent: Optional[Path] = None, prefix: str = "tmp") -> Path:
        """Create a fresh uniquely named directory in ``parent`` (the system temp dir when omitted)."""
        name = await self._call(parent or Path(tempfile.gettempdir()), tempfile.mkdtemp, "", prefix, parent)
        return Path(name)

    async def remove(self, path: Path) -> None:
        """Remove a file or a whole directory tree."""
        await self._call(path, _remove_entry, path)

    def close(self) -> None:
        """Shut down the private thread pool, if any."""
        if self._owns_executor:
            self._executor.shutdown(wait=True)


def _remove_entry(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()
