"""Deduplicated recursive directory creation.

A ``DirectoryCreator`` belongs to exactly one run. Every directory requested
during that run, together with its ancestor chain, is created by at most one
``create_directory`` call; later and concurrent requesters share the outcome
of that single call.
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Optional, Union

from ..exceptions import (
    DirectoryCreationError,
    EntryExistsError,
    EntryTypeMismatchError,
    SyncError,
)
from .local import LocalFileSystem

logger = logging.getLogger(__name__)


class CreationStatus(str, Enum):
    """Outcome of a directory creation request."""
    CREATED = "created"
    EXISTED = "existed"
    FAILED = "failed"


@dataclass(frozen=True)
class CreationResult:
    """Result of ``DirectoryCreator.ensure``.

    ``EXISTED`` is the tolerated already-exists outcome; ``FAILED`` carries the
    underlying cause and must be handled by the caller.
    """
    path: Path
    status: CreationStatus
    error: Optional[SyncError] = None

    @property
    def ok(self) -> bool:
        return self.status is not CreationStatus.FAILED

    def raise_for_status(self) -> "CreationResult":
        """Raise ``DirectoryCreationError`` if the creation failed."""
        if self.status is CreationStatus.FAILED:
            raise DirectoryCreationError(
                f"Could not create directory {self.path}: {self.error}", self.path
            ) from self.error
        return self


class DirectoryCreator:
    """Run-scoped ``mkdir -p`` that never issues the same creation twice."""

    def __init__(self, fs: LocalFileSystem):
        """Initialize the creator.

        Args:
            fs: Filesystem used to issue the creation calls
        """
        self.fs = fs
        self._pending: Dict[Path, "asyncio.Future[CreationResult]"] = {}

    def ensure(self, path: Union[str, Path]) -> "asyncio.Future[CreationResult]":
        """Make sure ``path`` and all its ancestors exist.

        The returned future never raises; inspect the ``CreationResult`` or
        call ``raise_for_status`` on it.
        """
        path = Path(os.path.abspath(path))
        # Lookup and registration happen without yielding to the event loop.
        future = self._pending.get(path)
        if future is None:
            future = asyncio.ensure_future(self._create(path))
            self._pending[path] = future
        return future

    async def ensure_directory(self, path: Union[str, Path]) -> CreationResult:
        """Await ``ensure(path)`` and raise if the directory could not be created."""
        result = await asyncio.shield(self.ensure(path))
        return result.raise_for_status()

    async def _create(self, path: Path) -> CreationResult:
        parent = path.parent
        if parent != path and parent.parent != parent:
            # Shielded: a cancelled requester must not cancel the shared creation.
            parent_result = await asyncio.shield(self.ensure(parent))
            if not parent_result.ok:
                return CreationResult(path, CreationStatus.FAILED, parent_result.error)

        try:
            await self.fs.create_directory(path)
        except EntryExistsError as e:
            return await self._check_existing(path, e)
        except SyncError as e:
            logger.error(f"Failed to create directory {path}: {e}")
            return CreationResult(path, CreationStatus.FAILED, e)

        logger.debug(f"Created directory {path}")
        return CreationResult(path, CreationStatus.CREATED)

    async def _check_existing(self, path: Path, exists_error: EntryExistsError) -> CreationResult:
        try:
            entry = await self.fs.stat(path)
        except SyncError as e:
            return CreationResult(path, CreationStatus.FAILED, e)

        if entry.is_directory:
            return CreationResult(path, CreationStatus.EXISTED)

        error = EntryTypeMismatchError(f"Not a directory: {path}", path)
        error.__cause__ = exists_error
        return CreationResult(path, CreationStatus.FAILED, error)
