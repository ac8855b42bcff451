"""Snapshot directory naming.

A snapshot is named after the UTC instant it was created at, written as an
ISO-8601 timestamp with millisecond precision in which every ``:`` is
replaced by ``_`` so the name is legal on all common filesystems::

    2024-03-01T12_30_05.123Z

Existing backup chains depend on this format; it must stay parseable.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional

from ..exceptions import SnapshotNotFoundError, SyncError
from ..fs.local import LocalFileSystem

logger = logging.getLogger(__name__)

NAME_FORMAT = "%Y-%m-%dT%H:%M:%S.{millis:03d}Z"
PARSE_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


@dataclass(frozen=True)
class SnapshotInfo:
    """A snapshot directory found in the backups root."""
    name: str
    created_at: datetime


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SnapshotNamer:
    """Encode and decode snapshot names and locate the newest snapshot."""

    def __init__(self, fs: LocalFileSystem, clock: Callable[[], datetime] = utc_now):
        """Initialize the namer.

        Args:
            fs: Filesystem used to list the backups root
            clock: Callable returning the current instant
        """
        self.fs = fs
        self.clock = clock

    @staticmethod
    def encode(instant: datetime) -> str:
        """Encode an instant into a snapshot name.

        Naive datetimes are taken to be UTC; sub-millisecond precision is
        truncated.
        """
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        instant = instant.astimezone(timezone.utc)
        text = instant.strftime(NAME_FORMAT).format(millis=instant.microsecond // 1000)
        return text.replace(":", "_")

    @staticmethod
    def decode(name: str) -> datetime:
        """Decode a snapshot name into an aware UTC datetime.

        Raises:
            ValueError: If the name is not a snapshot name
        """
        text = name.replace("_", ":")
        fraction = text.rpartition(".")[2]
        # Only the exact millisecond form produced by ``encode`` is accepted.
        if len(fraction) != 4:
            raise ValueError(f"Not a snapshot name: {name!r}")
        instant = datetime.strptime(text, PARSE_FORMAT)
        return instant.replace(tzinfo=timezone.utc)

    @classmethod
    def try_decode(cls, name: str) -> Optional[datetime]:
        try:
            return cls.decode(name)
        except ValueError:
            return None

    def new_name(self) -> str:
        """Name for a snapshot created now."""
        return self.encode(self.clock())

    async def list_snapshots(self, root: Path) -> List[SnapshotInfo]:
        """List the snapshots in ``root``, newest first.

        Entries whose names do not decode, and entries that are not
        directories, are ignored.
        """
        snapshots = []
        for name in await self.fs.list_directory(root):
            created_at = self.try_decode(name)
            if created_at is None or not await self._is_directory(root / name):
                logger.debug(f"Ignoring foreign entry in backups root: {name}")
                continue
            snapshots.append(SnapshotInfo(name, created_at))

        snapshots.sort(key=lambda info: info.created_at, reverse=True)
        return snapshots

    async def _is_directory(self, path: Path) -> bool:
        try:
            return (await self.fs.stat(path)).is_directory
        except SyncError:
            return False

    async def latest_name(self, root: Path) -> str:
        """Return the name of the newest snapshot in ``root``.

        Raises:
            SnapshotNotFoundError: If no entry in ``root`` is a snapshot
        """
        snapshots = await self.list_snapshots(root)
        if not snapshots:
            raise SnapshotNotFoundError(f"No snapshot found in {root}", root)
        return snapshots[0].name
