"""Exception hierarchy for sync, rotation and restore failures."""

from pathlib import Path
from typing import Optional, Union


class SyncError(Exception):
    """Base class for all revsync errors."""

    def __init__(self, message: str, path: Optional[Union[str, Path]] = None):
        super().__init__(message)
        self.path = Path(path) if path is not None else None


class EntryNotFoundError(SyncError):
    """An entry expected on disk does not exist."""


class EntryExistsError(SyncError):
    """An entry already exists where a new one was to be created."""


class EntryTypeMismatchError(SyncError):
    """An entry has a different kind than the operation requires."""


class SyncIOError(SyncError):
    """Generic I/O failure while listing, copying, moving or stating."""


class DirectoryCreationError(SyncIOError):
    """A directory could not be created for a reason other than already existing."""


class RotationError(SyncError):
    """The snapshot rotation could not be carried out."""


class SnapshotNotFoundError(RotationError):
    """No snapshot with a decodable name exists in the backups root."""


class RestoreError(SyncError):
    """A snapshot could not be reconstructed."""
