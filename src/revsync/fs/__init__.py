"""Filesystem access and directory creation."""

from .local import EntryKind, EntryStat, LocalFileSystem
from .mkdir import CreationResult, CreationStatus, DirectoryCreator

__all__ = [
    "EntryKind",
    "EntryStat",
    "LocalFileSystem",
    "CreationResult",
    "CreationStatus",
    "DirectoryCreator",
]
