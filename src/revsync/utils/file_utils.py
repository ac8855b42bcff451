"""File utility functions."""

from pathlib import Path
from typing import Tuple


class FileHelper:
    """Helper class for presenting files and paths."""

    @staticmethod
    def format_file_size(size_bytes: int) -> str:
        """Format file size in human readable format.

        Args:
            size_bytes: Size in bytes

        Returns:
            Formatted size string
        """
        if size_bytes == 0:
            return "0 B"

        size_names = ["B", "KB", "MB", "GB", "TB", "PB"]
        i = 0

        while size_bytes >= 1024 and i < len(size_names) - 1:
            size_bytes /= 1024.0
            i += 1

        return f"{size_bytes:.1f} {size_names[i]}"

    @staticmethod
    def tree_size(root: Path) -> Tuple[int, int]:
        """Count entries and total file bytes below ``root``.

        Args:
            root: Directory to measure

        Returns:
            Tuple of (entry count, total size in bytes)
        """
        entries = 0
        total = 0
        for path in root.rglob("*"):
            entries += 1
            if path.is_file():
                total += path.stat().st_size
        return entries, total
