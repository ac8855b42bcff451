"""Shared fixtures for the revsync test suite."""

import sys
from pathlib import Path

import pytest

# Add src to Python path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from revsync.fs.local import LocalFileSystem  # noqa: E402


@pytest.fixture
def fs():
    """A local filesystem with a small private thread pool."""
    filesystem = LocalFileSystem(max_concurrency=4)
    yield filesystem
    filesystem.close()


@pytest.fixture
def source(tmp_path):
    path = tmp_path / "source"
    path.mkdir()
    return path


@pytest.fixture
def backups_root(tmp_path):
    return tmp_path / "backups"
