"""Helpers for building and inspecting directory trees in tests."""

import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Iterator, Optional, Union

# File contents by relative POSIX path; ``None`` marks an empty directory.
Tree = Dict[str, Optional[Union[str, bytes]]]

T0 = 1_600_000_000 * 10**9


def write_file(path: Path, content: Union[str, bytes], mtime_ns: Optional[int] = None) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, str):
        content = content.encode("utf-8")
    path.write_bytes(content)
    if mtime_ns is not None:
        os.utime(path, ns=(mtime_ns, mtime_ns))


def make_tree(root: Path, tree: Tree, mtime_ns: Optional[int] = T0) -> None:
    for rel, content in tree.items():
        path = root / rel
        if content is None:
            path.mkdir(parents=True, exist_ok=True)
        else:
            write_file(path, content, mtime_ns)


def read_tree(root: Path) -> Tree:
    """Inverse of ``make_tree``: files map to bytes, empty directories to ``None``."""
    result: Tree = {}
    for path in sorted(root.rglob("*")):
        rel = path.relative_to(root).as_posix()
        if path.is_dir():
            if not any(path.iterdir()):
                result[rel] = None
        else:
            result[rel] = path.read_bytes()
    return result


def as_bytes(tree: Tree) -> Tree:
    return {
        rel: content.encode("utf-8") if isinstance(content, str) else content
        for rel, content in tree.items()
    }


def fixed_clock(*instants: datetime):
    """A clock returning the given instants in order."""
    iterator: Iterator[datetime] = iter(instants)
    return lambda: next(iterator)


def instants(count: int, start: datetime = datetime(2024, 1, 1, tzinfo=timezone.utc)):
    return [start + timedelta(hours=index) for index in range(count)]


async def collect(stream):
    return [item async for item in stream]
