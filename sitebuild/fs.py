"""File tree helpers: lazy post-order walking and output directory preparation."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Tuple


@dataclass(frozen=True)
class WalkEntry:
    is_directory: bool
    path: Path


def _list_dir(directory: Path) -> List[os.DirEntry]:
    with os.scandir(directory) as it:
        return sorted(it, key=lambda entry: entry.name)


def walk_files(root: Path) -> Iterator[WalkEntry]:
    """Yield every file and directory below ``root``, depth-first.

    Files are yielded as they are encountered; a directory is yielded only
    after all of its descendants. ``root`` itself is not yielded. Raises
    ``OSError`` on first iteration if ``root`` cannot be opened.
    """
    root = Path(root)
    stack: List[Tuple[Path, Iterator[os.DirEntry]]] = [(root, iter(_list_dir(root)))]
    while stack:
        directory, entries = stack[-1]
        entry = next(entries, None)
        if entry is None:
            stack.pop()
            if stack:
                yield WalkEntry(is_directory=True, path=directory)
            continue
        if entry.is_dir(follow_symlinks=False):
            child = Path(entry.path)
            stack.append((child, iter(_list_dir(child))))
        else:
            yield WalkEntry(is_directory=False, path=Path(entry.path))


def truncate_dir(root: Path) -> None:
    """Delete everything inside ``root`` without deleting ``root`` itself."""
    for entry in walk_files(root):
        if entry.is_directory:
            entry.path.rmdir()
        else:
            entry.path.unlink()


def prepare_output_dir(root: Path) -> None:
    """Leave ``root`` as an empty directory, reusing it when it already is one."""
    root = Path(root)
    if root.is_dir() and not root.is_symlink():
        truncate_dir(root)
        return
    # Anything else at this path (plain file, symlink) is replaced.
    if root.is_symlink() or root.exists():
        root.unlink()
    root.mkdir(parents=True)


def write_atomic(path: Path, data: bytes) -> None:
    """Write ``data`` to ``path`` through a sibling temp file so readers never see a partial file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f".{path.name}.tmp")
    try:
        tmp.write_bytes(data)
        os.replace(tmp, path)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise


def copy_atomic(source: Path, destination: Path) -> None:
    write_atomic(destination, Path(source).read_bytes())


__all__ = [
    "WalkEntry",
    "copy_atomic",
    "prepare_output_dir",
    "truncate_dir",
    "walk_files",
    "write_atomic",
]
