from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterator

from treesnap.errors import RootNotADirectoryError, RootNotFoundError
from treesnap.ignore_engine import IgnoreEngine
from treesnap.models import EntryKind, PathEntry, TreeSnapshot


_log = logging.getLogger("treesnap.tree")


def check_root(root: Path) -> None:
    if not root.exists():
        raise RootNotFoundError(f"Directory does not exist: {root}")
    if not root.is_dir():
        raise RootNotADirectoryError(f"Not a directory: {root}")


def _log_walk_error(exc: OSError) -> None:
    _log.warning("Cannot list %s: %s", exc.filename, exc.strerror or exc)


def list_tree(root: Path, ignore: IgnoreEngine | None = None) -> Iterator[PathEntry]:
    """Yield every file and directory below ``root`` as a relative PathEntry.

    The root itself is not reported. Symlinked directories are listed but
    not descended into.
    """
    check_root(root)

    for root_str, dirs, files in os.walk(root, topdown=True, onerror=_log_walk_error, followlinks=False):
        root_rel = Path(root_str).relative_to(root)

        kept_dirs: list[str] = []
        for dir_name in dirs:
            rel_path = root_rel / dir_name
            if ignore is not None and ignore.is_ignored(rel_path, is_dir=True):
                continue
            kept_dirs.append(dir_name)
            yield PathEntry(rel_path, EntryKind.DIRECTORY)
        dirs[:] = kept_dirs

        for file_name in files:
            rel_path = root_rel / file_name
            if ignore is not None and ignore.is_ignored(rel_path):
                continue
            yield PathEntry(rel_path, EntryKind.FILE)


def capture_snapshot(root: Path, ignore: IgnoreEngine | None = None) -> TreeSnapshot:
    return TreeSnapshot(root, list_tree(root, ignore))


def capture_paths(root: Path, ignore: IgnoreEngine | None = None) -> frozenset[str]:
    return frozenset(entry.path.as_posix() for entry in list_tree(root, ignore))
