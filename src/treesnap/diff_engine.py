from __future__ import annotations

from pathlib import Path

from treesnap.ignore_engine import IgnoreEngine
from treesnap.models import Diff, EntryKind, TreeSnapshot
from treesnap.tree_lister import capture_snapshot


def diff_snapshots(authoritative: TreeSnapshot, mirror: TreeSnapshot) -> Diff:
    """Compare two listings by relative path.

    Files are always scheduled for copy, whether or not the mirror already
    has them: existence is the only thing compared. A path whose kind differs
    between the trees lands in ``to_delete`` as well as in ``to_create`` or
    ``to_copy``.
    """
    diff = Diff()

    for entry in mirror:
        authoritative_kind = authoritative.kind_of(entry.path)
        if authoritative_kind is None or authoritative_kind is not entry.kind:
            diff.to_delete.add(entry.path)

    for entry in authoritative:
        if entry.kind is EntryKind.DIRECTORY:
            if mirror.kind_of(entry.path) is not EntryKind.DIRECTORY:
                diff.to_create.add(entry.path)
        else:
            diff.to_copy.add(entry.path)

    return diff


def compute_mirror_diff(
    authoritative_root: Path,
    mirror_root: Path,
    ignore: IgnoreEngine | None = None,
) -> Diff:
    authoritative = capture_snapshot(authoritative_root, ignore)
    if mirror_root.is_dir():
        mirror = capture_snapshot(mirror_root, ignore)
    else:
        mirror = TreeSnapshot.empty(mirror_root)
    return diff_snapshots(authoritative, mirror)
