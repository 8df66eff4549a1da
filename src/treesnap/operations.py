from __future__ import annotations

import logging
from pathlib import Path

from treesnap.diff_engine import compute_mirror_diff
from treesnap.errors import DestinationExistsError, InvalidArgumentError, RootNotADirectoryError
from treesnap.ignore_engine import build_ignore_engine
from treesnap.models import RESTORE_POLICY, SNAPSHOT_POLICY, SyncPolicy, SyncStats
from treesnap.synchronizer import SyncOptions, apply_diff
from treesnap.tree_lister import check_root


def validate_mapping(authoritative_root: Path, mirror_root: Path) -> None:
    authoritative_resolved = authoritative_root.resolve()
    mirror_resolved = mirror_root.resolve()

    if authoritative_resolved == mirror_resolved:
        raise InvalidArgumentError(f"Invalid mapping: source and destination are equal: {authoritative_root}")

    if mirror_resolved.is_relative_to(authoritative_resolved):
        raise InvalidArgumentError(
            f"Invalid mapping: destination is inside source, which can recurse: {mirror_root}"
        )

    if authoritative_resolved.is_relative_to(mirror_resolved):
        raise InvalidArgumentError(
            f"Invalid mapping: source is inside destination and would be deleted: {authoritative_root}"
        )


def _sync(
    authoritative_root: Path,
    mirror_root: Path,
    policy: SyncPolicy,
    options: SyncOptions | None,
    logger: logging.Logger | None,
) -> SyncStats:
    opts = options or SyncOptions()

    check_root(authoritative_root)
    validate_mapping(authoritative_root, mirror_root)
    if mirror_root.exists() and not mirror_root.is_dir():
        raise RootNotADirectoryError(f"Destination is not a directory: {mirror_root}")

    ignore = build_ignore_engine(authoritative_root, opts.excludes, use_gitignore=opts.use_gitignore)
    diff = compute_mirror_diff(authoritative_root, mirror_root, ignore)
    return apply_diff(diff, authoritative_root, mirror_root, policy, opts, logger)


def snapshot(
    source: Path,
    destination: Path,
    options: SyncOptions | None = None,
    logger: logging.Logger | None = None,
    fresh: bool = False,
) -> SyncStats:
    """Mirror ``source`` into ``destination``.

    An existing destination is merged into: new files are copied, every
    other file is overwritten and entries missing from ``source`` are
    removed. With ``fresh`` an existing destination is refused instead.
    """
    check_root(source)
    if fresh and (destination.exists() or destination.is_symlink()):
        raise DestinationExistsError(f"Destination directory already exists: {destination}")
    return _sync(source, destination, SNAPSHOT_POLICY, options, logger)


def copy_tree(
    source: Path,
    destination: Path,
    options: SyncOptions | None = None,
    logger: logging.Logger | None = None,
) -> SyncStats:
    return snapshot(source, destination, options=options, logger=logger, fresh=True)


def restore(
    snapshot_root: Path,
    target: Path,
    options: SyncOptions | None = None,
    logger: logging.Logger | None = None,
) -> SyncStats:
    """Restore ``target`` from ``snapshot_root``.

    Only files missing from ``target`` are copied back; files already in
    ``target`` keep their content. Entries of ``target`` that the snapshot
    does not have are deleted.
    """
    return _sync(snapshot_root, target, RESTORE_POLICY, options, logger)
