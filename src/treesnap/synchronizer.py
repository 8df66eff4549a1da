from __future__ import annotations

from dataclasses import dataclass, field
import logging
from pathlib import Path
import shutil
import tempfile
from typing import Callable

from treesnap.errors import CopyFailedError, CreateFailedError, DeleteFailedError, EntryError
from treesnap.models import Diff, SyncPolicy, SyncStats


@dataclass(slots=True)
class SyncOptions:
    dry_run: bool = False
    continue_on_error: bool = True
    excludes: list[str] = field(default_factory=list)
    use_gitignore: bool = False


def _safe_copy(source_file: Path, destination_file: Path) -> None:
    destination_file.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(delete=False, dir=str(destination_file.parent)) as tmp:
        tmp_path = Path(tmp.name)
    try:
        shutil.copyfile(source_file, tmp_path)
        tmp_path.replace(destination_file)
    finally:
        if tmp_path.exists():
            tmp_path.unlink(missing_ok=True)


def _blocked(rel_path: Path, kept: set[Path]) -> bool:
    return rel_path in kept or any(parent in kept for parent in rel_path.parents)


def _remove(path: Path) -> str | None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
        return "directory"
    if path.exists() or path.is_symlink():
        path.unlink()
        return "file"
    return None


class _Pass:
    def __init__(
        self,
        mirror_root: Path,
        options: SyncOptions,
        log: logging.Logger,
    ) -> None:
        self.mirror_root = mirror_root
        self.options = options
        self.log = log
        self.stats = SyncStats()

    def attempt(
        self,
        error_type: type[EntryError],
        rel_path: Path,
        operation: Callable[[], object],
    ) -> tuple[bool, object]:
        try:
            return True, operation()
        except OSError as exc:
            error = error_type(self.mirror_root / rel_path, exc)
            self.stats.record_failure(error.action, rel_path, exc)
            self.log.error("%s", error)
            if not self.options.continue_on_error:
                raise error from exc
            return False, None

    def delete(self, rel_path: Path) -> None:
        target = self.mirror_root / rel_path
        if self.options.dry_run:
            self.log.info("Would delete: %s", target)
            self.stats.deleted += 1
            return
        ok, removed = self.attempt(DeleteFailedError, rel_path, lambda: _remove(target))
        if ok and removed:
            self.stats.deleted += 1
            self.log.info("Deleted %s: %s", removed, target)


def apply_diff(
    diff: Diff,
    authoritative_root: Path,
    mirror_root: Path,
    policy: SyncPolicy,
    options: SyncOptions | None = None,
    logger: logging.Logger | None = None,
) -> SyncStats:
    """Bring ``mirror_root`` into agreement with ``authoritative_root``.

    Kind conflicts are removed first (only when the policy may overwrite),
    then directories are created, files copied and the remaining extraneous
    entries deleted deepest first. A failing entry is logged and recorded in
    the returned stats; the pass carries on unless ``continue_on_error`` is
    off.
    """
    opts = options or SyncOptions()
    log = logger or logging.getLogger("treesnap.sync")
    run = _Pass(mirror_root, opts, log)
    stats = run.stats

    if not mirror_root.exists():
        if opts.dry_run:
            log.info("Would create directory: %s", mirror_root)
            stats.created += 1
        else:
            ok, _ = run.attempt(
                CreateFailedError, Path("."), lambda: mirror_root.mkdir(parents=True, exist_ok=True)
            )
            if not ok:
                return stats
            stats.created += 1
            log.info("Created directory: %s", mirror_root)

    conflicts = diff.conflicts
    if policy.overwrite_existing:
        for rel_path in diff.deletions_deepest_first(conflicts):
            run.delete(rel_path)
        kept_conflicts: set[Path] = set()
    else:
        kept_conflicts = conflicts

    for rel_path in sorted(diff.to_create, key=lambda path: (len(path.parts), path.as_posix())):
        target = mirror_root / rel_path
        if _blocked(rel_path, kept_conflicts):
            stats.skipped += 1
            log.debug("Kept existing entry: %s", target)
            continue
        if opts.dry_run:
            stats.created += 1
            log.info("Would create directory: %s", target)
            continue
        ok, _ = run.attempt(CreateFailedError, rel_path, lambda: target.mkdir(parents=True, exist_ok=True))
        if ok:
            stats.created += 1
            log.info("Created directory: %s", target)

    for rel_path in sorted(diff.to_copy, key=lambda path: path.as_posix()):
        source_file = authoritative_root / rel_path
        target = mirror_root / rel_path
        existed = target.exists() or target.is_symlink()
        if _blocked(rel_path, kept_conflicts) or (existed and not policy.overwrite_existing):
            stats.skipped += 1
            log.debug("Kept existing file: %s", target)
            continue
        if opts.dry_run:
            stats.copied += 1
            log.info("Would copy file: %s", target)
            continue
        ok, _ = run.attempt(CopyFailedError, rel_path, lambda: _safe_copy(source_file, target))
        if ok:
            stats.copied += 1
            log.info("%s file: %s", "Updated" if existed else "Copied", target)

    if policy.delete_extraneous:
        for rel_path in diff.deletions_deepest_first(diff.to_delete - conflicts):
            run.delete(rel_path)

    return stats
