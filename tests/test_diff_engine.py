from pathlib import Path

from treesnap.diff_engine import compute_mirror_diff, diff_snapshots
from treesnap.models import Diff, EntryKind, PathEntry, TreeSnapshot


def _write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def _tree(root: Path, **kinds: EntryKind) -> TreeSnapshot:
    return TreeSnapshot(root, [PathEntry(Path(name.replace("__", "/")), kind) for name, kind in kinds.items()])


def test_missing_mirror_means_everything_is_created_or_copied(tmp_path: Path) -> None:
    source = tmp_path / "src"
    _write(source / "a.txt", "a")
    _write(source / "sub" / "b.txt", "b")

    diff = compute_mirror_diff(source, tmp_path / "missing")

    assert diff.to_create == {Path("sub")}
    assert diff.to_copy == {Path("a.txt"), Path("sub/b.txt")}
    assert diff.to_delete == set()


def test_files_present_in_both_trees_are_still_copied(tmp_path: Path) -> None:
    source = tmp_path / "src"
    mirror = tmp_path / "mirror"
    _write(source / "same.txt", "new")
    _write(mirror / "same.txt", "old")

    diff = compute_mirror_diff(source, mirror)

    assert diff.to_copy == {Path("same.txt")}
    assert diff.to_delete == set()


def test_existing_directories_are_not_recreated(tmp_path: Path) -> None:
    source = tmp_path / "src"
    mirror = tmp_path / "mirror"
    (source / "sub").mkdir(parents=True)
    (mirror / "sub").mkdir(parents=True)

    diff = compute_mirror_diff(source, mirror)

    assert diff.is_empty


def test_mirror_only_entries_are_deleted_regardless_of_kind(tmp_path: Path) -> None:
    source = tmp_path / "src"
    mirror = tmp_path / "mirror"
    source.mkdir()
    _write(mirror / "stale.txt", "x")
    _write(mirror / "old" / "deep.txt", "x")

    diff = compute_mirror_diff(source, mirror)

    assert diff.to_delete == {Path("stale.txt"), Path("old"), Path("old/deep.txt")}
    assert diff.deletions_deepest_first() == [Path("old/deep.txt"), Path("old"), Path("stale.txt")]


def test_kind_change_is_both_deleted_and_recreated() -> None:
    authoritative = _tree(Path("a"), x=EntryKind.DIRECTORY, y=EntryKind.FILE)
    mirror = _tree(Path("b"), x=EntryKind.FILE, y=EntryKind.DIRECTORY, y__inner=EntryKind.FILE)

    diff = diff_snapshots(authoritative, mirror)

    assert diff.to_create == {Path("x")}
    assert diff.to_copy == {Path("y")}
    assert diff.to_delete == {Path("x"), Path("y"), Path("y/inner")}
    assert diff.conflicts == {Path("x"), Path("y")}


def test_empty_diff_reports_empty() -> None:
    assert Diff().is_empty
