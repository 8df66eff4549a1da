from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterable, Iterator


class EntryKind(str, Enum):
    FILE = "file"
    DIRECTORY = "directory"


@dataclass(frozen=True, slots=True)
class PathEntry:
    path: Path
    kind: EntryKind

    @property
    def is_dir(self) -> bool:
        return self.kind is EntryKind.DIRECTORY


class TreeSnapshot:
    """Entries found under ``root`` at one instant, keyed by relative path."""

    def __init__(self, root: Path, entries: Iterable[PathEntry] = ()) -> None:
        self.root = root
        self._kinds: dict[Path, EntryKind] = {}
        for entry in entries:
            self._kinds[entry.path] = entry.kind

    @classmethod
    def empty(cls, root: Path) -> "TreeSnapshot":
        return cls(root)

    @property
    def paths(self) -> frozenset[Path]:
        return frozenset(self._kinds)

    def kind_of(self, path: Path) -> EntryKind | None:
        return self._kinds.get(path)

    def entries(self) -> Iterator[PathEntry]:
        for path, kind in self._kinds.items():
            yield PathEntry(path, kind)

    def __iter__(self) -> Iterator[PathEntry]:
        return self.entries()


@dataclass(slots=True)
class Diff:
    to_create: set[Path] = field(default_factory=set)
    to_copy: set[Path] = field(default_factory=set)
    to_delete: set[Path] = field(default_factory=set)

    @property
    def conflicts(self) -> set[Path]:
        """Paths that change kind: deleted from the mirror, then recreated."""
        return self.to_delete & (self.to_create | self.to_copy)

    @property
    def is_empty(self) -> bool:
        return not (self.to_create or self.to_copy or self.to_delete)

    def deletions_deepest_first(self, paths: Iterable[Path] | None = None) -> list[Path]:
        selected = self.to_delete if paths is None else paths
        return sorted(selected, key=lambda path: (-len(path.parts), path.as_posix()))


@dataclass(frozen=True, slots=True)
class SyncPolicy:
    name: str
    overwrite_existing: bool
    delete_extraneous: bool = True


SNAPSHOT_POLICY = SyncPolicy(name="snapshot", overwrite_existing=True)
RESTORE_POLICY = SyncPolicy(name="restore", overwrite_existing=False)


@dataclass(frozen=True, slots=True)
class EntryFailure:
    action: str
    path: Path
    message: str


@dataclass(slots=True)
class SyncStats:
    created: int = 0
    copied: int = 0
    skipped: int = 0
    deleted: int = 0
    failed: int = 0
    failures: list[EntryFailure] = field(default_factory=list)

    @property
    def changes(self) -> int:
        return self.created + self.copied + self.deleted

    def record_failure(self, action: str, path: Path, exc: BaseException) -> EntryFailure:
        failure = EntryFailure(action=action, path=path, message=str(exc))
        self.failures.append(failure)
        self.failed += 1
        return failure
