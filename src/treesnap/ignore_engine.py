from __future__ import annotations

from pathlib import Path
from typing import Iterable

import pathspec


def _read_ignore_lines(path: Path) -> list[str]:
    try:
        return path.read_text(encoding="utf-8").splitlines()
    except OSError:
        return []


def _prefix_pattern(prefix: str, pattern: str) -> str:
    if not pattern or pattern.startswith("#"):
        return pattern

    negate = pattern.startswith("!")
    core = pattern[1:] if negate else pattern

    if core.startswith("/"):
        mapped = f"{prefix}{core}" if prefix else core
    else:
        mapped = f"{prefix}/{core}" if prefix else core

    return f"!{mapped}" if negate else mapped


def _collect_nested_gitignore_patterns(root: Path) -> list[str]:
    patterns: list[str] = []
    for gitignore in root.rglob(".gitignore"):
        rel_parent = gitignore.parent.relative_to(root)
        rel_prefix = "" if rel_parent == Path(".") else rel_parent.as_posix()
        for line in _read_ignore_lines(gitignore):
            if not line.strip():
                continue
            patterns.append(_prefix_pattern(rel_prefix, line))
    return patterns


class IgnoreEngine:
    def __init__(self, patterns: Iterable[str]) -> None:
        self.patterns = [pattern for pattern in patterns if pattern.strip()]
        self._spec = pathspec.PathSpec.from_lines("gitignore", self.patterns)

    def is_ignored(self, relative_path: Path, is_dir: bool = False) -> bool:
        if not self.patterns:
            return False
        unix_path = relative_path.as_posix()
        candidate = f"{unix_path}/" if is_dir and not unix_path.endswith("/") else unix_path
        return self._spec.match_file(candidate)


def build_ignore_engine(
    root: Path,
    excludes: Iterable[str] = (),
    use_gitignore: bool = False,
) -> IgnoreEngine:
    """Exclusion rules for one pass, read relative to the authoritative ``root``.

    ``.gitignore`` files are only consulted when ``use_gitignore`` is set, and
    only those found under ``root``. The same engine is applied to both trees
    so an excluded path is neither copied nor deleted.
    """
    patterns: list[str] = list(excludes)
    if use_gitignore and root.is_dir():
        patterns.extend(_collect_nested_gitignore_patterns(root))
    return IgnoreEngine(patterns)
