from pathlib import Path

from treesnap.ignore_engine import IgnoreEngine, _prefix_pattern, build_ignore_engine


def _write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def test_empty_engine_ignores_nothing() -> None:
    engine = IgnoreEngine([])

    assert engine.patterns == []
    assert not engine.is_ignored(Path("anything.tmp"))


def test_directory_patterns_only_match_directories() -> None:
    engine = IgnoreEngine(["build/"])

    assert engine.is_ignored(Path("build"), is_dir=True)
    assert engine.is_ignored(Path("pkg/build"), is_dir=True)
    assert not engine.is_ignored(Path("build"))


def test_prefix_pattern_scopes_nested_rules() -> None:
    assert _prefix_pattern("sub", "*.log") == "sub/*.log"
    assert _prefix_pattern("sub", "/only-here.txt") == "sub/only-here.txt"
    assert _prefix_pattern("sub", "!keep.log") == "!sub/keep.log"
    assert _prefix_pattern("", "*.log") == "*.log"
    assert _prefix_pattern("sub", "# comment") == "# comment"


def test_build_ignore_engine_reads_gitignore_only_when_asked(tmp_path: Path) -> None:
    _write(tmp_path / ".gitignore", "*.log\n")

    assert build_ignore_engine(tmp_path).patterns == []
    assert build_ignore_engine(tmp_path, use_gitignore=True).is_ignored(Path("x.log"))
    assert build_ignore_engine(tmp_path, excludes=["*.bak"]).is_ignored(Path("a/b.bak"))


def test_nested_gitignore_in_dot_directory_keeps_its_own_scope(tmp_path: Path) -> None:
    _write(tmp_path / ".cfg" / ".gitignore", "*.log\n")

    engine = build_ignore_engine(tmp_path, use_gitignore=True)

    assert engine.patterns == [".cfg/*.log"]
    assert engine.is_ignored(Path(".cfg/x.log"))
    assert not engine.is_ignored(Path("cfg/keep.log"))
