import json
from pathlib import Path

import pytest

from treesnap.config import get_job, load_config
from treesnap.errors import ConfigError


def test_load_config_reads_yaml_jobs_with_defaults(tmp_path: Path) -> None:
    config_file = tmp_path / "jobs.yaml"
    config_file.write_text(
        """
jobs:
  - name: docs
    source: /data/docs
    destination: /backups/docs
  - name: restore-docs
    operation: restore
    source: /backups/docs
    destination: /data/docs
    excludes: ["*.tmp"]
    useGitignore: true
    continueOnError: false
""".strip(),
        encoding="utf-8",
    )

    loaded = load_config(config_file)

    assert [job.name for job in loaded.jobs] == ["docs", "restore-docs"]
    first, second = loaded.jobs
    assert first.operation == "snapshot"
    assert first.source == Path("/data/docs")
    assert first.destination == Path("/backups/docs")
    assert first.excludes == []
    assert first.use_gitignore is False
    assert first.fresh is False
    assert first.continue_on_error is True
    assert second.operation == "restore"
    assert second.excludes == ["*.tmp"]
    assert second.use_gitignore is True
    assert second.continue_on_error is False


def test_load_config_reads_json(tmp_path: Path) -> None:
    config_file = tmp_path / "jobs.json"
    config_file.write_text(
        json.dumps({"jobs": [{"name": "j", "source": "/a", "destination": "/b", "fresh": True}]}),
        encoding="utf-8",
    )

    loaded = load_config(config_file)

    assert loaded.jobs[0].fresh is True


def test_load_config_expands_home(tmp_path: Path) -> None:
    config_file = tmp_path / "jobs.yaml"
    config_file.write_text(
        "jobs:\n  - name: j\n    source: ~/docs\n    destination: /b\n",
        encoding="utf-8",
    )

    loaded = load_config(config_file)

    assert loaded.jobs[0].source == Path.home() / "docs"


@pytest.mark.parametrize(
    "body, message",
    [
        ("jobs: []", "non-empty 'jobs' list"),
        ("- just a list", "Config root must be an object"),
        ("jobs:\n  - name: j\n    destination: /b", "jobs[0].source"),
        ("jobs:\n  - name: j\n    source: /a\n    destination: /b\n    operation: copy", "jobs[0].operation"),
        (
            "jobs:\n  - name: j\n    source: /a\n    destination: /b\n    operation: restore\n    fresh: true",
            "fresh only applies",
        ),
        ("jobs:\n  - name: j\n    source: /a\n    destination: /b\n    useGitignore: yes please", "boolean"),
        ("jobs:\n  - name: j\n    source: /a\n    destination: /b\n    excludes: '*.tmp'", "list of strings"),
        (
            "jobs:\n  - name: j\n    source: /a\n    destination: /b\n"
            "  - name: j\n    source: /c\n    destination: /d",
            "Duplicate job name: j",
        ),
        ("jobs: [unclosed", "Cannot parse"),
    ],
)
def test_load_config_rejects_invalid_files(tmp_path: Path, body: str, message: str) -> None:
    config_file = tmp_path / "jobs.yaml"
    config_file.write_text(body, encoding="utf-8")

    with pytest.raises(ConfigError) as excinfo:
        load_config(config_file)

    assert message in str(excinfo.value)


def test_load_config_rejects_unknown_suffix_and_missing_file(tmp_path: Path) -> None:
    config_file = tmp_path / "jobs.toml"
    config_file.write_text("jobs = []", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_config(config_file)
    with pytest.raises(ConfigError):
        load_config(tmp_path / "missing.yaml")


def test_get_job_filters_by_name(tmp_path: Path) -> None:
    config_file = tmp_path / "jobs.yaml"
    config_file.write_text(
        "jobs:\n  - name: a\n    source: /a\n    destination: /b\n"
        "  - name: b\n    source: /c\n    destination: /d\n",
        encoding="utf-8",
    )
    config = load_config(config_file)

    assert [job.name for job in get_job(config, None)] == ["a", "b"]
    assert [job.name for job in get_job(config, "b")] == ["b"]
    with pytest.raises(ConfigError):
        get_job(config, "c")
