from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import json
import yaml

from treesnap.errors import ConfigError


OPERATIONS = ("snapshot", "restore")


@dataclass(slots=True)
class JobConfig:
    name: str
    source: Path
    destination: Path
    operation: str = "snapshot"
    excludes: list[str] = field(default_factory=list)
    use_gitignore: bool = False
    fresh: bool = False
    continue_on_error: bool = True


@dataclass(slots=True)
class AppConfig:
    jobs: list[JobConfig]


def _as_path(value: Any, field_name: str) -> Path:
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"{field_name} must be a non-empty string path")
    return Path(value).expanduser()


def _as_bool(value: Any, field_name: str, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    raise ConfigError(f"{field_name} must be a boolean")


def _as_list_of_strings(value: Any, field_name: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list) or any(not isinstance(item, str) for item in value):
        raise ConfigError(f"{field_name} must be a list of strings")
    return [item for item in value if item.strip()]


def _load_raw_config(config_path: Path) -> dict[str, Any]:
    if not config_path.exists():
        raise ConfigError(f"Config file does not exist: {config_path}")

    suffix = config_path.suffix.lower()
    text = config_path.read_text(encoding="utf-8")
    try:
        if suffix in {".yml", ".yaml"}:
            loaded = yaml.safe_load(text)
        elif suffix == ".json":
            loaded = json.loads(text)
        else:
            raise ConfigError("Config file must be .yaml/.yml or .json")
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Cannot parse {config_path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise ConfigError("Config root must be an object")
    return loaded


def _parse_job(raw_job: Any, index: int) -> JobConfig:
    if not isinstance(raw_job, dict):
        raise ConfigError(f"jobs[{index}] must be an object")

    name = raw_job.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ConfigError(f"jobs[{index}].name must be a non-empty string")

    operation = raw_job.get("operation", "snapshot")
    if operation not in OPERATIONS:
        raise ConfigError(f"jobs[{index}].operation must be one of: {', '.join(OPERATIONS)}")

    fresh = _as_bool(raw_job.get("fresh"), f"jobs[{index}].fresh", default=False)
    if fresh and operation != "snapshot":
        raise ConfigError(f"jobs[{index}].fresh only applies to snapshot jobs")

    return JobConfig(
        name=name,
        source=_as_path(raw_job.get("source"), f"jobs[{index}].source"),
        destination=_as_path(raw_job.get("destination"), f"jobs[{index}].destination"),
        operation=operation,
        excludes=_as_list_of_strings(raw_job.get("excludes"), f"jobs[{index}].excludes"),
        use_gitignore=_as_bool(raw_job.get("useGitignore"), f"jobs[{index}].useGitignore", default=False),
        fresh=fresh,
        continue_on_error=_as_bool(
            raw_job.get("continueOnError"), f"jobs[{index}].continueOnError", default=True
        ),
    )


def load_config(config_path: Path) -> AppConfig:
    raw = _load_raw_config(config_path)
    raw_jobs = raw.get("jobs")
    if not isinstance(raw_jobs, list) or not raw_jobs:
        raise ConfigError("Config must contain non-empty 'jobs' list")

    jobs: list[JobConfig] = []
    names: set[str] = set()

    for index, raw_job in enumerate(raw_jobs):
        job = _parse_job(raw_job, index)
        if job.name in names:
            raise ConfigError(f"Duplicate job name: {job.name}")
        names.add(job.name)
        jobs.append(job)

    return AppConfig(jobs=jobs)


def get_job(config: AppConfig, job_name: str | None) -> list[JobConfig]:
    if not job_name:
        return config.jobs
    matched = [job for job in config.jobs if job.name == job_name]
    if not matched:
        raise ConfigError(f"No job named '{job_name}' found")
    return matched
