from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import logging

from treesnap.config import JobConfig, get_job, load_config
from treesnap.errors import ConfigError, InvalidArgumentError, TreeSnapError
from treesnap.models import SyncStats
from treesnap.operations import restore, snapshot
from treesnap.synchronizer import SyncOptions


EXIT_SUCCESS = 0
EXIT_FAILURE = 1


def exit_code_for(exc: TreeSnapError) -> int:
    """Only usage-level errors change the exit code; a missing or invalid
    root is reported and the run still exits with ``EXIT_SUCCESS``."""
    return EXIT_FAILURE if isinstance(exc, InvalidArgumentError) else EXIT_SUCCESS


@dataclass(slots=True)
class RunSummary:
    created: int = 0
    copied: int = 0
    skipped: int = 0
    deleted: int = 0
    failed: int = 0
    processed_jobs: int = 0
    failed_jobs: int = 0

    def absorb(self, stats: SyncStats) -> None:
        self.created += stats.created
        self.copied += stats.copied
        self.skipped += stats.skipped
        self.deleted += stats.deleted
        self.failed += stats.failed
        self.processed_jobs += 1


def options_for_job(job: JobConfig, dry_run: bool = False) -> SyncOptions:
    return SyncOptions(
        dry_run=dry_run,
        continue_on_error=job.continue_on_error,
        excludes=list(job.excludes),
        use_gitignore=job.use_gitignore,
    )


def run_job(job: JobConfig, dry_run: bool = False, logger: logging.Logger | None = None) -> SyncStats:
    options = options_for_job(job, dry_run=dry_run)
    if job.operation == "restore":
        return restore(job.source, job.destination, options=options, logger=logger)
    return snapshot(job.source, job.destination, options=options, logger=logger, fresh=job.fresh)


def run_jobs(
    config_path: Path,
    job_name: str | None = None,
    dry_run: bool = False,
    logger: logging.Logger | None = None,
) -> tuple[int, RunSummary]:
    """Run the selected jobs of a jobs file once, in file order.

    Entry failures inside a job are counted but do not change the exit
    code. A job whose roots are missing or invalid is reported and the
    remaining jobs still run; only an invalid config or path mapping makes
    the run exit with ``EXIT_FAILURE``.
    """
    log = logger or logging.getLogger("treesnap.run")

    try:
        config = load_config(config_path)
        jobs = get_job(config, job_name)
    except ConfigError as exc:
        log.error("Invalid config: %s", exc)
        return EXIT_FAILURE, RunSummary()

    summary = RunSummary()
    exit_code = EXIT_SUCCESS

    for job in jobs:
        try:
            stats = run_job(job, dry_run=dry_run, logger=logger)
        except TreeSnapError as exc:
            summary.failed_jobs += 1
            exit_code = max(exit_code, exit_code_for(exc))
            log.error("[%s] %s failed for %s: %s", job.name, job.operation, job.source, exc)
            continue

        summary.absorb(stats)
        log.info(
            "[%s] %s %s -> %s | created=%s copied=%s skipped=%s deleted=%s failed=%s",
            job.name,
            job.operation,
            job.source,
            job.destination,
            stats.created,
            stats.copied,
            stats.skipped,
            stats.deleted,
            stats.failed,
        )

    return exit_code, summary
