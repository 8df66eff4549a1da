from __future__ import annotations

import argparse
import importlib
import logging
import math
from pathlib import Path
import sys
from typing import TextIO

from treesnap.config import get_job, load_config
from treesnap.errors import ConfigError, TreeSnapError
from treesnap.models import SyncStats
from treesnap.monitor import ChangeMonitor
from treesnap.operations import restore, snapshot
from treesnap.run_service import EXIT_FAILURE, EXIT_SUCCESS, exit_code_for, run_jobs
from treesnap.synchronizer import SyncOptions


QUIT_COMMANDS = {"q", "quit", "exit"}


class _Parser(argparse.ArgumentParser):
    def error(self, message: str) -> None:  # type: ignore[override]
        self.print_usage(sys.stderr)
        self.exit(EXIT_FAILURE, f"{self.prog}: error: {message}\n")


class _MaxLevelFilter(logging.Filter):
    def __init__(self, max_level: int) -> None:
        super().__init__()
        self.max_level = max_level

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno < self.max_level


def parse_interval(value: str) -> float:
    try:
        interval = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"interval must be a number of seconds: {value!r}")
    if not math.isfinite(interval) or interval <= 0:
        raise argparse.ArgumentTypeError(f"interval must be a finite number greater than zero: {value!r}")
    return interval


def _add_filter_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--exclude",
        action="append",
        default=[],
        metavar="PATTERN",
        help="Gitignore-style pattern to leave out of both trees (repeatable)",
    )
    parser.add_argument("--gitignore", action="store_true", help="Also honor .gitignore files in the source")
    parser.add_argument("--dry-run", action="store_true")


def _build_parser() -> argparse.ArgumentParser:
    parser = _Parser(prog="treesnap", description="Incremental directory snapshots and restores")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug messages")
    subparsers = parser.add_subparsers(dest="command", required=True, parser_class=_Parser)

    snapshot_parser = subparsers.add_parser(
        "snapshot", help="Mirror a source tree, once or continuously when an interval is given"
    )
    snapshot_parser.add_argument("source", type=Path)
    snapshot_parser.add_argument("destination", type=Path)
    snapshot_parser.add_argument("interval", nargs="?", type=parse_interval, help="Polling interval in seconds")
    snapshot_parser.add_argument(
        "--fresh", action="store_true", help="Refuse to write into an existing destination"
    )
    _add_filter_arguments(snapshot_parser)

    restore_parser = subparsers.add_parser("restore", help="Restore a target tree from a snapshot")
    restore_parser.add_argument("snapshot", type=Path)
    restore_parser.add_argument("target", type=Path)
    _add_filter_arguments(restore_parser)

    run_parser = subparsers.add_parser("run", help="Run the jobs of a jobs file once")
    run_parser.add_argument("--config", required=True, type=Path)
    run_parser.add_argument("--job", help="Run only one job by name")
    run_parser.add_argument("--dry-run", action="store_true")

    validate_parser = subparsers.add_parser("validate-config", help="Validate a jobs file")
    validate_parser.add_argument("--config", required=True, type=Path)

    list_parser = subparsers.add_parser("list", help="List jobs and their source/destination mappings")
    list_parser.add_argument("--config", required=True, type=Path)
    list_parser.add_argument("--job", help="List only one job by name")

    agent_parser = subparsers.add_parser("agent", help="Monitor from the task tray")
    agent_parser.add_argument("source", type=Path)
    agent_parser.add_argument("destination", type=Path)
    agent_parser.add_argument("interval", nargs="?", type=parse_interval, default=60.0)
    agent_parser.add_argument("--exclude", action="append", default=[], metavar="PATTERN")
    agent_parser.add_argument("--gitignore", action="store_true")
    agent_parser.add_argument("--log-file", type=Path, default=None)

    return parser


def _configure_logging(verbose: bool) -> None:
    logger = logging.getLogger("treesnap")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    formatter = logging.Formatter("%(message)s")

    out_handler = logging.StreamHandler(sys.stdout)
    out_handler.setFormatter(formatter)
    out_handler.addFilter(_MaxLevelFilter(logging.WARNING))
    logger.addHandler(out_handler)

    err_handler = logging.StreamHandler(sys.stderr)
    err_handler.setFormatter(formatter)
    err_handler.setLevel(logging.WARNING)
    logger.addHandler(err_handler)

    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.propagate = False


def _print_stats(operation: str, source: Path, target: Path, stats: SyncStats) -> None:
    print(
        f"[{operation}] {source} -> {target} | created={stats.created} copied={stats.copied} "
        f"skipped={stats.skipped} deleted={stats.deleted} failed={stats.failed}"
    )


def _wait_for_quit(stream: TextIO) -> None:
    for line in stream:
        if line.strip().lower() in QUIT_COMMANDS:
            return


def cmd_snapshot(
    source: Path,
    destination: Path,
    interval: float | None,
    options: SyncOptions,
    fresh: bool,
) -> int:
    if interval is None:
        try:
            stats = snapshot(source, destination, options=options, fresh=fresh)
        except TreeSnapError as exc:
            print(f"Snapshot failed: {exc}", file=sys.stderr)
            return exit_code_for(exc)
        _print_stats("snapshot", source, destination, stats)
        return EXIT_SUCCESS

    if fresh:
        print("--fresh cannot be combined with an interval", file=sys.stderr)
        return EXIT_FAILURE

    change_monitor = ChangeMonitor(source, destination, interval, options=options)
    try:
        change_monitor.start()
    except TreeSnapError as exc:
        print(f"Monitor failed to start: {exc}", file=sys.stderr)
        return exit_code_for(exc)

    print(f"Monitoring {source} every {interval:g}s. Type 'q' and press Enter to stop.")
    try:
        _wait_for_quit(sys.stdin)
    except KeyboardInterrupt:
        pass
    finally:
        change_monitor.stop()
        change_monitor.join()
    print("Monitoring stopped.")
    return EXIT_SUCCESS


def cmd_restore(snapshot_root: Path, target: Path, options: SyncOptions) -> int:
    try:
        stats = restore(snapshot_root, target, options=options)
    except TreeSnapError as exc:
        print(f"Restore failed: {exc}", file=sys.stderr)
        return exit_code_for(exc)
    _print_stats("restore", snapshot_root, target, stats)
    return EXIT_SUCCESS


def cmd_run(config_path: Path, job_name: str | None, dry_run: bool) -> int:
    exit_code, summary = run_jobs(config_path, job_name=job_name, dry_run=dry_run)
    print(
        f"Ran {summary.processed_jobs} job(s): created={summary.created} copied={summary.copied} "
        f"skipped={summary.skipped} deleted={summary.deleted} failed={summary.failed} "
        f"failedJobs={summary.failed_jobs}"
    )
    return exit_code


def cmd_validate(config_path: Path) -> int:
    try:
        config = load_config(config_path)
    except ConfigError as exc:
        print(f"Invalid config: {exc}", file=sys.stderr)
        return EXIT_FAILURE

    print(f"Valid config: {config_path} ({len(config.jobs)} job(s))")
    for job in config.jobs:
        print(
            f"  - job={job.name} "
            f"operation={job.operation} "
            f"excludes={len(job.excludes)} "
            f"useGitignore={str(job.use_gitignore).lower()}"
        )
    return EXIT_SUCCESS


def cmd_list(config_path: Path, job_name: str | None) -> int:
    try:
        config = load_config(config_path)
        jobs = get_job(config, job_name)
    except ConfigError as exc:
        print(f"Invalid config: {exc}", file=sys.stderr)
        return EXIT_FAILURE

    for job in jobs:
        print(f"job: {job.name} ({job.operation})")
        print(f"  - {job.source} -> {job.destination}")
    return EXIT_SUCCESS


def cmd_agent(
    source: Path,
    destination: Path,
    interval: float,
    excludes: list[str],
    use_gitignore: bool,
    log_file: Path | None,
) -> int:
    try:
        tray_agent = importlib.import_module("treesnap.tray_agent")
    except ModuleNotFoundError as exc:
        missing = exc.name or "unknown"
        print(
            (
                f"Failed to load tray agent dependency: {missing}. "
                "Reinstall dependencies in your active environment with: pip install -e ."
            ),
            file=sys.stderr,
        )
        return EXIT_FAILURE
    except Exception as exc:
        print(f"Failed to load tray agent: {exc}", file=sys.stderr)
        return EXIT_FAILURE

    argv = [str(source), str(destination), str(interval)]
    for pattern in excludes:
        argv.extend(["--exclude", pattern])
    if use_gitignore:
        argv.append("--gitignore")
    if log_file is not None:
        argv.extend(["--log-file", str(log_file)])
    return int(tray_agent.main(argv))


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    if args.command == "snapshot":
        return cmd_snapshot(
            source=args.source,
            destination=args.destination,
            interval=args.interval,
            options=SyncOptions(dry_run=args.dry_run, excludes=args.exclude, use_gitignore=args.gitignore),
            fresh=args.fresh,
        )
    if args.command == "restore":
        return cmd_restore(
            snapshot_root=args.snapshot,
            target=args.target,
            options=SyncOptions(dry_run=args.dry_run, excludes=args.exclude, use_gitignore=args.gitignore),
        )
    if args.command == "run":
        return cmd_run(config_path=args.config, job_name=args.job, dry_run=args.dry_run)
    if args.command == "validate-config":
        return cmd_validate(args.config)
    if args.command == "list":
        return cmd_list(config_path=args.config, job_name=args.job)
    if args.command == "agent":
        return cmd_agent(
            source=args.source,
            destination=args.destination,
            interval=args.interval,
            excludes=args.exclude,
            use_gitignore=args.gitignore,
            log_file=args.log_file,
        )

    parser.print_help()
    return EXIT_FAILURE


if __name__ == "__main__":
    raise SystemExit(main())
