from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import logging
import math
from pathlib import Path
import threading
from typing import Callable

from treesnap.errors import InvalidArgumentError, TreeSnapError
from treesnap.ignore_engine import build_ignore_engine
from treesnap.models import SyncStats
from treesnap.operations import snapshot, validate_mapping
from treesnap.synchronizer import SyncOptions
from treesnap.tree_lister import capture_paths, check_root


@dataclass(slots=True)
class MonitorState:
    baseline: frozenset[str] = frozenset()
    passes: int = 0
    last_stats: SyncStats | None = None
    last_error: str | None = None
    last_pass_at: datetime | None = None

    def describe(self) -> str:
        if self.last_error:
            return f"Last error: {self.last_error}"
        if self.last_pass_at is None or self.last_stats is None:
            return "Waiting for first pass"
        return (
            f"Last pass {self.last_pass_at:%H:%M:%S}: "
            f"{self.last_stats.changes} change(s), {self.last_stats.failed} failed"
        )


def _paths_differ(baseline: frozenset[str], candidate: frozenset[str]) -> bool:
    if len(baseline) != len(candidate):
        return True
    for path in candidate:
        if path not in baseline:
            return True
    return False


def _as_interval(value: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidArgumentError(f"Interval must be a number of seconds, got {value!r}")
    if not math.isfinite(value) or value <= 0:
        raise InvalidArgumentError(f"Interval must be a finite number greater than zero, got {value}")
    return float(value)


class ChangeMonitor:
    """Keep ``destination`` mirrored from ``source`` by polling.

    Every ``interval`` seconds the source is listed again and compared with
    the path set captured after the previous pass. Only additions and
    removals count as a change: a file edited in place is picked up by the
    next pass some other change triggers, or by ``request_sync``.

    The stop event is checked once per iteration, after the wait. A pass
    that is already running is never interrupted.
    """

    def __init__(
        self,
        source: Path,
        destination: Path,
        interval: float,
        options: SyncOptions | None = None,
        logger: logging.Logger | None = None,
        stop_event: threading.Event | None = None,
        on_pass: Callable[[SyncStats], None] | None = None,
    ) -> None:
        self.source = source
        self.destination = destination
        self.interval = _as_interval(interval)
        self.options = options or SyncOptions()
        self.logger = logger or logging.getLogger("treesnap.monitor")
        self.on_pass = on_pass
        self.state = MonitorState()

        self._stop_event = stop_event or threading.Event()
        self._sync_requested = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def check(self) -> None:
        check_root(self.source)
        validate_mapping(self.source, self.destination)

    def start(self) -> None:
        if self.is_running:
            raise RuntimeError("Monitor is already running")
        self.check()
        self._thread = threading.Thread(target=self.run, name="treesnap-monitor", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()

    def join(self, timeout: float | None = None) -> bool:
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def request_sync(self) -> None:
        self._sync_requested.set()

    def run(self) -> None:
        log = self.logger
        log.info("Monitoring %s -> %s every %ss", self.source, self.destination, self.interval)

        self._sync_pass("initial")
        try:
            self.state.baseline = self._scan()
        except (TreeSnapError, OSError) as exc:
            self.state.last_error = str(exc)
            log.error("Cannot scan %s: %s", self.source, exc)

        while not self._stop_event.wait(self.interval):
            try:
                candidate = self._scan()
            except (TreeSnapError, OSError) as exc:
                self.state.last_error = str(exc)
                log.error("Cannot scan %s: %s", self.source, exc)
                continue

            requested = self._sync_requested.is_set()
            self._sync_requested.clear()
            if not requested and not _paths_differ(self.state.baseline, candidate):
                continue

            self._sync_pass("requested" if requested else "change")
            self.state.baseline = candidate

        log.info("Monitoring stopped: %s", self.source)

    def _scan(self) -> frozenset[str]:
        ignore = build_ignore_engine(
            self.source, self.options.excludes, use_gitignore=self.options.use_gitignore
        )
        return capture_paths(self.source, ignore)

    def _sync_pass(self, trigger: str) -> SyncStats | None:
        log = self.logger
        log.debug("Sync pass started (%s)", trigger)
        try:
            stats = snapshot(self.source, self.destination, options=self.options, logger=self.logger)
        except (TreeSnapError, OSError) as exc:
            self.state.last_error = str(exc)
            log.error("Sync pass failed (%s): %s", trigger, exc)
            return None

        self.state.passes += 1
        self.state.last_stats = stats
        self.state.last_pass_at = datetime.now()
        self.state.last_error = None
        log.info(
            "Pass %s (%s): created=%s copied=%s deleted=%s skipped=%s failed=%s",
            self.state.passes,
            trigger,
            stats.created,
            stats.copied,
            stats.deleted,
            stats.skipped,
            stats.failed,
        )
        if self.on_pass is not None:
            self.on_pass(stats)
        return stats


def monitor(
    source: Path,
    destination: Path,
    interval: float,
    stop_event: threading.Event,
    options: SyncOptions | None = None,
    logger: logging.Logger | None = None,
) -> MonitorState:
    """Run the monitor loop in the calling thread until ``stop_event`` is set."""
    change_monitor = ChangeMonitor(
        source, destination, interval, options=options, logger=logger, stop_event=stop_event
    )
    change_monitor.check()
    change_monitor.run()
    return change_monitor.state
