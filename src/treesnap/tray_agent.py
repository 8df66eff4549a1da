from __future__ import annotations

import argparse
import logging
from logging.handlers import RotatingFileHandler
import os
from pathlib import Path
import subprocess
import sys
import traceback

from PIL import Image, ImageDraw
import pystray

from treesnap.cli import parse_interval
from treesnap.errors import TreeSnapError
from treesnap.models import SyncStats
from treesnap.monitor import ChangeMonitor
from treesnap.run_service import exit_code_for
from treesnap.synchronizer import SyncOptions


def default_log_file() -> Path:
    return Path.home() / ".treesnap" / "agent.log"


class TrayAgent:
    def __init__(
        self,
        source: Path,
        destination: Path,
        interval: float,
        options: SyncOptions | None = None,
        log_file: Path | None = None,
    ) -> None:
        self.log_file = log_file or default_log_file()

        self.logger = logging.getLogger("treesnap.agent")
        self.logger.setLevel(logging.INFO)
        self.logger.propagate = False
        self._configure_logging()

        self.monitor = ChangeMonitor(
            source,
            destination,
            interval,
            options=options,
            logger=self.logger,
            on_pass=self._on_pass,
        )
        self.icon = pystray.Icon("treesnap-agent", self._create_icon(), "treesnap", self._build_menu())

    def _configure_logging(self) -> None:
        self.log_file.parent.mkdir(parents=True, exist_ok=True)
        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)

        file_handler = RotatingFileHandler(self.log_file, maxBytes=1_000_000, backupCount=3, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
        self.logger.addHandler(file_handler)

    def _create_icon(self) -> Image.Image:
        image = Image.new("RGBA", (64, 64), (28, 28, 30, 255))
        draw = ImageDraw.Draw(image)
        draw.rectangle((6, 14, 38, 50), outline=(120, 180, 255, 255), width=3)
        draw.rectangle((26, 6, 58, 42), fill=(120, 180, 255, 255))
        draw.rectangle((32, 12, 52, 36), fill=(28, 28, 30, 255))
        return image

    def _build_menu(self) -> pystray.Menu:
        return pystray.Menu(
            pystray.MenuItem(lambda _: self.monitor.state.describe(), None, enabled=False),
            pystray.MenuItem(f"Source: {self.monitor.source}", None, enabled=False),
            pystray.MenuItem(f"Every {self.monitor.interval:g}s", None, enabled=False),
            pystray.Menu.SEPARATOR,
            pystray.MenuItem("Sync at next check", self._menu_sync_now),
            pystray.MenuItem("Open snapshot", self._menu_open_destination),
            pystray.MenuItem("Open log", self._menu_open_log),
            pystray.Menu.SEPARATOR,
            pystray.MenuItem("Quit", self._menu_quit),
        )

    def run(self) -> int:
        self.logger.info("Agent starting")
        try:
            self.monitor.start()
        except TreeSnapError as exc:
            self.logger.error("Monitor failed to start: %s", exc)
            print(f"Monitor failed to start: {exc}", file=sys.stderr)
            return exit_code_for(exc)
        self.icon.run()
        self.monitor.join()
        return 0

    def stop(self) -> None:
        self.logger.info("Agent stopping")
        self.monitor.stop()
        self.icon.stop()

    def _notify(self, message: str) -> None:
        try:
            self.icon.notify(message, "treesnap")
        except Exception:
            self.logger.debug("Tray notification unavailable")

    def _on_pass(self, stats: SyncStats) -> None:
        try:
            self.icon.update_menu()
            if stats.failed:
                self._notify(f"Sync finished with {stats.failed} failure(s). See log for details.")
            elif stats.changes:
                self._notify(f"Sync complete: {stats.changes} change(s)")
        except Exception:
            self.logger.error("Tray update failed:\n%s", traceback.format_exc())

    def _menu_sync_now(self, icon: pystray.Icon, item: pystray.MenuItem) -> None:
        self.monitor.request_sync()
        self.logger.info("Sync requested from tray")

    def _menu_open_destination(self, icon: pystray.Icon, item: pystray.MenuItem) -> None:
        self._open_in_shell(self.monitor.destination)

    def _menu_open_log(self, icon: pystray.Icon, item: pystray.MenuItem) -> None:
        self._open_in_shell(self.log_file)

    def _menu_quit(self, icon: pystray.Icon, item: pystray.MenuItem) -> None:
        self.stop()

    def _open_in_shell(self, path: Path) -> None:
        try:
            if hasattr(os, "startfile"):
                os.startfile(str(path))  # type: ignore[attr-defined]
            else:
                opener = "open" if sys.platform == "darwin" else "xdg-open"
                subprocess.Popen([opener, str(path)])
        except OSError as exc:
            self.logger.error("Failed to open path %s: %s", path, exc)
            self._notify(f"Open failed: {path}")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="treesnap-agent", description="treesnap task tray agent")
    parser.add_argument("source", type=Path)
    parser.add_argument("destination", type=Path)
    parser.add_argument("interval", nargs="?", type=parse_interval, default=60.0)
    parser.add_argument("--exclude", action="append", default=[], metavar="PATTERN")
    parser.add_argument("--gitignore", action="store_true")
    parser.add_argument("--log-file", type=Path, default=None)
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    options = SyncOptions(excludes=args.exclude, use_gitignore=args.gitignore)
    try:
        agent = TrayAgent(args.source, args.destination, args.interval, options=options, log_file=args.log_file)
    except TreeSnapError as exc:
        print(f"Invalid arguments: {exc}", file=sys.stderr)
        return 1
    return agent.run()
