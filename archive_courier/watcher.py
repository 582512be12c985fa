"""Downloads-folder watcher for Archive Courier.

Uses the watchdog library to notice archives landing in the downloads
folder and blocks until one of them has stopped changing.  This only
delays the start of a run; the pipeline itself still processes a
single archive.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from pathlib import Path
from typing import Any

from watchdog.events import (
    FileCreatedEvent,
    FileModifiedEvent,
    FileMovedEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from archive_courier.finder import matches, newest_of

logger = logging.getLogger(__name__)


class _StabilityTracker:
    """Tracks files until they have been stable (unchanged) for a given duration."""

    def __init__(self, stable_seconds: int):
        self._stable_seconds = max(0, stable_seconds)
        # file_path -> (last_change_time, last_size)
        self._pending = {}
        self._lock = threading.Lock()
        self.changed = threading.Event()

    @property
    def stable_seconds(self) -> int:
        return self._stable_seconds

    def track(self, path: Path, since: float | None = None) -> None:
        """Register or update a file for stability tracking."""
        try:
            stat = path.stat()
        except OSError:
            return
        if not path.is_file():
            return
        with self._lock:
            self._pending[path] = (time.time() if since is None else since, stat.st_size)
        self.changed.set()
        logger.debug("Tracking %s (size=%d)", path, stat.st_size)

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def pop_stable(self) -> list[Path]:
        """Return (and forget) every tracked file that has settled."""
        stable: list[Path] = []
        now = time.time()
        with self._lock:
            for path, (last_seen, last_size) in list(self._pending.items()):
                try:
                    current_size = path.stat().st_size
                except OSError:
                    # File vanished — drop it
                    del self._pending[path]
                    continue
                if current_size != last_size:
                    # Still changing — update
                    self._pending[path] = (now, current_size)
                elif now - last_seen >= self._stable_seconds:
                    stable.append(path)
            for p in stable:
                del self._pending[p]
        return stable


class ArchiveEventHandler(FileSystemEventHandler):
    """Watchdog handler that feeds archive events into the stability tracker."""

    def __init__(self, tracker: _StabilityTracker, extensions: list[str]):
        super().__init__()
        self._tracker = tracker
        self._extensions = extensions

    def _maybe_track(self, path: str) -> None:
        if matches(os.path.basename(path), extensions=self._extensions):
            self._tracker.track(Path(path))

    def on_created(self, event: FileCreatedEvent) -> None:  # type: ignore[override]
        if not event.is_directory:
            self._maybe_track(event.src_path)

    def on_modified(self, event: FileModifiedEvent) -> None:  # type: ignore[override]
        if not event.is_directory:
            self._maybe_track(event.src_path)

    def on_moved(self, event: FileMovedEvent) -> None:  # type: ignore[override]
        # Browsers download to a temp name and rename on completion
        if not event.is_directory:
            self._maybe_track(event.dest_path)


class ArchiveWaiter:
    """Blocks until a stable archive is present in a folder.

    Usage:
        waiter = ArchiveWaiter(downloads, ["zip"], stable_seconds=5)
        archive = waiter.wait(timeout=600)   # None on timeout
    """

    def __init__(
        self,
        folder: str,
        extensions: list[str],
        stable_seconds: int = 5,
        poll_interval: float = 1.0,
    ):
        self.folder = folder
        self._extensions = extensions
        self._poll_interval = poll_interval
        self._tracker = _StabilityTracker(stable_seconds)
        self._handler = ArchiveEventHandler(self._tracker, extensions)
        self._observer: Any | None = None

    def _seed_existing(self) -> None:
        """Track archives already present, aged by their modification time."""
        for item in Path(self.folder).iterdir():
            if item.is_file() and matches(item.name, extensions=self._extensions):
                try:
                    self._tracker.track(item, since=item.stat().st_mtime)
                except OSError:
                    continue

    def wait(self, timeout: float | None = None) -> Path | None:
        """
        Return the newest archive once it is stable, or None on timeout.

        *timeout* of None or 0 waits forever.
        """
        if not os.path.isdir(self.folder):
            logger.error("Downloads folder does not exist: %s", self.folder)
            raise FileNotFoundError(f"Downloads folder does not exist: {self.folder}")

        observer = Observer()
        self._observer = observer
        observer.schedule(self._handler, self.folder, recursive=False)
        observer.start()
        logger.info(
            "Waiting for an archive in '%s' (stable=%ds, timeout=%s)",
            self.folder,
            self._tracker.stable_seconds,
            f"{timeout}s" if timeout else "none",
        )
        deadline = time.monotonic() + timeout if timeout else None
        try:
            self._seed_existing()
            while True:
                newest = newest_of(self._tracker.pop_stable())
                if newest is not None:
                    logger.info("Archive ready: %s", newest)
                    return newest
                if deadline is not None and time.monotonic() >= deadline:
                    logger.warning("No stable archive appeared within %ss.", timeout)
                    return None
                self._tracker.changed.wait(timeout=self._poll_interval)
                self._tracker.changed.clear()
        finally:
            self.stop()

    def stop(self) -> None:
        """Stop watching and release resources."""
        if self._observer:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None
            logger.debug("Watcher stopped.")
