"""
File system watcher that revalidates a project when its sources change.

Editors often write a file several times per save, so changes are collected
and handed to the callback once the debounce window has passed.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .config import Project

logger = logging.getLogger(__name__)


class ManuscriptEventHandler(FileSystemEventHandler):
    """Collects changed manuscript and catalog files for debounced revalidation."""

    RELEVANT_EXTENSIONS = {".md", ".json"}
    DEBOUNCE_SECONDS = 1.0

    def __init__(self, on_change: Callable[[list[Path]], None], debounce: float | None = None):
        super().__init__()
        self.on_change = on_change
        self.debounce = self.DEBOUNCE_SECONDS if debounce is None else debounce
        # path -> time of the last event seen for it
        self.pending: dict[str, float] = {}

    def _is_relevant(self, path: str) -> bool:
        p = Path(path)
        if any(part.startswith(".") for part in p.parts):
            return False
        return p.suffix.lower() in self.RELEVANT_EXTENSIONS

    def _record(self, path: str) -> None:
        if self._is_relevant(path):
            self.pending[path] = time.time()

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._record(event.src_path)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._record(event.src_path)

    def on_deleted(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._record(event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        self._record(event.src_path)
        self._record(event.dest_path)

    def flush_pending(self, now: float | None = None) -> list[Path]:
        """Fire the callback for changes older than the debounce window."""
        now = time.time() if now is None else now
        ready = sorted(path for path, seen in self.pending.items() if now - seen >= self.debounce)
        if not ready:
            return []

        for path in ready:
            del self.pending[path]

        changed = [Path(path) for path in ready]
        logger.debug("Revalidating after %d change(s)", len(changed))
        self.on_change(changed)
        return changed


def watched_directories(project: Project) -> list[Path]:
    """Project directories whose contents affect validation."""
    candidates = [project.manuscript_dir, project.spine_dir, project.root]
    seen: list[Path] = []
    for directory in candidates:
        if directory.is_dir() and directory not in seen:
            seen.append(directory)
    return seen


def watch_project(
    project: Project,
    on_change: Callable[[list[Path]], None],
    debounce: float | None = None,
) -> tuple[Observer, ManuscriptEventHandler]:
    """
    Start watching a project.

    The project root is watched non-recursively so only its config file is
    picked up there; the manuscript and catalog directories are recursive.

    Returns:
        Tuple of (observer, handler) - caller should call observer.stop() to stop watching
    """
    handler = ManuscriptEventHandler(on_change, debounce)
    observer = Observer()
    for directory in watched_directories(project):
        recursive = directory != project.root
        observer.schedule(handler, str(directory), recursive=recursive)
    observer.start()
    return observer, handler


def run_watch_loop(
    project: Project,
    on_change: Callable[[list[Path]], None],
    poll_interval: float = 0.5,
) -> None:
    """Block, flushing pending changes periodically, until interrupted."""
    observer, handler = watch_project(project, on_change)
    try:
        while True:
            time.sleep(poll_interval)
            handler.flush_pending()
    finally:
        observer.stop()
        observer.join()
