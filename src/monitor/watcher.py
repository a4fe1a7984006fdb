"""Thin wrapper around a watchdog Observer with path-callback handlers."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

log = logging.getLogger(__name__)

PathCallback = Callable[[Path], object]


class PathEventHandler(FileSystemEventHandler):
    """Route file events to ``on_change`` / ``on_delete`` callbacks.

    ``accept`` filters paths before either callback runs. A move counts as
    a deletion of the source and a change of the destination.
    """

    def __init__(
        self,
        on_change: PathCallback,
        on_delete: PathCallback | None = None,
        accept: Callable[[Path], bool] | None = None,
    ) -> None:
        super().__init__()
        self._on_change = on_change
        self._on_delete = on_delete
        self._accept = accept or (lambda _p: True)

    def _fire(self, callback: PathCallback | None, raw_path: str | bytes) -> None:
        if callback is None:
            return
        path = Path(raw_path.decode() if isinstance(raw_path, bytes) else raw_path)
        if not self._accept(path):
            return
        try:
            callback(path)
        except Exception:
            log.exception("File event handler failed for %s", path)

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._fire(self._on_change, event.src_path)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._fire(self._on_change, event.src_path)

    def on_deleted(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._fire(self._on_delete, event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        self._fire(self._on_delete, event.src_path)
        self._fire(self._on_change, event.dest_path)


class DirectoryWatcher:
    """One Observer thread serving any number of (directory, handler) pairs."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._schedule: list[tuple[Path, FileSystemEventHandler]] = []
        self._observer: Observer | None = None

    def watch(self, directory: str | Path, handler: FileSystemEventHandler) -> None:
        d = Path(directory)
        if any(existing == d and h is handler for existing, h in self._schedule):
            return
        self._schedule.append((d, handler))

    @property
    def running(self) -> bool:
        return self._observer is not None and self._observer.is_alive()

    def start(self) -> None:
        if self.running:
            return
        observer = Observer()
        observer.name = self.name
        scheduled = 0
        for directory, handler in self._schedule:
            if not directory.is_dir():
                log.warning("%s: directory %s does not exist, not watching", self.name, directory)
                continue
            observer.schedule(handler, str(directory), recursive=False)
            scheduled += 1
        observer.daemon = True
        observer.start()
        self._observer = observer
        log.info("%s watching %d director%s", self.name, scheduled, "y" if scheduled == 1 else "ies")

    def stop(self, timeout: float | None = 5.0) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(timeout)
        self._observer = None
        log.debug("%s stopped", self.name)
