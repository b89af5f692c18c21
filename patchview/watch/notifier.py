"""
File change notifier: watchdog-backed source of raw change events.

Schedules a non-recursive watchdog observer on the directory of each
watched file and forwards matching events to a sink.  The sink is called
on the observer thread, so it must be thread-safe (the pipeline's queue
is).
"""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Callable
from enum import Enum
from typing import NamedTuple

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .store import normalize_path

logger = logging.getLogger(__name__)


class EventKind(Enum):
    CHANGED = "changed"
    DELETED = "deleted"


class RawEvent(NamedTuple):
    path: str
    kind: EventKind


class _WatchdogAdapter(FileSystemEventHandler):
    """Translate watchdog callbacks into :class:`RawEvent` notifications."""

    def __init__(self, notifier: "FileChangeNotifier") -> None:
        super().__init__()
        self._n = notifier

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._n._emit(event.src_path, EventKind.CHANGED)

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._n._emit(event.src_path, EventKind.CHANGED)

    def on_deleted(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._n._emit(event.src_path, EventKind.DELETED)

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._n._emit(event.src_path, EventKind.DELETED)
            self._n._emit(event.dest_path, EventKind.CHANGED)


class FileChangeNotifier:
    """Watch individual files and push their events to *sink*.

    Usage::

        notifier = FileChangeNotifier(pipeline.notify)
        notifier.start()
        notifier.add("/path/to/file.py")
        ...
        notifier.stop()
    """

    def __init__(self, sink: Callable[[str, EventKind], None]) -> None:
        self._sink = sink
        self._observer: Observer | None = None
        self._handler = _WatchdogAdapter(self)
        self._lock = threading.Lock()
        self._paths: dict[str, int] = {}    # normalized path -> refcount
        self._watches: dict[str, object] = {}   # directory -> ObservedWatch

    @property
    def is_running(self) -> bool:
        return self._observer is not None

    def start(self) -> None:
        if self._observer is not None:
            return
        observer = Observer()
        observer.daemon = True
        observer.start()
        self._observer = observer
        with self._lock:
            for directory in {os.path.dirname(p) for p in self._paths}:
                self._schedule(directory)
        logger.info("[Watch] Notifier started")

    def stop(self) -> None:
        if self._observer is None:
            return
        try:
            self._observer.stop()
            self._observer.join(timeout=5)
        except RuntimeError as exc:
            logger.warning("[Watch] Observer shutdown failed: %s", exc)
        self._observer = None
        with self._lock:
            self._watches.clear()
        logger.info("[Watch] Notifier stopped")

    def add(self, path: str) -> None:
        key = normalize_path(path)
        with self._lock:
            self._paths[key] = self._paths.get(key, 0) + 1
            if self._observer is not None:
                self._schedule(os.path.dirname(key))

    def remove(self, path: str) -> None:
        key = normalize_path(path)
        with self._lock:
            count = self._paths.get(key, 0) - 1
            if count > 0:
                self._paths[key] = count
                return
            self._paths.pop(key, None)
            directory = os.path.dirname(key)
            still_used = any(os.path.dirname(p) == directory for p in self._paths)
            watch = self._watches.pop(directory, None) if not still_used else None
        if watch is not None and self._observer is not None:
            self._observer.unschedule(watch)

    def watched_paths(self) -> set[str]:
        with self._lock:
            return set(self._paths)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _schedule(self, directory: str) -> None:
        """Schedule *directory* on the observer.  Caller holds the lock."""
        if directory in self._watches or not os.path.isdir(directory):
            return
        try:
            self._watches[directory] = self._observer.schedule(
                self._handler, directory, recursive=False
            )
        except OSError as exc:
            logger.warning("[Watch] Cannot watch %s: %s", directory, exc)

    def _emit(self, raw_path: str | bytes, kind: EventKind) -> None:
        key = normalize_path(os.fsdecode(raw_path))
        with self._lock:
            if key not in self._paths:
                return
        try:
            self._sink(key, kind)
        except Exception as exc:
            logger.warning("[Watch] Event sink failed for %s: %s", key, exc)
