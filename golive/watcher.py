# golive - live reload supervisor for Go programs
# Copyright (C) 2026 golive Authors
# SPDX-License-Identifier: Apache-2.0

"""Filesystem change watcher.

Wraps a watchdog observer and exposes its events as async iterators on
the running event loop.  Every directory of the watch set (and each
subdirectory present at registration time) gets its own non-recursive
watch; directories created later are not picked up.
"""

from __future__ import annotations

import asyncio
import fnmatch
import logging
import os
from collections.abc import AsyncIterator, Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from watchdog.events import (
    EVENT_TYPE_CLOSED,
    EVENT_TYPE_CLOSED_NO_WRITE,
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    EVENT_TYPE_OPENED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from golive.config import DEFAULT_IGNORE_PATTERNS
from golive.exceptions import WatchRegistrationError, WatcherCreationError

logger = logging.getLogger(__name__)


# ── Events ─────────────────────────────────────────────────────────


class Op(Enum):
    """Kind of filesystem operation behind a change event."""
    CREATE = "create"
    WRITE = "write"
    REMOVE = "remove"
    RENAME = "rename"
    CHMOD = "chmod"      # permission/owner change, content untouched
    ACCESS = "access"    # opened or closed without writing

    @property
    def is_metadata(self) -> bool:
        return self in (Op.CHMOD, Op.ACCESS)


@dataclass(frozen=True)
class ChangeEvent:
    path: Path
    op: Op


# ── Ignore policy ──────────────────────────────────────────────────


class IgnorePolicy:
    """Glob patterns matched against every component of a path."""

    def __init__(self, patterns: Iterable[str] | None = None) -> None:
        self.patterns = list(DEFAULT_IGNORE_PATTERNS if patterns is None else patterns)

    def matches_name(self, name: str) -> bool:
        return any(fnmatch.fnmatchcase(name, pattern) for pattern in self.patterns)

    def matches(self, path: Path | str) -> bool:
        return any(self.matches_name(part) for part in Path(path).parts)


def expand_watch_set(
    roots: Iterable[Path],
    ignore: IgnorePolicy | None = None,
    onerror: Callable[[OSError], None] | None = None,
) -> list[Path]:
    """Expand *roots* to themselves plus every subdirectory below them.

    Ignored directories are not descended into.  The result keeps root
    order and contains no duplicates.
    """
    seen: set[Path] = set()
    result: list[Path] = []

    def _add(path: Path) -> None:
        if path not in seen:
            seen.add(path)
            result.append(path)

    for root in roots:
        root = Path(root)
        _add(root)
        for dirpath, dirnames, _filenames in os.walk(root, onerror=onerror):
            dirnames[:] = sorted(
                d for d in dirnames if not (ignore and ignore.matches_name(d))
            )
            for name in dirnames:
                _add(Path(dirpath) / name)
    return result


# ── Watchdog bridge ────────────────────────────────────────────────


class _EventBridge(FileSystemEventHandler):
    """Forward watchdog events from the observer thread to the watcher."""

    def __init__(self, watcher: ChangeWatcher) -> None:
        super().__init__()
        self.watcher = watcher

    def on_any_event(self, event: FileSystemEvent) -> None:
        try:
            change = self.watcher.translate(event)
        except Exception as e:
            self.watcher.report_error(e)
            return
        if change is not None:
            self.watcher.publish(change)


class ChangeWatcher:
    """Adapter over a watchdog observer.

    ``events()`` and ``errors()`` are infinite async iterators; each can be
    consumed by one task only.
    """

    def __init__(
        self,
        ignore: IgnorePolicy | None = None,
        observer_factory: Callable[[], Observer] = Observer,
    ) -> None:
        self.ignore = ignore or IgnorePolicy()
        self._observer_factory = observer_factory
        self._observer: Observer | None = None
        self._handler = _EventBridge(self)
        self._loop: asyncio.AbstractEventLoop | None = None
        self._events: asyncio.Queue[ChangeEvent] = asyncio.Queue()
        self._errors: asyncio.Queue[Exception] = asyncio.Queue()
        self._watched: set[Path] = set()
        self._fingerprints: dict[str, tuple[int, int]] = {}
        self._closed = False

    @property
    def watched(self) -> frozenset[Path]:
        return frozenset(self._watched)

    # ── Start/Stop ──────────────────────────────────────────────────

    def start(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Create and start the observer.

        Raises:
            WatcherCreationError: The observer could not be created.
        """
        if self._observer is not None:
            logger.warning("ChangeWatcher already running")
            return
        self._loop = loop or asyncio.get_running_loop()
        try:
            observer = self._observer_factory()
            observer.start()
        except Exception as e:
            raise WatcherCreationError(f"Error creating watcher: {e}") from e
        self._observer = observer
        logger.debug("ChangeWatcher started")

    def close(self) -> None:
        """Stop the observer and release all watches."""
        if self._closed:
            return
        self._closed = True
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5.0)
            self._observer = None
        self._watched.clear()
        logger.debug("ChangeWatcher stopped")

    # ── Registration ────────────────────────────────────────────────

    def register(self, roots: Iterable[Path]) -> list[Path]:
        """Watch every root and each of its current subdirectories.

        Paths that cannot be watched are logged and skipped.

        Returns:
            The paths that were registered.
        """
        if self._observer is None:
            raise RuntimeError("ChangeWatcher.register() called before start()")

        registered: list[Path] = []
        for path in expand_watch_set(roots, self.ignore, onerror=self._on_walk_error):
            try:
                self._schedule(path)
            except WatchRegistrationError as e:
                logger.warning("Error adding path to watcher: %s", e)
                continue
            registered.append(path)
        logger.debug("Registered %d watch paths", len(registered))
        return registered

    def _schedule(self, path: Path) -> None:
        if path in self._watched:
            return
        try:
            self._observer.schedule(self._handler, str(path), recursive=False)
        except OSError as e:
            raise WatchRegistrationError(path, e.strerror or str(e)) from e
        self._watched.add(path)
        self._seed_fingerprints(path)

    def _seed_fingerprints(self, directory: Path) -> None:
        """Record a baseline fingerprint for every file directly in *directory*."""
        try:
            with os.scandir(directory) as entries:
                for entry in entries:
                    try:
                        if entry.is_file():
                            st = entry.stat()
                            self._fingerprints[entry.path] = (st.st_size, st.st_mtime_ns)
                    except OSError:
                        continue
        except OSError as e:
            logger.debug("Cannot list %s: %s", directory, e)

    def _on_walk_error(self, error: OSError) -> None:
        path = error.filename or "?"
        logger.warning(
            "Error adding path to watcher: %s",
            WatchRegistrationError(path, error.strerror or str(error)),
        )

    # ── Event translation ───────────────────────────────────────────

    def translate(self, event: FileSystemEvent) -> ChangeEvent | None:
        """Map a watchdog event onto a ChangeEvent (None for unknown kinds)."""
        src = os.fsdecode(event.src_path)
        kind = event.event_type

        if kind == EVENT_TYPE_MOVED:
            dest = os.fsdecode(event.dest_path)
            self._fingerprints.pop(src, None)
            self._remember(dest)
            return ChangeEvent(Path(dest), Op.RENAME)
        if kind == EVENT_TYPE_CREATED:
            self._remember(src)
            return ChangeEvent(Path(src), Op.CREATE)
        if kind == EVENT_TYPE_DELETED:
            self._fingerprints.pop(src, None)
            return ChangeEvent(Path(src), Op.REMOVE)
        if kind == EVENT_TYPE_MODIFIED:
            if event.is_directory or self._content_changed(src):
                return ChangeEvent(Path(src), Op.WRITE)
            return ChangeEvent(Path(src), Op.CHMOD)
        if kind == EVENT_TYPE_CLOSED:
            return ChangeEvent(Path(src), Op.WRITE)
        if kind in (EVENT_TYPE_OPENED, EVENT_TYPE_CLOSED_NO_WRITE):
            return ChangeEvent(Path(src), Op.ACCESS)
        return None

    def _remember(self, path: str) -> None:
        try:
            st = os.stat(path)
        except OSError:
            return
        if not os.path.isdir(path):
            self._fingerprints[path] = (st.st_size, st.st_mtime_ns)

    def _content_changed(self, path: str) -> bool:
        """Compare size and mtime with the last fingerprint of *path*.

        Files present at registration or created since have a baseline.
        Without one, an inode change newer than the last content change
        (ctime past mtime) means only metadata was touched.
        """
        try:
            st = os.stat(path)
        except OSError:
            self._fingerprints.pop(path, None)
            return True
        fingerprint = (st.st_size, st.st_mtime_ns)
        previous = self._fingerprints.get(path)
        self._fingerprints[path] = fingerprint
        if previous is None:
            return st.st_ctime_ns <= st.st_mtime_ns
        return previous != fingerprint

    # ── Streams ─────────────────────────────────────────────────────

    def publish(self, event: ChangeEvent) -> None:
        """Hand *event* to the event loop; safe to call from any thread."""
        self._put(self._events, event)

    def report_error(self, error: Exception) -> None:
        """Hand a watcher error to the event loop; safe to call from any thread."""
        self._put(self._errors, error)

    def _put(self, queue: asyncio.Queue, item: object) -> None:
        if self._closed or self._loop is None or self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(queue.put_nowait, item)

    async def events(self) -> AsyncIterator[ChangeEvent]:
        while True:
            yield await self._events.get()

    async def errors(self) -> AsyncIterator[Exception]:
        while True:
            yield await self._errors.get()
