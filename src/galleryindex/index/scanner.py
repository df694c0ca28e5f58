"""Depth-first filesystem scanner."""

from __future__ import annotations

import logging
import os
import stat
import threading
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable

from galleryindex.errors import (
    DatabaseWriteError,
    FilesystemAccessError,
    RunCancelledError,
    RunFatalError,
)
from galleryindex.index.throttle import ThrottleController
from galleryindex.index.writer import UpsertWriter
from galleryindex.models import FileRecord, WriteOutcome
from galleryindex.utils.files import extract_metadata, has_allowed_extension, normalize_extension

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class ScanStats:
    processed: int = 0
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0

    def increment(self, outcome: WriteOutcome) -> None:
        self.processed += 1
        if outcome is WriteOutcome.INSERTED:
            self.inserted += 1
        else:
            self.updated += 1


@dataclass(slots=True)
class _Frame:
    """A listed directory whose subdirectories are still being descended."""

    path: Path
    subdirs: deque[Path] = field(default_factory=deque)
    files: list[Path] = field(default_factory=list)


class Scanner:
    """Walks a tree and writes a FileRecord for every qualifying file.

    Directories are kept on an explicit stack. Each listing is sorted by name;
    subdirectories are descended before the directory's own files are
    processed. Directories are identified by (device, inode) and entered at
    most once, which bounds the walk on symlink cycles.
    """

    def __init__(
        self,
        writer: UpsertWriter,
        throttle: ThrottleController,
        file_types: Iterable[str],
        *,
        cancel_event: threading.Event | None = None,
        extractor: Callable[[Path], FileRecord] = extract_metadata,
    ) -> None:
        self.writer = writer
        self.throttle = throttle
        self.file_types = frozenset(normalize_extension(ext) for ext in file_types)
        self.cancel_event = cancel_event
        self.extractor = extractor

    def run(self, start_path: Path) -> ScanStats:
        # Absolute so stored directories do not depend on the working directory
        root = Path(os.path.abspath(start_path))
        try:
            root_stat = root.stat()
        except OSError as exc:
            raise RunFatalError(f"Start path {root} is not accessible: {exc}") from exc
        if not stat.S_ISDIR(root_stat.st_mode):
            raise RunFatalError(f"Start path {root} is not a directory")

        stats = ScanStats()
        try:
            root_frame = self._list(root, stats)
        except FilesystemAccessError as exc:
            raise RunFatalError(str(exc)) from exc

        LOGGER.info("Scanning %s", root)
        self.throttle.reset()
        visited = {(root_stat.st_dev, root_stat.st_ino)}
        stack = [root_frame]
        while stack:
            frame = stack[-1]
            if frame.subdirs:
                self._check_cancelled()
                child = self._enter(frame.subdirs.popleft(), visited, stats)
                if child is not None:
                    stack.append(child)
                continue

            stack.pop()
            for path in frame.files:
                self._check_cancelled()
                self._process_file(path, stats)

        LOGGER.info(
            "Scan of %s finished: processed=%d inserted=%d updated=%d skipped=%d failed=%d",
            root,
            stats.processed,
            stats.inserted,
            stats.updated,
            stats.skipped,
            stats.failed,
        )
        return stats

    def _check_cancelled(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise RunCancelledError("Indexing cancelled")

    def _enter(
        self, directory: Path, visited: set[tuple[int, int]], stats: ScanStats
    ) -> _Frame | None:
        try:
            dir_stat = directory.stat()
        except OSError as exc:
            LOGGER.warning("%s", FilesystemAccessError(str(directory), exc))
            stats.skipped += 1
            return None

        key = (dir_stat.st_dev, dir_stat.st_ino)
        if key in visited:
            LOGGER.warning("Skipping %s: directory already visited", directory)
            return None
        visited.add(key)

        try:
            return self._list(directory, stats)
        except FilesystemAccessError as exc:
            LOGGER.warning("%s", exc)
            stats.skipped += 1
            return None

    def _list(self, directory: Path, stats: ScanStats) -> _Frame:
        LOGGER.debug("Scanning directory: %s", directory)
        frame = _Frame(path=directory)
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda entry: entry.name)
        except OSError as exc:
            raise FilesystemAccessError(str(directory), exc) from exc

        for entry in entries:
            try:
                if entry.is_dir():
                    frame.subdirs.append(Path(entry.path))
                elif entry.is_file() and has_allowed_extension(entry.name, self.file_types):
                    frame.files.append(Path(entry.path))
            except OSError as exc:
                LOGGER.warning("%s", FilesystemAccessError(entry.path, exc))
                stats.skipped += 1
        return frame

    def _process_file(self, path: Path, stats: ScanStats) -> None:
        try:
            record = self.extractor(path)
        except OSError as exc:
            LOGGER.warning("%s", FilesystemAccessError(str(path), exc))
            stats.skipped += 1
            return

        try:
            outcome = self.writer.write(record)
        except DatabaseWriteError as exc:
            LOGGER.error("Skipping %s: %s", path, exc)
            stats.failed += 1
        else:
            stats.increment(outcome)
        self.throttle.tick()
