"""Exceptions raised by the indexing engine."""

from __future__ import annotations


class IndexerError(Exception):
    """Base class for indexing engine errors."""


class FilesystemAccessError(IndexerError):
    """A single directory entry could not be listed or stat'ed."""

    def __init__(self, path: str, cause: OSError) -> None:
        super().__init__(f"Cannot access {path}: {cause}")
        self.path = path
        self.cause = cause


class DatabaseWriteError(IndexerError):
    """Persisting a single file record failed after retrying."""


class RunFatalError(IndexerError):
    """The whole run cannot continue, e.g. the start path is unreadable."""


class RunCancelledError(RunFatalError):
    """The run was stopped through its cancellation signal."""
