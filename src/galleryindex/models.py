"""Core Gallery Indexer data models."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from enum import Enum


class WriteOutcome(str, Enum):
    INSERTED = "inserted"
    UPDATED = "updated"


class JobStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not JobStatus.RUNNING


class JobFilter(str, Enum):
    """Status filter accepted by job history queries."""

    ALL = "all"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(slots=True)
class FileRecord:
    """Metadata describing one indexed file, keyed by (directory, filename)."""

    filename: str
    size: int
    created: str
    modified: str
    accessed: str
    directory: str
    extension: str
    indexed: str | None = None

    @property
    def key(self) -> tuple[str, str]:
        return self.directory, self.filename

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "FileRecord":
        return cls(
            filename=row["filename"],
            size=row["size"],
            created=row["created"],
            modified=row["modified"],
            accessed=row["accessed"],
            directory=row["path"],
            extension=row["extension"],
            indexed=row["indexed"],
        )


@dataclass(slots=True)
class IndexingJob:
    """One row of indexing history."""

    id: int
    status: JobStatus
    started_at: str
    ended_at: str | None = None
    error: str | None = None
    total_files: int = 0
    new_files: int = 0
    trigger: str = "manual"

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "IndexingJob":
        return cls(
            id=row["id"],
            status=JobStatus(row["status"]),
            started_at=row["start_time"],
            ended_at=row["end_time"],
            error=row["error"],
            total_files=row["total_files"],
            new_files=row["new_files"],
            trigger=row["triggered_by"],
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "status": self.status.value,
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "error": self.error,
            "total_files": self.total_files,
            "new_files": self.new_files,
            "trigger": self.trigger,
        }


@dataclass(slots=True)
class IndexerState:
    is_indexing: bool
    last_indexed: str | None = None
