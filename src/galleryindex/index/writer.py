"""Idempotent persistence of file records."""

from __future__ import annotations

import logging
import sqlite3
import time
from typing import Callable

from galleryindex.errors import DatabaseWriteError
from galleryindex.index.storage import SQLiteIndexStore
from galleryindex.models import FileRecord, WriteOutcome
from galleryindex.utils.timestamps import utc_now

LOGGER = logging.getLogger(__name__)

# ``sightings`` starts at 1 and is bumped on every conflicting write, so the
# returned value tells an insert apart from an update in a single statement.
_UPSERT_SQL = """
    INSERT INTO images (
        filename, size, created, modified, accessed, indexed, last_seen, path, extension
    )
    VALUES (:filename, :size, :created, :modified, :accessed, :now, :now, :path, :extension)
    ON CONFLICT (path, filename)
    DO UPDATE SET
        size = excluded.size,
        created = excluded.created,
        modified = excluded.modified,
        accessed = excluded.accessed,
        extension = excluded.extension,
        last_seen = excluded.last_seen,
        sightings = images.sightings + 1
    RETURNING sightings
"""


class UpsertWriter:
    """Writes FileRecords keyed by (directory, filename)."""

    def __init__(
        self,
        store: SQLiteIndexStore,
        *,
        retry_backoff_seconds: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.store = store
        self.retry_backoff_seconds = retry_backoff_seconds
        self._sleep = sleep

    def write(self, record: FileRecord) -> WriteOutcome:
        """Insert or update ``record``; retries once before giving up."""
        try:
            return self._upsert(record)
        except sqlite3.Error as exc:
            LOGGER.warning(
                "Write failed for %s/%s, retrying in %.2fs: %s",
                record.directory,
                record.filename,
                self.retry_backoff_seconds,
                exc,
            )
        self._sleep(self.retry_backoff_seconds)
        try:
            return self._upsert(record)
        except sqlite3.Error as exc:
            raise DatabaseWriteError(
                f"Could not write {record.directory}/{record.filename}: {exc}"
            ) from exc

    def _upsert(self, record: FileRecord) -> WriteOutcome:
        params = {
            "filename": record.filename,
            "size": record.size,
            "created": record.created,
            "modified": record.modified,
            "accessed": record.accessed,
            "now": utc_now(),
            "path": record.directory,
            "extension": record.extension,
        }
        with self.store.transaction() as conn:
            sightings = conn.execute(_UPSERT_SQL, params).fetchone()[0]
        outcome = WriteOutcome.INSERTED if sightings == 1 else WriteOutcome.UPDATED
        LOGGER.debug("%s %s/%s", outcome.value.capitalize(), record.directory, record.filename)
        return outcome
