"""SQLite persistence handle for the file index."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator


class SQLiteIndexStore:
    """Connection, pragmas and schema shared by the indexing components.

    Components receive the store at construction and run their own SQL
    through :meth:`transaction`; the store itself holds no domain logic.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self._conn = sqlite3.connect(self.db_path, timeout=30)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL;")
        self._conn.execute("PRAGMA synchronous=NORMAL;")
        self._ensure_schema()

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    def close(self) -> None:
        self._conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        try:
            yield self._conn
            self._conn.commit()
        except Exception:
            self._conn.rollback()
            raise

    def _ensure_schema(self) -> None:
        with self.transaction() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS images (
                    id INTEGER PRIMARY KEY,
                    filename TEXT NOT NULL,
                    size INTEGER,
                    created TEXT,
                    modified TEXT,
                    accessed TEXT,
                    indexed TEXT NOT NULL,
                    last_seen TEXT NOT NULL,
                    sightings INTEGER NOT NULL DEFAULT 1,
                    path TEXT NOT NULL,
                    extension TEXT,
                    CONSTRAINT unique_path_filename UNIQUE (path, filename)
                )
                """
            )
            conn.execute(
                """CREATE INDEX IF NOT EXISTS idx_images_filename
                    ON images(filename COLLATE NOCASE)
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS indexing_jobs (
                    id INTEGER PRIMARY KEY,
                    status TEXT NOT NULL
                        CHECK (status IN ('running', 'completed', 'failed')),
                    start_time TEXT NOT NULL,
                    end_time TEXT,
                    error TEXT,
                    total_files INTEGER NOT NULL DEFAULT 0,
                    new_files INTEGER NOT NULL DEFAULT 0,
                    triggered_by TEXT NOT NULL DEFAULT 'manual'
                )
                """
            )
            conn.execute(
                """CREATE INDEX IF NOT EXISTS idx_indexing_jobs_status
                    ON indexing_jobs(status, start_time)
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS indexer_state (
                    id INTEGER PRIMARY KEY CHECK (id = 1),
                    is_indexing INTEGER NOT NULL DEFAULT 0,
                    last_indexed TEXT
                )
                """
            )
            conn.execute("INSERT OR IGNORE INTO indexer_state(id, is_indexing) VALUES (1, 0)")
