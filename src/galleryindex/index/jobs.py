"""Indexing job history."""

from __future__ import annotations

import logging

from galleryindex.index.storage import SQLiteIndexStore
from galleryindex.models import IndexingJob, JobFilter, JobStatus
from galleryindex.utils.timestamps import utc_now

LOGGER = logging.getLogger(__name__)

STALE_JOB_ERROR = "Interrupted: process stopped before the job finished"


def _where(status: JobFilter) -> tuple[str, tuple[str, ...]]:
    if status is JobFilter.ALL:
        return "", ()
    return "WHERE status = ?", (status.value,)


class JobTracker:
    """Opens, closes and queries ``indexing_jobs`` rows."""

    def __init__(self, store: SQLiteIndexStore) -> None:
        self.store = store

    def open(self, trigger: str = "manual") -> int:
        with self.store.transaction() as conn:
            job_id = conn.execute(
                "INSERT INTO indexing_jobs(status, start_time, triggered_by) VALUES (?, ?, ?)",
                (JobStatus.RUNNING.value, utc_now(), trigger),
            ).lastrowid
        LOGGER.info("Indexing job %s started (%s)", job_id, trigger)
        return int(job_id)

    def close(
        self,
        job_id: int,
        status: JobStatus,
        error: str | None = None,
        total_files: int = 0,
        new_files: int = 0,
    ) -> None:
        status = JobStatus(status)
        if not status.is_terminal:
            raise ValueError(f"Cannot close job {job_id} with status {status.value!r}")

        with self.store.transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE indexing_jobs
                SET status = ?, end_time = ?, error = ?, total_files = ?, new_files = ?
                WHERE id = ? AND status = ?
                """,
                (
                    status.value,
                    utc_now(),
                    error,
                    total_files,
                    new_files,
                    job_id,
                    JobStatus.RUNNING.value,
                ),
            )
            if cursor.rowcount != 1:
                raise ValueError(f"Job {job_id} is not running")
        LOGGER.info(
            "Indexing job %s %s (total=%d, new=%d)", job_id, status.value, total_files, new_files
        )

    def get(self, job_id: int) -> IndexingJob | None:
        row = self.store.connection.execute(
            "SELECT * FROM indexing_jobs WHERE id = ?", (job_id,)
        ).fetchone()
        return IndexingJob.from_row(row) if row else None

    def history(
        self, status: JobFilter = JobFilter.ALL, *, page: int = 1, limit: int = 10
    ) -> list[IndexingJob]:
        """Jobs matching ``status``, most recent first."""
        if page < 1:
            raise ValueError(f"page must be >= 1, got {page}")
        if limit < 1:
            raise ValueError(f"limit must be >= 1, got {limit}")

        where, params = _where(JobFilter(status))
        rows = self.store.connection.execute(
            f"""
            SELECT * FROM indexing_jobs
            {where}
            ORDER BY start_time DESC, id DESC
            LIMIT ? OFFSET ?
            """,
            (*params, limit, (page - 1) * limit),
        ).fetchall()
        return [IndexingJob.from_row(row) for row in rows]

    def count(self, status: JobFilter = JobFilter.ALL) -> int:
        where, params = _where(JobFilter(status))
        row = self.store.connection.execute(
            f"SELECT COUNT(*) FROM indexing_jobs {where}", params
        ).fetchone()
        return int(row[0])

    def purge_stale_running(self) -> int:
        """Mark every job still flagged running as failed."""
        with self.store.transaction() as conn:
            cursor = conn.execute(
                "UPDATE indexing_jobs SET status = ?, end_time = ?, error = ? WHERE status = ?",
                (JobStatus.FAILED.value, utc_now(), STALE_JOB_ERROR, JobStatus.RUNNING.value),
            )
            purged = cursor.rowcount
        if purged:
            LOGGER.warning("Marked %d stale running job(s) as failed", purged)
        return purged
