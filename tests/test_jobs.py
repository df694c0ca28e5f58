"""Tests for JobTracker."""

from __future__ import annotations

from pathlib import Path

import pytest

from galleryindex.index.jobs import STALE_JOB_ERROR, JobTracker
from galleryindex.index.storage import SQLiteIndexStore
from galleryindex.models import JobFilter, JobStatus


@pytest.fixture
def store(tmp_path: Path):
    store = SQLiteIndexStore(tmp_path / "index.db")
    yield store
    store.close()


@pytest.fixture
def tracker(store) -> JobTracker:
    return JobTracker(store)


def _set_start(store: SQLiteIndexStore, job_id: int, start: str) -> None:
    with store.transaction() as conn:
        conn.execute("UPDATE indexing_jobs SET start_time = ? WHERE id = ?", (start, job_id))


class TestOpenClose:
    """Test the job lifecycle."""

    def test_open_creates_running_job(self, tracker) -> None:
        job_id = tracker.open("startup")

        job = tracker.get(job_id)
        assert job is not None
        assert job.status is JobStatus.RUNNING
        assert job.ended_at is None
        assert job.error is None
        assert job.trigger == "startup"

    def test_close_completed(self, tracker) -> None:
        job_id = tracker.open()

        tracker.close(job_id, JobStatus.COMPLETED, total_files=12, new_files=3)

        job = tracker.get(job_id)
        assert job.status is JobStatus.COMPLETED
        assert job.ended_at is not None
        assert job.total_files == 12
        assert job.new_files == 3
        assert job.error is None

    def test_close_failed_with_error(self, tracker) -> None:
        job_id = tracker.open()

        tracker.close(job_id, JobStatus.FAILED, error="Start path missing")

        job = tracker.get(job_id)
        assert job.status is JobStatus.FAILED
        assert job.error == "Start path missing"

    def test_close_accepts_plain_string(self, tracker) -> None:
        job_id = tracker.open()

        tracker.close(job_id, "completed")  # type: ignore[arg-type]

        assert tracker.get(job_id).status is JobStatus.COMPLETED

    def test_close_twice_rejected(self, tracker) -> None:
        job_id = tracker.open()
        tracker.close(job_id, JobStatus.COMPLETED)

        with pytest.raises(ValueError, match="not running"):
            tracker.close(job_id, JobStatus.FAILED, error="late")
        assert tracker.get(job_id).status is JobStatus.COMPLETED

    def test_close_unknown_job_rejected(self, tracker) -> None:
        with pytest.raises(ValueError):
            tracker.close(999, JobStatus.COMPLETED)

    def test_close_with_running_status_rejected(self, tracker) -> None:
        job_id = tracker.open()

        with pytest.raises(ValueError, match="Cannot close"):
            tracker.close(job_id, JobStatus.RUNNING)

    def test_get_missing(self, tracker) -> None:
        assert tracker.get(42) is None


class TestHistory:
    """Test filtered, paginated history queries."""

    @pytest.fixture
    def populated(self, store, tracker) -> list[int]:
        """Five jobs with increasing start times: ids 1-5."""
        ids = []
        statuses = [
            JobStatus.COMPLETED,
            JobStatus.FAILED,
            JobStatus.COMPLETED,
            None,
            JobStatus.FAILED,
        ]
        for day, status in enumerate(statuses, start=1):
            job_id = tracker.open()
            _set_start(store, job_id, f"2024-01-0{day}T00:00:00.000000+00:00")
            if status is not None:
                tracker.close(job_id, status, error="boom" if status is JobStatus.FAILED else None)
            ids.append(job_id)
        return ids

    def test_all_most_recent_first(self, tracker, populated) -> None:
        jobs = tracker.history(JobFilter.ALL, page=1, limit=10)

        assert [job.id for job in jobs] == list(reversed(populated))

    def test_filter_failed(self, tracker, populated) -> None:
        jobs = tracker.history(JobFilter.FAILED)

        assert [job.id for job in jobs] == [populated[4], populated[1]]
        assert all(job.error == "boom" for job in jobs)

    def test_filter_completed(self, tracker, populated) -> None:
        jobs = tracker.history(JobFilter.COMPLETED)

        assert [job.id for job in jobs] == [populated[2], populated[0]]

    def test_filter_running(self, tracker, populated) -> None:
        jobs = tracker.history(JobFilter.RUNNING)

        assert [job.id for job in jobs] == [populated[3]]

    def test_filter_from_string(self, tracker, populated) -> None:
        assert len(tracker.history("failed")) == 2  # type: ignore[arg-type]

    def test_pagination(self, tracker, populated) -> None:
        page1 = tracker.history(page=1, limit=2)
        page2 = tracker.history(page=2, limit=2)
        page3 = tracker.history(page=3, limit=2)
        page4 = tracker.history(page=4, limit=2)

        assert [job.id for job in page1] == [populated[4], populated[3]]
        assert [job.id for job in page2] == [populated[2], populated[1]]
        assert [job.id for job in page3] == [populated[0]]
        assert page4 == []

    def test_same_start_time_orders_by_id(self, store, tracker) -> None:
        first = tracker.open()
        second = tracker.open()
        _set_start(store, first, "2024-01-01T00:00:00.000000+00:00")
        _set_start(store, second, "2024-01-01T00:00:00.000000+00:00")

        assert [job.id for job in tracker.history()] == [second, first]

    @pytest.mark.parametrize("page, limit", [(0, 10), (1, 0), (-1, 5)])
    def test_invalid_pagination(self, tracker, page, limit) -> None:
        with pytest.raises(ValueError):
            tracker.history(page=page, limit=limit)

    def test_count(self, tracker, populated) -> None:
        assert tracker.count() == 5
        assert tracker.count(JobFilter.FAILED) == 2
        assert tracker.count(JobFilter.RUNNING) == 1

    def test_to_dict(self, tracker, populated) -> None:
        data = tracker.history(JobFilter.FAILED, limit=1)[0].to_dict()

        assert data["status"] == "failed"
        assert data["error"] == "boom"
        assert data["started_at"].startswith("2024-01-05")


class TestPurgeStaleRunning:
    """Test cleanup of jobs left running."""

    def test_marks_running_jobs_failed(self, tracker) -> None:
        stale = [tracker.open(), tracker.open()]
        done = tracker.open()
        tracker.close(done, JobStatus.COMPLETED, total_files=4)

        assert tracker.purge_stale_running() == 2

        for job_id in stale:
            job = tracker.get(job_id)
            assert job.status is JobStatus.FAILED
            assert job.error == STALE_JOB_ERROR
            assert job.ended_at is not None
        assert tracker.get(done).status is JobStatus.COMPLETED
        assert tracker.get(done).total_files == 4

    def test_nothing_to_purge(self, tracker) -> None:
        assert tracker.purge_stale_running() == 0
