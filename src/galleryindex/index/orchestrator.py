"""Sequencing of one guarded indexing run."""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from galleryindex.config import AppConfig
from galleryindex.errors import RunFatalError
from galleryindex.index.guard import ConcurrencyGuard
from galleryindex.index.jobs import JobTracker
from galleryindex.index.scanner import Scanner, ScanStats
from galleryindex.index.search import FileQuery
from galleryindex.index.storage import SQLiteIndexStore
from galleryindex.index.throttle import ThrottleController
from galleryindex.index.writer import UpsertWriter
from galleryindex.models import JobStatus

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class RunResult:
    job_id: int
    status: JobStatus
    stats: ScanStats
    total_files: int = 0
    error: str | None = None


@dataclass(slots=True)
class RecoveryReport:
    guard_was_stuck: bool = False
    stale_jobs: int = 0

    @property
    def found_stale_state(self) -> bool:
        return self.guard_was_stuck or self.stale_jobs > 0


class RunOrchestrator:
    """Guard -> cleanup -> job open -> scan -> job close -> guard release."""

    def __init__(
        self,
        guard: ConcurrencyGuard,
        jobs: JobTracker,
        scanner: Scanner,
        query: FileQuery,
        start_path: Path,
    ) -> None:
        self.guard = guard
        self.jobs = jobs
        self.scanner = scanner
        self.query = query
        self.start_path = Path(os.path.abspath(start_path))

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        store: SQLiteIndexStore,
        *,
        cancel_event: threading.Event | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> "RunOrchestrator":
        """Wire every component onto a single store handle."""
        throttle = ThrottleController(
            config.pause_after,
            config.pause_time_seconds,
            cancel_event=cancel_event,
            sleep=sleep,
        )
        scanner = Scanner(
            UpsertWriter(store),
            throttle,
            config.file_types,
            cancel_event=cancel_event,
        )
        return cls(
            ConcurrencyGuard(store),
            JobTracker(store),
            scanner,
            FileQuery(store),
            config.start_path,
        )

    def recover(self) -> RecoveryReport:
        """Clear state left by a process that died mid-run.

        Must run once at process start, before the first :meth:`run`.
        """
        report = RecoveryReport(
            guard_was_stuck=self.guard.force_reset(),
            stale_jobs=self.jobs.purge_stale_running(),
        )
        if report.found_stale_state:
            LOGGER.warning(
                "Recovered stale indexing state (guard stuck: %s, running jobs: %d)",
                report.guard_was_stuck,
                report.stale_jobs,
            )
        return report

    def run(self, trigger: str = "manual") -> RunResult | None:
        """Run one scan, or return None if another run holds the guard."""
        if not self.guard.try_acquire():
            LOGGER.info("Indexing already in progress. Skipping %s run.", trigger)
            return None

        try:
            # Holding the guard means any row still marked running is stale
            self.jobs.purge_stale_running()
            job_id = self.jobs.open(trigger)
            return self._run_job(job_id)
        finally:
            self.guard.release()

    def _run_job(self, job_id: int) -> RunResult:
        try:
            stats = self.scanner.run(self.start_path)
        except RunFatalError as exc:
            LOGGER.error("Indexing job %s failed: %s", job_id, exc)
            self.jobs.close(job_id, JobStatus.FAILED, error=str(exc))
            return RunResult(job_id, JobStatus.FAILED, ScanStats(), error=str(exc))
        except Exception as exc:
            LOGGER.exception("Indexing job %s crashed", job_id)
            self.jobs.close(job_id, JobStatus.FAILED, error=f"{type(exc).__name__}: {exc}")
            raise

        total_files = self.query.count_under(self.start_path)
        self.jobs.close(
            job_id,
            JobStatus.COMPLETED,
            total_files=total_files,
            new_files=stats.inserted,
        )
        return RunResult(job_id, JobStatus.COMPLETED, stats, total_files=total_files)
