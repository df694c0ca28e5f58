"""FastAPI application exposing the file index for querying."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import asdict
from pathlib import Path
from typing import Any, AsyncIterator, List

from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel

from galleryindex.config import AppConfig
from galleryindex.index.guard import ConcurrencyGuard
from galleryindex.index.jobs import JobTracker
from galleryindex.index.orchestrator import RunOrchestrator
from galleryindex.index.search import FileQuery
from galleryindex.index.storage import SQLiteIndexStore
from galleryindex.models import FileRecord, JobFilter, SortOrder

LOGGER = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")
    # False when a scheduler thread in this process runs the recovery instead
    if getattr(app.state, "recover_on_startup", True):
        _recover_stale_state(_get_config())
    yield


app = FastAPI(title="Gallery Indexer API", version="0.1.0", lifespan=lifespan)


class RunSummary(BaseModel):
    job_id: int
    status: str
    processed: int
    inserted: int
    updated: int
    skipped: int
    failed: int
    total_files: int
    error: str | None = None


def _get_config() -> AppConfig:
    config = getattr(app.state, "config", None)
    if config is None:
        config = AppConfig.from_env()
        app.state.config = config
    return config


def _resolve_db_path(config: AppConfig) -> Path:
    return config.resolve_db_path(Path.cwd())


def _open_store(config: AppConfig) -> SQLiteIndexStore:
    resolved_db = _resolve_db_path(config)
    if not resolved_db.exists():
        raise HTTPException(
            status_code=404,
            detail=f"Database not found at {resolved_db}. Run the indexer first.",
        )
    return SQLiteIndexStore(resolved_db)


def _job_filter(
    status: JobFilter, errors: bool, completed: bool, running: bool
) -> JobFilter:
    # Boolean flags are the older query style and take precedence
    if errors:
        return JobFilter.FAILED
    if completed:
        return JobFilter.COMPLETED
    if running:
        return JobFilter.RUNNING
    return status


def _recover_stale_state(config: AppConfig) -> None:
    """Clear a guard flag and running jobs left by a crashed process."""
    resolved_db = _resolve_db_path(config)
    if not resolved_db.exists():
        return
    store = SQLiteIndexStore(resolved_db)
    try:
        RunOrchestrator.from_config(config, store).recover()
    finally:
        store.close()


@app.get("/")
async def welcome() -> dict[str, str]:
    return {"message": "Welcome to the Gallery Indexer API"}


@app.get("/file/count")
async def file_count() -> dict[str, int]:
    store = _open_store(_get_config())
    try:
        total = FileQuery(store).count_all()
    finally:
        store.close()
    return {"count": total}


@app.get("/file/search")
async def search_files(
    query: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=500),
    sort: SortOrder = SortOrder.ASC,
) -> dict[str, Any]:
    if query is None or not query.strip():
        raise HTTPException(status_code=400, detail='Query parameter "query" is required')

    store = _open_store(_get_config())
    try:
        file_query = FileQuery(store)
        results: List[FileRecord] = file_query.search_by_name(
            query.strip(), page=page, limit=limit, order=sort
        )
        total = file_query.count_by_name(query.strip())
    finally:
        store.close()
    return {
        "results": [asdict(record) for record in results],
        "total": total,
        "page": page,
        "limit": limit,
    }


@app.get("/indexer/status")
async def indexer_status() -> dict[str, Any]:
    store = _open_store(_get_config())
    try:
        state = ConcurrencyGuard(store).state()
    finally:
        store.close()
    return {"status": state.is_indexing, "last_indexed": state.last_indexed}


@app.get("/indexer/history")
async def indexer_history(
    status: JobFilter = JobFilter.ALL,
    errors: bool = False,
    completed: bool = False,
    running: bool = False,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=500),
) -> dict[str, Any]:
    job_filter = _job_filter(status, errors, completed, running)
    store = _open_store(_get_config())
    try:
        tracker = JobTracker(store)
        jobs = tracker.history(job_filter, page=page, limit=limit)
        total = tracker.count(job_filter)
    finally:
        store.close()
    return {
        "history": [job.to_dict() for job in jobs],
        "total": total,
        "page": page,
        "limit": limit,
    }


def _run_index_job(config: AppConfig) -> RunSummary | None:
    resolved_db = _resolve_db_path(config)
    resolved_db.parent.mkdir(parents=True, exist_ok=True)
    store = SQLiteIndexStore(resolved_db)
    try:
        result = RunOrchestrator.from_config(config, store).run("manual")
    finally:
        store.close()
    if result is None:
        return None
    return RunSummary(
        job_id=result.job_id,
        status=result.status.value,
        processed=result.stats.processed,
        inserted=result.stats.inserted,
        updated=result.stats.updated,
        skipped=result.stats.skipped,
        failed=result.stats.failed,
        total_files=result.total_files,
        error=result.error,
    )


@app.post("/indexer/run")
async def trigger_run() -> RunSummary:
    """Start a manual run; blocks until it finishes."""
    try:
        summary = await asyncio.to_thread(_run_index_job, _get_config())
    except Exception as exc:  # pragma: no cover
        LOGGER.exception("Indexing failed: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    if summary is None:
        raise HTTPException(status_code=409, detail="Indexing already in progress")
    return summary
