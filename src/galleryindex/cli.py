"""Command line interface for Gallery Indexer."""

from __future__ import annotations

import logging
import threading
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from galleryindex.config import AppConfig
from galleryindex.index.guard import ConcurrencyGuard
from galleryindex.index.jobs import JobTracker
from galleryindex.index.orchestrator import RunOrchestrator
from galleryindex.index.search import FileQuery
from galleryindex.index.storage import SQLiteIndexStore
from galleryindex.models import JobFilter, SortOrder
from galleryindex.scheduler import Scheduler
from galleryindex.web.app import app as web_app


console = Console()
app = typer.Typer(help="Gallery Indexer - periodic filesystem metadata index")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _ensure_db_parent(db_path: Path) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)


def _load_config(
    db: Optional[Path] = None,
    start_path: Optional[Path] = None,
    file_types: Optional[List[str]] = None,
) -> AppConfig:
    overrides: dict[str, object] = {}
    if db is not None:
        overrides["db_path"] = db
    if start_path is not None:
        overrides["start_path"] = start_path
    if file_types:
        overrides["file_types"] = tuple(file_types)
    try:
        return replace(AppConfig.from_env(), **overrides)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _open_store(config: AppConfig, *, must_exist: bool = False) -> SQLiteIndexStore:
    resolved_db = config.resolve_db_path(Path.cwd())
    if must_exist and not resolved_db.exists():
        raise typer.BadParameter(f"Database not found: {resolved_db}")
    _ensure_db_parent(resolved_db)
    return SQLiteIndexStore(resolved_db)


def _run_scheduler(config: AppConfig, stop_event: threading.Event) -> None:
    store = _open_store(config)
    try:
        orchestrator = RunOrchestrator.from_config(config, store, cancel_event=stop_event)
        scheduler = Scheduler(orchestrator, config.cron_schedule, stop_event=stop_event)
        scheduler.run_forever(run_on_startup=config.run_on_startup)
    finally:
        store.close()


@app.command()
def run(
    start_path: Optional[Path] = typer.Argument(
        None, help="Directory to scan (defaults to INDEXER_START_PATH)."
    ),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
    file_type: List[str] = typer.Option(
        None, "--type", "-t", help="Extension to index; repeat for several."
    ),
    recover_first: bool = typer.Option(
        False, "--recover", help="Clear state left by a crashed run before indexing"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Run one guarded indexing pass and exit."""
    _setup_logging(verbose)
    config = _load_config(db, start_path, file_type)
    store = _open_store(config)
    try:
        orchestrator = RunOrchestrator.from_config(config, store)
        if recover_first:
            orchestrator.recover()
        console.print(
            f"Indexing [bold]{config.start_path}[/bold] into "
            f"[bold]{config.resolve_db_path(Path.cwd())}[/bold]..."
        )
        result = orchestrator.run("manual")
    finally:
        store.close()

    if result is None:
        console.print(
            "[yellow]Indexing already in progress, nothing to do. "
            "Use --recover if a previous run crashed.[/yellow]"
        )
        return
    if result.error:
        console.print(f"[red]Job {result.job_id} failed:[/red] {result.error}")
        raise typer.Exit(code=1)
    stats = result.stats
    console.print(f"Job {result.job_id} completed.")
    console.print(
        f"Processed: {stats.processed}, inserted: {stats.inserted}, updated: {stats.updated}"
    )
    console.print(
        f"Skipped: {stats.skipped}, failed: {stats.failed}, total indexed: {result.total_files}"
    )


@app.command()
def schedule(
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Recover stale state, index at startup, then on every cron tick."""
    _setup_logging(verbose)
    config = _load_config(db)
    console.print(
        f"Scheduling indexing of [bold]{config.start_path}[/bold] "
        f"with cron [bold]{config.cron_schedule}[/bold] (Ctrl-C to stop)"
    )
    stop_event = threading.Event()
    try:
        _run_scheduler(config, stop_event)
    except KeyboardInterrupt:
        stop_event.set()
        console.print("Scheduler stopped.")


@app.command()
def recover(
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """Clear the indexing flag and fail jobs left running by a crash."""
    config = _load_config(db)
    store = _open_store(config, must_exist=True)
    try:
        orchestrator = RunOrchestrator.from_config(config, store)
        report = orchestrator.recover()
    finally:
        store.close()
    console.print(
        f"Guard was stuck: {report.guard_was_stuck}. "
        f"Stale running jobs resolved: {report.stale_jobs}."
    )


@app.command()
def search(
    query: str = typer.Argument(..., help="Filename substring"),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
    page: int = typer.Option(1, min=1, help="Page number"),
    limit: int = typer.Option(10, min=1, help="Results per page"),
    sort: SortOrder = typer.Option(SortOrder.ASC, help="Sort order by filename"),
) -> None:
    """Search indexed files by name."""
    config = _load_config(db)
    store = _open_store(config, must_exist=True)
    try:
        file_query = FileQuery(store)
        results = file_query.search_by_name(query, page=page, limit=limit, order=sort)
        total = file_query.count_by_name(query)
    finally:
        store.close()

    if not results:
        console.print("[yellow]No matches found.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Filename")
    table.add_column("Directory")
    table.add_column("Size", justify="right")
    table.add_column("Modified")
    for record in results:
        table.add_row(record.filename, record.directory, str(record.size), record.modified)

    console.print(table)
    console.print(f"Page {page}, showing {len(results)} of {total} matches")


@app.command()
def count(
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """Print the number of indexed files."""
    config = _load_config(db)
    store = _open_store(config, must_exist=True)
    try:
        total = FileQuery(store).count_all()
    finally:
        store.close()
    console.print(f"Indexed files: {total}")


@app.command()
def history(
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
    status: JobFilter = typer.Option(JobFilter.ALL, help="Filter by job status"),
    page: int = typer.Option(1, min=1, help="Page number"),
    limit: int = typer.Option(10, min=1, help="Jobs per page"),
) -> None:
    """Show indexing job history, most recent first."""
    config = _load_config(db)
    store = _open_store(config, must_exist=True)
    try:
        jobs = JobTracker(store).history(status, page=page, limit=limit)
    finally:
        store.close()

    if not jobs:
        console.print("[yellow]No indexing jobs recorded.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("ID", justify="right")
    table.add_column("Status")
    table.add_column("Trigger")
    table.add_column("Started")
    table.add_column("Ended")
    table.add_column("Total", justify="right")
    table.add_column("New", justify="right")
    table.add_column("Error")
    for job in jobs:
        table.add_row(
            str(job.id),
            job.status.value,
            job.trigger,
            job.started_at,
            job.ended_at or "",
            str(job.total_files),
            str(job.new_files),
            job.error or "",
        )
    console.print(table)


@app.command()
def status(
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """Show whether an indexing run is active."""
    config = _load_config(db)
    store = _open_store(config, must_exist=True)
    try:
        state = ConcurrencyGuard(store).state()
    finally:
        store.close()
    console.print(f"Indexing: {state.is_indexing}")
    console.print(f"Last indexed: {state.last_indexed or 'never'}")


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", help="Host interface"),
    port: int = typer.Option(3000, help="Server port"),
    db: Path = typer.Option(None, "--db", help="SQLite database path"),
    with_scheduler: bool = typer.Option(
        False, "--schedule", help="Also run the cron scheduler in a background thread"
    ),
) -> None:
    """Start the HTTP query API."""
    try:
        import uvicorn
    except ImportError as exc:  # pragma: no cover
        raise typer.BadParameter(
            "uvicorn is not installed. Install the web extras with \"python -m pip install '.[web]'\""
        ) from exc

    config = _load_config(db)
    resolved_db = config.resolve_db_path(Path.cwd())
    web_app.state.config = config
    web_app.state.recover_on_startup = not with_scheduler

    stop_event = threading.Event()
    if with_scheduler:
        _setup_logging(False)
        threading.Thread(
            target=_run_scheduler,
            args=(config, stop_event),
            name="galleryindex-scheduler",
            daemon=True,
        ).start()

    console.print(f"Starting query API on http://{host}:{port} (database: {resolved_db})")
    try:
        uvicorn.run(
            web_app,
            host=host,
            port=port,
            reload=False,
            log_level="info",
        )
    finally:
        stop_event.set()
