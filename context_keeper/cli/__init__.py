"""
Command Line Interface for context-keeper.
"""

import sys
from typing import Optional

import typer
from rich import print as rprint
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..config import get_settings
from ..db.base import Store
from ..db.models import JOB_STATUSES
from ..db.services import FindingService
from ..ingestion.capture import capture_event
from ..log import configure_logging
from ..queue.job_queue import JobQueue

app = typer.Typer(help="context-keeper - sanitized conversation capture and background processing")
console = Console()
err_console = Console(stderr=True)

STATUS_STYLES = {
    "queued": "yellow",
    "in_progress": "cyan",
    "completed": "green",
    "failed": "red",
    "dead_letter": "bold red",
}


def _open_store() -> Store:
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format)
    store = Store.from_settings(settings)
    store.create_all()
    return store


@app.command()
def capture():
    """Capture one JSON event from stdin. Always exits 0."""
    try:
        store = _open_store()
    except Exception as e:
        # The producer must never see a failure
        err_console.print(f"capture skipped: {type(e).__name__}")
        return

    try:
        raw = sys.stdin.read()
        result = capture_event(store, raw, max_attempts=get_settings().job_max_attempts)
        if result:
            err_console.print(f"Event processed: message {result.message_id}")
    except Exception as e:
        err_console.print(f"capture skipped: {type(e).__name__}")
    finally:
        store.dispose()


@app.command("init-db")
def init_db():
    """Create all tables in the configured database."""
    store = _open_store()
    store.dispose()
    console.print("✅ Database initialized")


@app.command()
def jobs(
    status: Optional[str] = typer.Option(None, help="Filter by status"),
    job_type: Optional[str] = typer.Option(None, "--type", help="Filter by job type"),
    limit: int = typer.Option(50, help="Maximum rows to show"),
):
    """List jobs in the queue, oldest first."""
    if status and status not in JOB_STATUSES:
        console.print(f"❌ Invalid status. Use one of: {', '.join(JOB_STATUSES)}")
        raise typer.Exit(code=1)

    store = _open_store()
    try:
        with store.session_scope() as db:
            rows = [job.to_dict() for job in JobQueue(db).list_jobs(status, job_type, limit)]
    finally:
        store.dispose()

    if not rows:
        console.print("No jobs found")
        return

    table = Table(title="Jobs", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="cyan")
    table.add_column("Type")
    table.add_column("Status")
    table.add_column("Attempts", justify="right")
    table.add_column("Updated")
    table.add_column("Error")

    for row in rows:
        style = STATUS_STYLES.get(row["status"], "white")
        error = row["error"] or ""
        table.add_row(
            row["id"],
            row["type"],
            f"[{style}]{row['status']}[/{style}]",
            f"{row['attempts']}/{row['max_attempts']}",
            row["updated_at"] or "",
            error[:60] + "..." if len(error) > 60 else error,
        )

    console.print(table)


@app.command("queue-stats")
def queue_stats():
    """Show job counts per type and status."""
    store = _open_store()
    try:
        with store.session_scope() as db:
            counts = JobQueue(db).count_by_status()
    finally:
        store.dispose()

    if not counts:
        console.print("Queue is empty")
        return

    table = Table(title="Queue", show_header=True, header_style="bold cyan")
    table.add_column("Type", style="yellow")
    for status in JOB_STATUSES:
        table.add_column(status, justify="right", style=STATUS_STYLES[status])

    for job_type in sorted({job_type for job_type, _ in counts}):
        table.add_row(job_type, *[str(counts.get((job_type, s), 0)) for s in JOB_STATUSES])

    console.print(table)


@app.command()
def findings(limit: int = typer.Option(20, help="Maximum rows to show")):
    """Show the most recent deep-validation findings."""
    store = _open_store()
    try:
        with store.session_scope() as db:
            rows = [f.to_dict() for f in FindingService(db).get_findings(limit=limit)]
    finally:
        store.dispose()

    if not rows:
        console.print("No findings recorded")
        return

    table = Table(title="Sanitization findings", show_header=True, header_style="bold red")
    table.add_column("Message", style="cyan")
    table.add_column("Issues")
    table.add_column("Recorded")
    for row in rows:
        table.add_row(row["message_id"], ", ".join(map(str, row["issues"])), row["created_at"] or "")

    console.print(table)


@app.command()
def version():
    """Show version information."""
    from .. import __version__

    rprint(Panel.fit(f"context-keeper v{__version__}", style="bold green"))


def main():
    """Main CLI entry point."""
    app()


if __name__ == "__main__":
    main()
