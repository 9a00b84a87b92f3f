"""
CLI: ``campus-scheduler``, the scheduled publish and reminder operations.

Each command is one trigger invocation: it opens a session, runs its flow(s),
prints progress, and exits 0 on success or 1 on failure. Jobs handed to the
queue are given up to ``QUEUE_SETTINGS["drain_timeout_seconds"]`` to finish
before the process exits; their outcome does not change the exit code.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, Iterator, Optional

import typer

from campus_scheduler.config import LOG_FILE, LOG_LEVEL, QUEUE_SETTINGS
from campus_scheduler.database import SessionLocal
from campus_scheduler.errors import ValidationError
from campus_scheduler.jobs.worker import JobQueue, create_job_queue
from campus_scheduler.services import triggers
from campus_scheduler.utils import get_logger, setup_logging

logger = get_logger(__name__)

app = typer.Typer(
    name="campus-scheduler",
    help="Publish scheduled content and notices; queue fee reminders and notifications.",
    no_args_is_help=True,
    add_completion=False,
)


@app.callback()
def main(
    log_level: str = typer.Option(LOG_LEVEL, "--log-level", help="Logging level"),
    log_file: Optional[str] = typer.Option(LOG_FILE, "--log-file", help="JSON log file"),
) -> None:
    """Configure logging once per invocation."""
    setup_logging(log_level=log_level.upper(), log_file=log_file)


@contextmanager
def _invocation(with_queue: bool) -> Iterator[tuple]:
    session = SessionLocal()
    job_queue: JobQueue | None = create_job_queue() if with_queue else None
    try:
        yield session, job_queue
    finally:
        session.close()
        if job_queue is not None:
            drain_timeout = float(QUEUE_SETTINGS.get("drain_timeout_seconds", 900))  # type: ignore[arg-type]
            if job_queue.pending:
                logger.info("Waiting for queued jobs", pending=job_queue.pending, timeout_seconds=drain_timeout)
            job_queue.shutdown(wait=True, timeout=drain_timeout)


def _run(with_queue: bool, flow: Callable[..., object]) -> None:
    report = triggers.TriggerReport(echo=typer.echo)
    try:
        with _invocation(with_queue) as (session, job_queue):
            flow(session, job_queue, report)
    except ValidationError as e:
        typer.echo(f"Error: {e.message}", err=True)
        raise typer.Exit(code=1)
    raise typer.Exit(code=report.exit_code)


@app.command("content:publish")
def content_publish(
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would be published without publishing"),
) -> None:
    """Publish content and notices whose scheduled date has passed."""
    _run(False, lambda session, _q, report: triggers.content_publish(session, dry_run=dry_run, report=report))


@app.command("notice:publish")
def notice_publish(
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would be published without publishing"),
) -> None:
    """Publish notices whose scheduled date has passed."""
    _run(False, lambda session, _q, report: triggers.notice_publish(session, dry_run=dry_run, report=report))


@app.command("fees:remind")
def fees_remind(
    days: int = typer.Option(7, "--days", help="Days ahead of the due date to send a reminder"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would be sent without sending"),
) -> None:
    """Queue reminders for overdue and upcoming unpaid fees."""
    _run(
        True,
        lambda session, job_queue, report: triggers.fees_remind(
            session, job_queue, horizon_days=days, dry_run=dry_run, report=report
        ),
    )


@app.command("notify:staff")
def notify_staff(
    kind: str = typer.Option("general", "--kind", help="Notification kind"),
    message: Optional[str] = typer.Option(None, "--message", "-m", help="Message text"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Count recipients without sending"),
) -> None:
    """Queue a notification to every active staff member."""
    _run(
        True,
        lambda session, job_queue, report: triggers.notify_staff(
            session, job_queue, kind=kind, message=message, dry_run=dry_run, report=report
        ),
    )


@app.command("notify:students")
def notify_students(
    kind: str = typer.Option("general", "--kind", help="Notification kind"),
    message: Optional[str] = typer.Option(None, "--message", "-m", help="Message text"),
    program_id: Optional[int] = typer.Option(None, "--program", help="Only students of this program"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Count recipients without sending"),
) -> None:
    """Queue a notification to every active student."""
    _run(
        True,
        lambda session, job_queue, report: triggers.notify_students(
            session, job_queue, kind=kind, message=message, program_id=program_id, dry_run=dry_run, report=report
        ),
    )


@app.command("schedule:run")
def schedule_run(
    days: int = typer.Option(7, "--days", help="Fee reminder horizon in days"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Report without publishing or sending"),
) -> None:
    """Run content, notice and fee reminder flows once (cron entry point)."""
    _run(
        True,
        lambda session, job_queue, report: triggers.run_scheduled(
            session, job_queue, horizon_days=days, dry_run=dry_run, report=report
        ),
    )


__all__ = ["app"]
