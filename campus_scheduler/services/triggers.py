"""Scheduled trigger flows.

Each flow is one synchronous pass over the store:

* publish flows: find due drafts, publish each (or list them under dry-run);
* fee reminder flow: find overdue and upcoming unpaid fees and hand one
  notification job per non-empty set to the job queue;
* roster notification flows: resolve staff/students and hand one job over.

Progress lines go to the ``TriggerReport`` (the CLI echoes them). A flow that
fails is reported with ``ok=False``; it does not stop the next flow of a
combined run. Job submission is fire-and-forget: a flow's outcome never
depends on how its jobs eventually finish.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional, Sequence, Type

from sqlalchemy.orm import Session

from campus_scheduler.channels.base import ChannelSender
from campus_scheduler.config import FEE_REMINDER_SETTINGS
from campus_scheduler.errors import InvalidParameter
from campus_scheduler.jobs.base import JobHandle
from campus_scheduler.jobs.notification_job import NotificationJob
from campus_scheduler.jobs.worker import JobQueue
from campus_scheduler.models.db.contents import Content
from campus_scheduler.models.db.enums import NotificationKind
from campus_scheduler.models.db.notices import Notice
from campus_scheduler.models.db.publishable import PublishableMixin
from campus_scheduler.models.schemas.notifications import Recipient
from campus_scheduler.services.eligibility import find_eligible, find_overdue, find_upcoming, validate_horizon
from campus_scheduler.services.publisher import apply_transition
from campus_scheduler.services.recipients import recipients_for_fees, staff_roster, student_roster
from campus_scheduler.utils import get_logger, utc_now
from campus_scheduler.utils.time import format_elapsed

logger = get_logger(__name__)

# entity kind -> (label used per entity, label used in the phase lines)
_ENTITY_LABELS = {
    "content": ("content", "Content"),
    "notice": ("notice", "Notices"),
}


@dataclass
class FlowResult:
    name: str
    ok: bool
    count: int = 0
    error: Optional[str] = None
    handles: list[JobHandle] = field(default_factory=list)


class TriggerReport:
    """Progress lines and per-flow outcomes of one trigger invocation."""

    def __init__(self, echo: Optional[Callable[[str], None]] = None):
        self.lines: list[str] = []
        self.flows: list[FlowResult] = []
        self._echo = echo

    def say(self, line: str) -> None:
        self.lines.append(line)
        if self._echo is not None:
            self._echo(line)

    def record(self, result: FlowResult) -> FlowResult:
        self.flows.append(result)
        return result

    @property
    def ok(self) -> bool:
        return all(flow.ok for flow in self.flows)

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1

    @property
    def handles(self) -> list[JobHandle]:
        return [h for flow in self.flows for h in flow.handles]


def _publish_entities(
    session: Session,
    entity_cls: Type[PublishableMixin],
    *,
    now: datetime,
    dry_run: bool,
    report: TriggerReport,
    result: FlowResult,
) -> None:
    singular, phase = _ENTITY_LABELS.get(entity_cls.kind, (entity_cls.kind, entity_cls.kind.capitalize()))
    report.say(f"Processing {phase.lower()}...")

    count = 0
    for entity in find_eligible(session, entity_cls, now):
        label = f"{entity.display_label} (ID: {entity.id})"  # type: ignore[attr-defined]
        if dry_run:
            report.say(f"Would publish {singular}: {label}")
            count += 1
            result.count += 1
            continue
        # ApplyFailure propagates; records already published stay published.
        if apply_transition(session, entity, now=now).applied:
            report.say(f"Published {singular}: {label}")
            count += 1
            result.count += 1

    report.say(f"{phase} processed: {count} items")


def _run_publish_flow(
    name: str,
    session: Session,
    entity_classes: Sequence[Type[PublishableMixin]],
    *,
    now: datetime,
    dry_run: bool,
    report: TriggerReport,
    noun: str,
    done_suffix: str,
) -> FlowResult:
    report.say(f"Starting {noun} publish process...")
    if dry_run:
        report.say(f"DRY RUN MODE - No {noun} will be actually published")
    logger.info("Publish flow started", flow=name, dry_run=dry_run, now=now.isoformat())

    # Counted per record so a failure still reports what was already committed.
    result = FlowResult(name=name, ok=True)
    try:
        for entity_cls in entity_classes:
            _publish_entities(session, entity_cls, now=now, dry_run=dry_run, report=report, result=result)
    except Exception as e:
        session.rollback()
        logger.error("Publish flow failed", flow=name, published=result.count, error=str(e), error_type=type(e).__name__)
        report.say(f"{noun.capitalize()} publish process failed: {e}")
        report.say(f"Published before failure: {result.count} {done_suffix}")
        result.ok = False
        result.error = str(e)
        return report.record(result)

    report.say(f"{noun.capitalize()} publish process completed. Published: {result.count} {done_suffix}")
    logger.info("Publish flow completed", flow=name, published=result.count, dry_run=dry_run)
    return report.record(result)


def content_publish(
    session: Session,
    *,
    now: Optional[datetime] = None,
    dry_run: bool = False,
    report: Optional[TriggerReport] = None,
    entity_classes: Sequence[Type[PublishableMixin]] = (Content, Notice),
) -> FlowResult:
    """Publish due content items and notices."""
    return _run_publish_flow(
        "content:publish",
        session,
        entity_classes,
        now=now or utc_now(),
        dry_run=dry_run,
        report=report or TriggerReport(),
        noun="content",
        done_suffix="items",
    )


def notice_publish(
    session: Session,
    *,
    now: Optional[datetime] = None,
    dry_run: bool = False,
    report: Optional[TriggerReport] = None,
) -> FlowResult:
    """Publish due notices only."""
    return _run_publish_flow(
        "notice:publish",
        session,
        (Notice,),
        now=now or utc_now(),
        dry_run=dry_run,
        report=report or TriggerReport(),
        noun="notice",
        done_suffix="notices",
    )


def _submit(
    job_queue: JobQueue,
    notification_type: str,
    recipients: Sequence[Recipient],
    kind: NotificationKind,
    channel: Optional[ChannelSender],
) -> JobHandle:
    job = NotificationJob.create(notification_type, recipients, kind, channel=channel)
    return job_queue.submit(job)


def fees_remind(
    session: Session,
    job_queue: JobQueue,
    *,
    now: Optional[datetime] = None,
    horizon_days: Optional[int] = None,
    dry_run: bool = False,
    report: Optional[TriggerReport] = None,
    channel: Optional[ChannelSender] = None,
) -> FlowResult:
    """Queue reminder jobs for overdue and upcoming unpaid fees.

    Raises InvalidParameter for a bad horizon before touching the store.
    """
    if horizon_days is None:
        horizon_days = int(FEE_REMINDER_SETTINGS["default_horizon_days"])
    horizon_days = validate_horizon(horizon_days)
    now = now or utc_now()
    report = report or TriggerReport()

    report.say("Starting fee reminder process...")
    if dry_run:
        report.say("DRY RUN MODE - No reminders will be actually sent")
    logger.info("Fee reminder flow started", horizon_days=horizon_days, dry_run=dry_run, now=now.isoformat())

    result = FlowResult(name="fees:remind", ok=True)
    try:
        overdue = find_overdue(session, now)
        report.say(f"Found {len(overdue)} overdue fees")
        upcoming = find_upcoming(session, now, horizon_days)
        report.say(f"Found {len(upcoming)} upcoming due fees")

        result.count = len(overdue) + len(upcoming)
        if result.count == 0:
            report.say("No fees require reminders at this time.")
            return report.record(result)

        if dry_run:
            report.say(f"Would send reminders for {result.count} fees")
        else:
            for kind, fees in ((NotificationKind.OVERDUE, overdue), (NotificationKind.UPCOMING, upcoming)):
                if not fees:
                    continue
                recipients = recipients_for_fees(fees)
                if not recipients:
                    logger.warning("No resolvable fee owners; job not submitted", kind=kind.value, fee_count=len(fees))
                    continue
                result.handles.append(_submit(job_queue, "fee_reminder", recipients, kind, channel))
                report.say(f"Dispatched job for {len(fees)} {kind.value} fees")
    except Exception as e:
        logger.error("Fee reminder flow failed", error=str(e), error_type=type(e).__name__)
        report.say(f"Fee reminder process failed: {e}")
        result.ok = False
        result.error = str(e)
        return report.record(result)

    report.say("Fee reminder process completed successfully")
    logger.info("Fee reminder flow completed", fee_count=result.count, jobs=len(result.handles), dry_run=dry_run)
    return report.record(result)


def _parse_kind(kind: NotificationKind | str) -> NotificationKind:
    try:
        return NotificationKind(kind)
    except ValueError:
        allowed = ", ".join(k.value for k in NotificationKind)
        raise InvalidParameter(f"kind must be one of: {allowed}; got {kind!r}", field="kind")


def _notify_roster(
    name: str,
    audience: str,
    notification_type: str,
    load: Callable[[], list[Recipient]],
    job_queue: JobQueue,
    *,
    kind: NotificationKind,
    dry_run: bool,
    report: TriggerReport,
    channel: Optional[ChannelSender],
) -> FlowResult:
    report.say(f"Starting {audience} notification process...")
    if dry_run:
        report.say("DRY RUN MODE - No notifications will be actually sent")

    result = FlowResult(name=name, ok=True)
    try:
        recipients = load()
        result.count = len(recipients)
        report.say(f"Found {result.count} {audience} recipients")
        if not recipients:
            report.say(f"No {audience} require notification at this time.")
        elif dry_run:
            report.say(f"Would notify {result.count} {audience}")
        else:
            result.handles.append(_submit(job_queue, notification_type, recipients, kind, channel))
            report.say(f"Dispatched job for {result.count} {audience}")
    except Exception as e:
        logger.error("Roster notification flow failed", flow=name, error=str(e), error_type=type(e).__name__)
        report.say(f"{audience.capitalize()} notification process failed: {e}")
        result.ok = False
        result.error = str(e)
        return report.record(result)

    logger.info("Roster notification flow completed", flow=name, recipients=result.count, dry_run=dry_run)
    return report.record(result)


def notify_staff(
    session: Session,
    job_queue: JobQueue,
    *,
    kind: NotificationKind | str = NotificationKind.GENERAL,
    message: Optional[str] = None,
    dry_run: bool = False,
    report: Optional[TriggerReport] = None,
    channel: Optional[ChannelSender] = None,
) -> FlowResult:
    return _notify_roster(
        "notify:staff",
        "staff",
        "staff_notification",
        lambda: staff_roster(session, message=message),
        job_queue,
        kind=_parse_kind(kind),
        dry_run=dry_run,
        report=report or TriggerReport(),
        channel=channel,
    )


def notify_students(
    session: Session,
    job_queue: JobQueue,
    *,
    kind: NotificationKind | str = NotificationKind.GENERAL,
    message: Optional[str] = None,
    program_id: Optional[int] = None,
    dry_run: bool = False,
    report: Optional[TriggerReport] = None,
    channel: Optional[ChannelSender] = None,
) -> FlowResult:
    return _notify_roster(
        "notify:students",
        "students",
        "student_notification",
        lambda: student_roster(session, program_id=program_id, message=message),
        job_queue,
        kind=_parse_kind(kind),
        dry_run=dry_run,
        report=report or TriggerReport(),
        channel=channel,
    )


def run_scheduled(
    session: Session,
    job_queue: JobQueue,
    *,
    now: Optional[datetime] = None,
    horizon_days: Optional[int] = None,
    dry_run: bool = False,
    report: Optional[TriggerReport] = None,
    channel: Optional[ChannelSender] = None,
) -> TriggerReport:
    """Content, notice and fee reminder flows in sequence, sharing one ``now``."""
    if horizon_days is not None:
        validate_horizon(horizon_days)
    now = now or utc_now()
    report = report or TriggerReport()
    started = utc_now()
    logger.info("Scheduled run started", now=now.isoformat(), dry_run=dry_run)

    content_publish(session, now=now, dry_run=dry_run, report=report, entity_classes=(Content,))
    notice_publish(session, now=now, dry_run=dry_run, report=report)
    fees_remind(session, job_queue, now=now, horizon_days=horizon_days, dry_run=dry_run, report=report, channel=channel)

    logger.info(
        "Scheduled run finished",
        ok=report.ok,
        elapsed=format_elapsed(started),
        failed_flows=[flow.name for flow in report.flows if not flow.ok] or None,
    )
    return report


__all__ = [
    "FlowResult",
    "TriggerReport",
    "content_publish",
    "notice_publish",
    "fees_remind",
    "notify_staff",
    "notify_students",
    "run_scheduled",
]
