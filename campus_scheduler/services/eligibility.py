"""Eligibility queries: which records does a trigger act on right now.

Read-only. Every function takes the query boundary ``now`` explicitly so a
trigger can capture it once and share it across flows (and tests can pin it).

Windows:
* Publishable entity: ``status = draft AND scheduled_at <= now``.
* Overdue fee:        ``status = unpaid AND due_at <= now``.
* Upcoming fee:       ``status = unpaid AND now < due_at <= now + horizon``.

The two fee windows are disjoint; an obligation due exactly at ``now`` is
overdue. A ``now`` in any timezone is compared as UTC, the zone everything is
stored in.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional, Type, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from campus_scheduler.config import FEE_REMINDER_SETTINGS
from campus_scheduler.errors import InvalidParameter, QueryFailure
from campus_scheduler.models.db.enums import FeeStatus, PublishStatus
from campus_scheduler.models.db.fees import Fee
from campus_scheduler.models.db.publishable import PublishableMixin
from campus_scheduler.models.db.students import StudentEnroll
from campus_scheduler.utils import get_logger, ensure_utc

logger = get_logger(__name__)

E = TypeVar("E", bound=PublishableMixin)


def validate_horizon(horizon_days: object) -> int:
    """Return the horizon as an int, or raise InvalidParameter."""
    if isinstance(horizon_days, bool) or not isinstance(horizon_days, int):
        raise InvalidParameter(
            f"horizon_days must be an integer, got {horizon_days!r}", field="horizon_days"
        )
    if horizon_days < 0:
        raise InvalidParameter(
            f"horizon_days must be >= 0, got {horizon_days}", field="horizon_days"
        )
    return horizon_days


def is_publish_due(entity: PublishableMixin, now: datetime) -> bool:
    """In-memory form of the publish window, for one loaded record."""
    return entity.status == PublishStatus.DRAFT and ensure_utc(entity.scheduled_at) <= ensure_utc(now)  # type: ignore[attr-defined]


def find_eligible(session: Session, entity_cls: Type[E], now: datetime) -> list[E]:
    """Drafts of ``entity_cls`` whose scheduled time has passed, oldest first."""
    now = ensure_utc(now)
    try:
        rows = (
            session.query(entity_cls)
            .filter(
                entity_cls.status == PublishStatus.DRAFT,
                entity_cls.scheduled_at <= now,  # type: ignore[attr-defined]
            )
            .order_by(entity_cls.scheduled_at, entity_cls.id)  # type: ignore[attr-defined]
            .all()
        )
    except SQLAlchemyError as e:
        logger.error("Eligibility query failed", entity_kind=entity_cls.kind, error=str(e))
        raise QueryFailure(f"Could not load due {entity_cls.kind} records: {e}") from e
    logger.debug("Eligible entities loaded", entity_kind=entity_cls.kind, count=len(rows))
    return rows


def _unpaid_fees_query(session: Session):
    # Owner is needed to build recipients; load it with the fee.
    return (
        session.query(Fee)
        .options(joinedload(Fee.student_enroll).joinedload(StudentEnroll.student))
        .filter(Fee.status == FeeStatus.UNPAID)
    )


def find_overdue(session: Session, now: datetime) -> list[Fee]:
    now = ensure_utc(now)
    try:
        rows = (
            _unpaid_fees_query(session)
            .filter(Fee.due_at <= now)
            .order_by(Fee.due_at, Fee.id)
            .all()
        )
    except SQLAlchemyError as e:
        logger.error("Overdue fee query failed", error=str(e))
        raise QueryFailure(f"Could not load overdue fees: {e}") from e
    return rows


def find_upcoming(session: Session, now: datetime, horizon_days: Optional[int] = None) -> list[Fee]:
    if horizon_days is None:
        horizon_days = int(FEE_REMINDER_SETTINGS["default_horizon_days"])
    horizon_days = validate_horizon(horizon_days)
    now = ensure_utc(now)
    window_end = now + timedelta(days=horizon_days)
    try:
        rows = (
            _unpaid_fees_query(session)
            .filter(Fee.due_at > now, Fee.due_at <= window_end)
            .order_by(Fee.due_at, Fee.id)
            .all()
        )
    except SQLAlchemyError as e:
        logger.error("Upcoming fee query failed", error=str(e), horizon_days=horizon_days)
        raise QueryFailure(f"Could not load upcoming fees: {e}") from e
    return rows


__all__ = [
    "validate_horizon",
    "is_publish_due",
    "find_eligible",
    "find_overdue",
    "find_upcoming",
]
