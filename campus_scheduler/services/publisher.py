"""Draft -> published transition for a single publishable record.

This is the only write the publish flows perform. Dry-run callers never reach
it; they report the eligible set instead, so a dry run exercises exactly the
same eligibility computation as a real one.

Each transition is committed on its own. A failure part-way through a loop
leaves the records already handled published.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from campus_scheduler.errors import ApplyFailure
from campus_scheduler.models.db.enums import PublishStatus
from campus_scheduler.models.db.publishable import PublishableMixin
from campus_scheduler.services.eligibility import is_publish_due
from campus_scheduler.utils import get_logger, ensure_utc

logger = get_logger(__name__)


@dataclass(slots=True)
class ApplyResult:
    applied: bool
    entity_kind: str
    entity_id: object
    reason: Optional[str] = None


def apply_transition(session: Session, entity: PublishableMixin, *, now: Optional[datetime] = None) -> ApplyResult:
    """Publish ``entity`` and persist it.

    Already-published records are left alone (``applied=False``). When ``now``
    is given, a record whose scheduled time is still in the future is also
    left alone.
    """
    kind = entity.kind
    entity_id = getattr(entity, "id", None)

    if entity.status == PublishStatus.PUBLISHED:
        logger.debug("Transition skipped, already published", entity_kind=kind, entity_id=entity_id)
        return ApplyResult(applied=False, entity_kind=kind, entity_id=entity_id, reason="already_published")

    scheduled_at = getattr(entity, "scheduled_at", None)
    if now is not None and scheduled_at is not None and not is_publish_due(entity, now):
        logger.warning(
            "Transition skipped, not yet due",
            entity_kind=kind,
            entity_id=entity_id,
            scheduled_at=ensure_utc(scheduled_at).isoformat(),
        )
        return ApplyResult(applied=False, entity_kind=kind, entity_id=entity_id, reason="not_due")

    try:
        entity.status = PublishStatus.PUBLISHED
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.error("Publish transition failed", entity_kind=kind, entity_id=entity_id, error=str(e))
        raise ApplyFailure(
            f"Could not publish {kind} {entity_id}: {e}", entity_kind=kind, entity_id=entity_id
        ) from e

    logger.info("Published", entity_kind=kind, entity_id=entity_id, label=entity.display_label)
    return ApplyResult(applied=True, entity_kind=kind, entity_id=entity_id)


__all__ = ["ApplyResult", "apply_transition"]
