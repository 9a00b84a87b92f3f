"""Recipient resolution from fee owners and staff/student rosters."""
from __future__ import annotations

from typing import Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from campus_scheduler.errors import QueryFailure
from campus_scheduler.models.db.enums import RecordStatus
from campus_scheduler.models.db.fees import Fee
from campus_scheduler.models.db.students import Student
from campus_scheduler.models.db.users import User
from campus_scheduler.models.schemas.notifications import Recipient
from campus_scheduler.utils import get_logger, ensure_utc

logger = get_logger(__name__)


def recipient_from_fee(fee: Fee) -> Optional[Recipient]:
    """Owner of the fee, carrying the fee data the reminder needs."""
    enroll = fee.student_enroll
    student = enroll.student if enroll is not None else None
    if student is None:
        logger.warning("Fee owner not resolvable; reminder skipped", fee_id=fee.id)
        return None
    return Recipient(
        identity=student.id,
        display_name=student.full_name or student.student_id,
        email=student.email,
        phone=student.phone,
        details={
            "fee_id": fee.id,
            "amount": str(fee.fee_amount),
            "due_at": ensure_utc(fee.due_at).isoformat(),
        },
    )


def recipients_for_fees(fees: Iterable[Fee]) -> list[Recipient]:
    """One recipient per fee, in the order given."""
    batch = []
    for fee in fees:
        recipient = recipient_from_fee(fee)
        if recipient is not None:
            batch.append(recipient)
    return batch


def staff_roster(session: Session, *, message: Optional[str] = None) -> list[Recipient]:
    try:
        users = (
            session.query(User)
            .filter(User.status == RecordStatus.ACTIVE)
            .order_by(User.id)
            .all()
        )
    except SQLAlchemyError as e:
        raise QueryFailure(f"Could not load staff roster: {e}") from e
    details = {"message": message} if message else {}
    return [
        Recipient(identity=u.id, display_name=u.full_name or u.staff_id, email=u.email, phone=u.phone, details=details)
        for u in users
    ]


def student_roster(session: Session, *, program_id: Optional[int] = None, message: Optional[str] = None) -> list[Recipient]:
    try:
        query = session.query(Student).filter(Student.status == RecordStatus.ACTIVE)
        if program_id is not None:
            query = query.filter(Student.program_id == program_id)
        students = query.order_by(Student.id).all()
    except SQLAlchemyError as e:
        raise QueryFailure(f"Could not load student roster: {e}") from e
    details = {"message": message} if message else {}
    return [
        Recipient(identity=s.id, display_name=s.full_name or s.student_id, email=s.email, phone=s.phone, details=details)
        for s in students
    ]


__all__ = ["recipient_from_fee", "recipients_for_fees", "staff_roster", "student_roster"]
