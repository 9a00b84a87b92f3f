"""Plain-text notification content per notification kind."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from campus_scheduler.errors import TemplateDataMissing
from campus_scheduler.models.db.enums import NotificationKind
from campus_scheduler.models.schemas.notifications import Recipient
from campus_scheduler.utils import ensure_utc, utc_now

GENERAL_SUBJECT = "College Management System Notification"
DEFAULT_GENERAL_MESSAGE = "You have a new notification from the College Management System."


@dataclass(frozen=True, slots=True)
class RenderedMessage:
    subject: str
    body: str
    sms_text: str


def _format_amount(raw: Any) -> str:
    try:
        return f"{Decimal(str(raw)):.2f}"
    except (InvalidOperation, ValueError):
        return str(raw)


def _parse_due(raw: Any) -> datetime:
    if isinstance(raw, datetime):
        return ensure_utc(raw)
    return ensure_utc(datetime.fromisoformat(str(raw)))


def _fee_fields(kind: NotificationKind, recipient: Recipient) -> tuple[str, datetime]:
    missing = [key for key in ("amount", "due_at") if recipient.details.get(key) in (None, "")]
    if missing:
        raise TemplateDataMissing(kind.value, missing)
    try:
        due_at = _parse_due(recipient.details["due_at"])
    except ValueError:
        raise TemplateDataMissing(kind.value, ["due_at"])
    return _format_amount(recipient.details["amount"]), due_at


def render(kind: NotificationKind, recipient: Recipient, *, now: Optional[datetime] = None) -> RenderedMessage:
    """Build subject/body/SMS text for one recipient.

    Raises TemplateDataMissing when a fee reminder lacks amount or due date.
    """
    now = ensure_utc(now or utc_now())
    name = recipient.display_name

    if kind == NotificationKind.OVERDUE:
        amount, due_at = _fee_fields(kind, recipient)
        days = max(0, (now - due_at).days)
        text = (
            f"Dear {name}, your fee of {amount} is overdue by {days} days. "
            "Please pay immediately to avoid further penalties."
        )
        return RenderedMessage(subject="Fee Payment Overdue", body=text, sms_text=text)

    if kind == NotificationKind.UPCOMING:
        amount, due_at = _fee_fields(kind, recipient)
        text = (
            f"Dear {name}, your fee of {amount} is due on {due_at:%d %b %Y}. "
            "Please pay before the due date to avoid a fine."
        )
        return RenderedMessage(subject="Fee Payment Reminder", body=text, sms_text=text)

    message = str(recipient.details.get("message") or DEFAULT_GENERAL_MESSAGE)
    return RenderedMessage(
        subject=str(recipient.details.get("subject") or GENERAL_SUBJECT),
        body=f"Dear {name},\n\n{message}",
        sms_text=message,
    )


__all__ = ["RenderedMessage", "render", "GENERAL_SUBJECT"]
