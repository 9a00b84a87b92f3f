"""Per-recipient, per-channel notification delivery.

For every recipient in the batch, in order:
  * email address present -> one ``send_message`` call
  * phone number present  -> one ``send_sms`` call
A recipient with neither is skipped. Every (recipient, channel) attempt is
isolated: a send error or missing message data is logged against the
recipient's identity and the loop moves on.

Only a failure before the loop starts (malformed batch, unknown kind) escapes
``dispatch``; inside a job that counts as a failed attempt and is retried.

Counting: a recipient is ``sent`` if at least one channel delivered,
``skipped`` if it has no channel, ``failed`` otherwise.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Optional

from campus_scheduler.channels.base import ChannelSender
from campus_scheduler.models.db.enums import NotificationKind
from campus_scheduler.models.schemas.notifications import DispatchSummary, Recipient, parse_recipient_batch
from campus_scheduler.services.messages import render
from campus_scheduler.utils import get_logger

logger = get_logger(__name__)


def _deliver(channel: ChannelSender, channel_name: str, recipient: Recipient, kind: NotificationKind, message) -> bool:
    try:
        if channel_name == "email":
            channel.send_message(recipient.email, message.subject, message.body)  # type: ignore[arg-type]
        else:
            channel.send_sms(recipient.phone, message.sms_text)  # type: ignore[arg-type]
    except Exception as e:
        logger.error(
            "Notification delivery failed",
            recipient_id=recipient.identity,
            channel=channel_name,
            kind=kind.value,
            error=str(e),
            error_type=type(e).__name__,
        )
        return False
    logger.info(
        "Notification delivered",
        recipient_id=recipient.identity,
        channel=channel_name,
        kind=kind.value,
    )
    return True


def notify_recipient(channel: ChannelSender, recipient: Recipient, kind: NotificationKind, *, now: Optional[datetime] = None) -> str:
    """Attempt every available channel for one recipient.

    Returns "sent", "skipped" or "failed". Never raises for delivery problems.
    """
    channels = recipient.channels
    if not channels:
        logger.info("Recipient has no contact channel", recipient_id=recipient.identity, kind=kind.value)
        return "skipped"

    try:
        message = render(kind, recipient, now=now)
    except Exception as e:
        logger.error(
            "Notification message could not be built",
            recipient_id=recipient.identity,
            kind=kind.value,
            error=str(e),
            error_type=type(e).__name__,
        )
        return "failed"

    delivered = [_deliver(channel, name, recipient, kind, message) for name in channels]
    return "sent" if any(delivered) else "failed"


def dispatch(
    recipients: Iterable[Recipient] | Iterable[dict[str, Any]],
    kind: NotificationKind | str,
    channel: ChannelSender,
    *,
    now: Optional[datetime] = None,
) -> DispatchSummary:
    """Fan one notification kind out to a recipient batch."""
    kind = NotificationKind(kind)
    batch = parse_recipient_batch(recipients)

    counts = {"sent": 0, "skipped": 0, "failed": 0}
    for recipient in batch:
        counts[notify_recipient(channel, recipient, kind, now=now)] += 1

    summary = DispatchSummary(kind=kind, total=len(batch), **counts)
    logger.info(
        "Notification batch dispatched",
        kind=kind.value,
        total=summary.total,
        sent=summary.sent,
        skipped=summary.skipped,
        failed=summary.failed,
    )
    return summary


__all__ = ["dispatch", "notify_recipient"]
