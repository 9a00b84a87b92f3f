"""Notification job payload: one recipient batch, one notification kind."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from campus_scheduler.channels.base import ChannelSender
from campus_scheduler.config import JOB_SETTINGS
from campus_scheduler.jobs.base import QueuedJob
from campus_scheduler.models.db.enums import NotificationKind
from campus_scheduler.models.schemas.notifications import DispatchSummary, Recipient
from campus_scheduler.services.notification_fanout import dispatch
from campus_scheduler.utils import get_logger

logger = get_logger(__name__)


@dataclass(kw_only=True)
class NotificationJob(QueuedJob):
    recipient_batch: Sequence[Recipient] | Sequence[dict[str, Any]]
    kind: NotificationKind = NotificationKind.GENERAL
    notification_type: str = "staff_notification"
    # Resolved lazily from configuration when not injected.
    channel: Optional[ChannelSender] = field(default=None, repr=False, compare=False)

    @property
    def job_type(self) -> str:  # type: ignore[override]
        return self.notification_type

    @classmethod
    def create(
        cls,
        notification_type: str,
        recipients: Sequence[Recipient],
        kind: NotificationKind | str,
        *,
        channel: Optional[ChannelSender] = None,
    ) -> "NotificationJob":
        """Build a job with the attempt/timeout budget configured for its type."""
        if notification_type not in JOB_SETTINGS:
            raise ValueError(f"Unknown notification job type '{notification_type}'")
        settings = JOB_SETTINGS[notification_type]
        return cls(
            recipient_batch=list(recipients),
            kind=NotificationKind(kind),
            notification_type=notification_type,
            channel=channel,
            max_attempts=int(settings.get("max_attempts", 3)),
            timeout=float(settings.get("timeout_seconds", 120)),
            priority=str(settings.get("priority", "normal")),
        )

    def _resolve_channel(self) -> ChannelSender:
        if self.channel is None:
            from campus_scheduler.channels import create_channel_gateway
            self.channel = create_channel_gateway()
        return self.channel

    def handle(self) -> DispatchSummary:
        logger.info(
            "Notification job started",
            job_id=self.job_id,
            job_type=self.job_type,
            kind=NotificationKind(self.kind).value,
            recipient_count=len(self.recipient_batch),
            attempt=self.attempt_count,
        )
        summary = dispatch(self.recipient_batch, self.kind, self._resolve_channel())
        logger.info(
            "Notification job completed",
            job_id=self.job_id,
            job_type=self.job_type,
            sent=summary.sent,
            skipped=summary.skipped,
            failed=summary.failed,
        )
        return summary

    def on_terminal_failure(self, last_error: Optional[BaseException]) -> None:
        logger.error(
            "Notification job failed permanently",
            job_id=self.job_id,
            job_type=self.job_type,
            kind=str(getattr(self.kind, "value", self.kind)),
            attempts=self.attempt_count,
            error=str(last_error) if last_error else None,
            error_type=type(last_error).__name__ if last_error else None,
        )

    def log_fields(self) -> dict[str, Any]:
        fields = super().log_fields()
        fields["kind"] = str(getattr(self.kind, "value", self.kind))
        return fields


__all__ = ["NotificationJob"]
