"""Exception hierarchy for the scheduled publish / reminder pipeline.

    SchedulerError
    ├── ValidationError        bad parameters, raised before any query
    │   └── InvalidParameter
    ├── QueryFailure           store unreachable while computing eligibility
    ├── ApplyFailure           status write failed mid-loop
    ├── NotificationError      per-recipient, isolated by the fan-out
    │   ├── ChannelSendFailure
    │   └── TemplateDataMissing
    ├── JobAttemptFailure      whole-batch failure of one job attempt
    │   └── JobTimeout
    └── JobTerminalFailure     attempts exhausted (reported, never raised
                               past the queue)
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class SchedulerError(Exception):
    """Base exception for all pipeline errors."""

    def __init__(self, message: str = "Scheduler error", *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(SchedulerError):
    """Parameters rejected before querying."""

    def __init__(self, message: str, *, field: Optional[str] = None, **details: Any):
        if field:
            details["field"] = field
        super().__init__(message, details=details)
        self.field = field


class InvalidParameter(ValidationError):
    pass


class QueryFailure(SchedulerError):
    """Reading eligible records from the store failed."""


class ApplyFailure(SchedulerError):
    """Persisting a status transition failed.

    Entities applied earlier in the same loop stay applied.
    """

    def __init__(self, message: str, *, entity_kind: str, entity_id: Any):
        super().__init__(message, details={"entity_kind": entity_kind, "entity_id": entity_id})
        self.entity_kind = entity_kind
        self.entity_id = entity_id


class NotificationError(SchedulerError):
    """Failure delivering to a single recipient."""


class ChannelSendFailure(NotificationError):
    def __init__(self, channel: str, message: str):
        super().__init__(f"{channel} send failed: {message}", details={"channel": channel})
        self.channel = channel


class TemplateDataMissing(NotificationError):
    def __init__(self, kind: str, missing: list[str]):
        super().__init__(
            f"Missing data for '{kind}' notification: {', '.join(missing)}",
            details={"kind": kind, "missing": missing},
        )
        self.missing = missing


class JobAttemptFailure(SchedulerError):
    """One execution attempt of a queued job failed as a whole."""


class JobTimeout(JobAttemptFailure):
    def __init__(self, job_id: str, timeout_seconds: float):
        super().__init__(
            f"Job {job_id} exceeded its {timeout_seconds:g}s attempt timeout",
            details={"job_id": job_id, "timeout_seconds": timeout_seconds},
        )
        self.timeout_seconds = timeout_seconds


class JobTerminalFailure(SchedulerError):
    """Attempts exhausted. Recorded on the job handle, not raised to callers."""

    def __init__(self, job_id: str, attempts: int, last_error: BaseException | None):
        super().__init__(
            f"Job {job_id} failed permanently after {attempts} attempt(s)",
            details={"job_id": job_id, "attempts": attempts, "last_error": str(last_error) if last_error else None},
        )
        self.attempts = attempts
        self.last_error = last_error


__all__ = [
    "SchedulerError",
    "ValidationError",
    "InvalidParameter",
    "QueryFailure",
    "ApplyFailure",
    "NotificationError",
    "ChannelSendFailure",
    "TemplateDataMissing",
    "JobAttemptFailure",
    "JobTimeout",
    "JobTerminalFailure",
]
