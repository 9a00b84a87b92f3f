"""Queued job contract.

A job carries its own attempt budget (``max_attempts``) and per-attempt
wall-clock budget (``timeout`` seconds). The queue calls ``handle()`` once per
attempt and ``on_terminal_failure()`` exactly once if every attempt failed.

Execution is at-least-once: ``handle()`` may run again after a partial
success (crash, timeout), so job bodies must tolerate re-runs.
"""
from __future__ import annotations

import enum
import threading
import uuid
from dataclasses import dataclass, field
from typing import Any, ClassVar, Optional

from campus_scheduler.errors import JobTerminalFailure
from campus_scheduler.utils import get_logger

logger = get_logger(__name__)


class JobState(str, enum.Enum):
    QUEUED = "queued"
    RUNNING = "running"
    RETRYING = "retrying"
    SUCCEEDED = "succeeded"
    FAILED_PERMANENTLY = "failed_permanently"


TERMINAL_STATES = frozenset({JobState.SUCCEEDED, JobState.FAILED_PERMANENTLY})


@dataclass(kw_only=True)
class QueuedJob:
    max_attempts: int = 3
    timeout: float = 60.0
    priority: str = "normal"
    attempt_count: int = 0
    job_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    job_type: ClassVar[str] = "job"

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.timeout <= 0:
            raise ValueError("timeout must be > 0")

    def handle(self) -> Any:
        raise NotImplementedError

    def on_terminal_failure(self, last_error: Optional[BaseException]) -> None:
        logger.error(
            "Job failed permanently",
            job_id=self.job_id,
            job_type=self.job_type,
            attempts=self.attempt_count,
            error=str(last_error) if last_error else None,
        )

    def log_fields(self) -> dict[str, Any]:
        return {"job_id": self.job_id, "job_type": self.job_type}


class JobHandle:
    """Caller-side view of a submitted job."""

    def __init__(self, job: QueuedJob):
        self.job = job
        self.state = JobState.QUEUED
        self.attempts = 0
        self.last_error: Optional[BaseException] = None
        self.failure: Optional[JobTerminalFailure] = None
        self.result: Any = None
        self._done = threading.Event()
        self._lock = threading.Lock()

    @property
    def job_id(self) -> str:
        return self.job.job_id

    @property
    def done(self) -> bool:
        return self._done.is_set()

    @property
    def succeeded(self) -> bool:
        return self.state == JobState.SUCCEEDED

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the job is terminal and its failure hook (if any) has run. False on timeout."""
        return self._done.wait(timeout)

    def _transition(self, state: JobState, **fields: Any) -> bool:
        """Move to ``state``; refuses to leave a terminal state. Returns True if moved."""
        with self._lock:
            if self.state in TERMINAL_STATES:
                return False
            self.state = state
            for name, value in fields.items():
                setattr(self, name, value)
            return True

    def _mark_done(self) -> None:
        self._done.set()

    def __repr__(self) -> str:
        return f"JobHandle(job_id={self.job_id!r}, type={self.job.job_type!r}, state={self.state.value!r}, attempts={self.attempts})"


__all__ = ["JobState", "QueuedJob", "JobHandle", "TERMINAL_STATES"]
