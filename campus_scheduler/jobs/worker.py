"""Job queue front-end and background workers.

``JobQueue.submit`` is non-blocking: it records a ``JobHandle`` and pushes the
job onto the in-memory ``PriorityDelayQueue``. Worker threads pull jobs and run
one attempt at a time:

  queued -> running -> succeeded
                    -> retrying -> (backoff delay) -> running ...
                    -> failed_permanently   (attempts exhausted; hook fires once)

Each attempt runs in its own thread joined with the job's ``timeout``. An
attempt still running at the deadline is abandoned and counted as failed;
Python threads cannot be killed, so its body may still finish in the
background. Job bodies must therefore tolerate being run again.
"""
from __future__ import annotations

import threading
import time
from typing import Any, Callable, Optional

from campus_scheduler.config import QUEUE_SETTINGS
from campus_scheduler.errors import JobTerminalFailure, JobTimeout
from campus_scheduler.jobs.base import JobHandle, JobState, QueuedJob, TERMINAL_STATES
from campus_scheduler.jobs.queue import PriorityDelayQueue, QueueShutdown
from campus_scheduler.utils import get_logger, log_job_event
from campus_scheduler.utils.backoff import compute_backoff_seconds

logger = get_logger(__name__)


def run_with_timeout(fn: Callable[[], Any], timeout: float, *, job_id: str) -> Any:
    """Run ``fn`` in a daemon thread; raise JobTimeout if it outlives ``timeout``."""
    outcome: dict[str, Any] = {}

    def _target() -> None:
        try:
            outcome["result"] = fn()
        except BaseException as e:  # re-raised in the calling thread
            outcome["error"] = e

    runner = threading.Thread(target=_target, name=f"job-attempt-{job_id[:8]}", daemon=True)
    runner.start()
    runner.join(timeout)
    if runner.is_alive():
        raise JobTimeout(job_id, timeout)
    if "error" in outcome:
        raise outcome["error"]
    return outcome.get("result")


class JobWorker:
    def __init__(self, job_queue: "JobQueue", *, name: str = "job-worker", poll_timeout: float = 1.0):
        self.job_queue = job_queue
        self.name = name
        self.poll_timeout = poll_timeout
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()

    @property
    def is_alive(self) -> bool:
        return bool(self._thread and self._thread.is_alive())

    def start(self) -> None:
        if self.is_alive:  # pragma: no cover
            return
        self._thread = threading.Thread(target=self._loop, name=self.name, daemon=True)
        self._thread.start()
        logger.info("Job worker started", worker=self.name)

    def stop(self) -> None:
        self._stop_event.set()
        logger.info("Job worker stop requested", worker=self.name)

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def _loop(self) -> None:
        queue = self.job_queue.queue
        while not self._stop_event.is_set():
            try:
                job = queue.dequeue(timeout=self.poll_timeout)
                if job is None:
                    if queue.is_shutdown:
                        # Nothing runnable; another worker may still schedule a retry.
                        self._stop_event.wait(self.poll_timeout)
                    continue
                if not isinstance(job, QueuedJob):
                    logger.warning("Skipping unknown job type", job_type=type(job).__name__)
                    continue
                self.job_queue._execute(job)
            except Exception as e:  # pragma: no cover
                logger.error("Worker loop error", worker=self.name, error=str(e), exc_info=True)
                time.sleep(1)


class JobQueue:
    """Bounded-retry, per-attempt-timeout execution of ``QueuedJob`` objects."""

    def __init__(
        self,
        queue: Optional[PriorityDelayQueue] = None,
        *,
        worker_count: int = 1,
        poll_timeout: float = 1.0,
        backoff: Optional[Callable[[int], float]] = None,
    ):
        if worker_count < 1:
            raise ValueError("worker_count must be >= 1")
        self.queue = queue if queue is not None else PriorityDelayQueue()
        self.poll_timeout = poll_timeout
        self.backoff = backoff or compute_backoff_seconds
        self._workers = [
            JobWorker(self, name=f"job-worker-{i + 1}", poll_timeout=poll_timeout)
            for i in range(worker_count)
        ]
        self._handles: dict[str, JobHandle] = {}
        self._pending = 0
        self._cv = threading.Condition()

    # ----------------------------- lifecycle ------------------------------ #
    def start(self) -> "JobQueue":
        for worker in self._workers:
            worker.start()
        return self

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait until every submitted job is terminal. False on timeout."""
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cv:
            while self._pending > 0:
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return False
                self._cv.wait(remaining)
            return True

    def shutdown(self, *, wait: bool = True, timeout: Optional[float] = None) -> bool:
        """Refuse new submissions, optionally drain, then stop the workers.

        Returns True when nothing submitted was left unfinished.
        """
        self.queue.shutdown()
        drained = self.join(timeout) if wait else self.pending == 0
        for worker in self._workers:
            worker.stop()
        for worker in self._workers:
            worker.join(self.poll_timeout + 1.0)
        if not drained:
            logger.warning("Job queue stopped with unfinished jobs", pending=self.pending, **self.queue.snapshot())
        else:
            logger.info("Job queue stopped")
        return drained

    # ------------------------------ submission ----------------------------- #
    def submit(self, job: QueuedJob) -> JobHandle:
        """Enqueue ``job`` and return immediately with its handle."""
        if not isinstance(job, QueuedJob):
            logger.error("Rejected job submission", job_type=type(job).__name__)
            raise TypeError(f"Expected a QueuedJob, got {type(job).__name__}")
        handle = JobHandle(job)
        with self._cv:
            self._handles[job.job_id] = handle
            self._pending += 1
        try:
            self.queue.enqueue(job, priority=job.priority)
        except (QueueShutdown, OverflowError, ValueError):
            with self._cv:
                self._handles.pop(job.job_id, None)
                self._pending -= 1
                self._cv.notify_all()
            logger.error("Job submission refused", **job.log_fields())
            raise
        log_job_event(
            "job_submitted",
            {"job_type": job.job_type, "priority": job.priority, "max_attempts": job.max_attempts, "timeout": job.timeout},
            job_id=job.job_id,
        )
        return handle

    @property
    def pending(self) -> int:
        with self._cv:
            return self._pending

    # ------------------------------ execution ------------------------------ #
    def _finish(self, handle: JobHandle) -> None:
        with self._cv:
            self._pending -= 1
            self._cv.notify_all()
        # Waiters wake only once the hook has run and the job is off the books.
        handle._mark_done()

    def _execute(self, job: QueuedJob) -> None:
        handle = self._handles.get(job.job_id)
        if handle is None:  # pragma: no cover
            handle = self._handles.setdefault(job.job_id, JobHandle(job))
        if handle.state in TERMINAL_STATES:  # pragma: no cover
            return

        job.attempt_count += 1
        attempt = job.attempt_count
        handle._transition(JobState.RUNNING, attempts=attempt)
        logger.info("Job attempt started", attempt=attempt, max_attempts=job.max_attempts, **job.log_fields())
        started = time.monotonic()

        try:
            result = run_with_timeout(job.handle, job.timeout, job_id=job.job_id)
        except Exception as e:
            self._attempt_failed(job, handle, e)
            return

        if handle._transition(JobState.SUCCEEDED, result=result):
            log_job_event(
                "job_succeeded",
                {"job_type": job.job_type, "attempts": attempt, "elapsed_seconds": round(time.monotonic() - started, 3)},
                job_id=job.job_id,
            )
            self._finish(handle)

    def _attempt_failed(self, job: QueuedJob, handle: JobHandle, error: Exception) -> None:
        attempt = job.attempt_count
        logger.warning(
            "Job attempt failed",
            attempt=attempt,
            max_attempts=job.max_attempts,
            error=str(error),
            error_type=type(error).__name__,
            **job.log_fields(),
        )

        if attempt < job.max_attempts:
            delay = self.backoff(attempt)
            handle._transition(JobState.RETRYING, last_error=error)
            try:
                self.queue.enqueue(job, priority=job.priority, delay_seconds=delay, retry=True)
            except (OverflowError, ValueError) as enqueue_error:
                # The retry cannot be held; the job ends here instead of staying in limbo.
                logger.error(
                    "Retry could not be scheduled",
                    attempt=attempt,
                    error=str(enqueue_error),
                    error_type=type(enqueue_error).__name__,
                    **job.log_fields(),
                )
                self._fail_permanently(job, handle, error)
                return
            log_job_event(
                "job_retry_scheduled",
                {"job_type": job.job_type, "attempt": attempt, "delay_seconds": round(delay, 3)},
                job_id=job.job_id,
            )
            return

        self._fail_permanently(job, handle, error)

    def _fail_permanently(self, job: QueuedJob, handle: JobHandle, error: Exception) -> None:
        failure = JobTerminalFailure(job.job_id, job.attempt_count, error)
        if not handle._transition(JobState.FAILED_PERMANENTLY, last_error=error, failure=failure):
            return
        log_job_event("job_failed_permanently", {"job_type": job.job_type, **failure.details}, job_id=job.job_id)
        try:
            job.on_terminal_failure(error)
        except Exception as hook_error:
            logger.error(
                "Terminal failure hook raised",
                hook_error=str(hook_error),
                terminal=failure.message,
                exc_info=True,
                **job.log_fields(),
            )
        finally:
            self._finish(handle)

    # ----------------------------- inspection ----------------------------- #
    def snapshot(self) -> dict:
        states: dict[str, int] = {}
        for handle in list(self._handles.values()):
            states[handle.state.value] = states.get(handle.state.value, 0) + 1
        return {
            "pending": self.pending,
            "workers": sum(1 for w in self._workers if w.is_alive),
            "states": states,
            **self.queue.snapshot(),
        }


def create_job_queue(*, start: bool = True) -> JobQueue:
    """Build the in-memory job queue from configuration."""
    job_queue = JobQueue(
        PriorityDelayQueue(),
        worker_count=int(QUEUE_SETTINGS.get("worker_count", 1)),  # type: ignore[arg-type]
        poll_timeout=float(QUEUE_SETTINGS.get("poll_timeout_seconds", 1.0)),  # type: ignore[arg-type]
    )
    logger.info("Using in-memory job queue", worker_count=len(job_queue._workers))
    return job_queue.start() if start else job_queue


__all__ = ["JobQueue", "JobWorker", "run_with_timeout", "create_job_queue"]
