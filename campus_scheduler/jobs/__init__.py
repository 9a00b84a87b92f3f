"""Asynchronous job execution: queue, workers and notification jobs."""
from .base import JobHandle, JobState, QueuedJob
from .notification_job import NotificationJob
from .queue import PriorityDelayQueue, QueueShutdown
from .worker import JobQueue, create_job_queue

__all__ = [
    "JobHandle",
    "JobState",
    "QueuedJob",
    "NotificationJob",
    "PriorityDelayQueue",
    "QueueShutdown",
    "JobQueue",
    "create_job_queue",
]
