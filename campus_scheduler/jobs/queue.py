"""In-memory priority + delay queue feeding the job workers.

Two heaps:
 1. ready:     (priority_value, seq, item)          runnable now
 2. scheduled: (ready_at_ts, priority_value, seq, item)  retries waiting out
                                                     their backoff delay

A dequeue first promotes every scheduled item whose time has come, then pops
the best ready item (FIFO among equal priorities). A far-future retry never
blocks work that is ready now.

Single process only; nothing survives a restart.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional
import heapq
import threading
import time

from campus_scheduler.config import QUEUE_SETTINGS
from campus_scheduler.utils import get_logger

logger = get_logger(__name__)


class QueueShutdown(RuntimeError):
    pass


@dataclass(slots=True)
class QueueItem:
    job: Any
    priority_label: str
    priority_value: int
    enqueued_at: float
    ready_at: float
    seq: int


class PriorityDelayQueue:
    def __init__(self) -> None:
        priorities_cfg = QUEUE_SETTINGS.get("priorities", {})
        self._priority_map: dict[str, int] = priorities_cfg if isinstance(priorities_cfg, dict) else {"normal": 5}
        self._warn_depth = int(QUEUE_SETTINGS.get("warn_depth", 1000))  # type: ignore[arg-type]
        self._max_in_memory = int(QUEUE_SETTINGS.get("max_in_memory", 5000))  # type: ignore[arg-type]
        self._lock = threading.RLock()
        self._cv = threading.Condition(self._lock)
        self._ready_heap: list[tuple[int, int, QueueItem]] = []
        self._scheduled_heap: list[tuple[float, int, int, QueueItem]] = []
        self._seq_counter = 0
        self._shutdown = False

    def _promote_scheduled(self, now_ts: float) -> None:
        while self._scheduled_heap and self._scheduled_heap[0][0] <= now_ts:
            _, priority_value, seq, item = heapq.heappop(self._scheduled_heap)
            heapq.heappush(self._ready_heap, (priority_value, seq, item))

    def _wait_time(self, deadline: Optional[float]) -> Optional[float]:
        """Seconds to sleep before something may be ready (None = until notified)."""
        now_ts = time.time()
        candidates = []
        if self._scheduled_heap:
            candidates.append(max(0.0, self._scheduled_heap[0][0] - now_ts))
        if deadline is not None:
            candidates.append(max(0.0, deadline - now_ts))
        return min(candidates) if candidates else None

    # ----------------------------- public API ----------------------------- #
    def enqueue(self, job: Any, *, priority: str = "normal", delay_seconds: float = 0.0, retry: bool = False) -> QueueItem:
        """Queue a job. Retries of already-accepted jobs are taken even after shutdown."""
        with self._lock:
            if self._shutdown and not retry:
                raise QueueShutdown("Queue shutdown")
            if self.depth() >= self._max_in_memory:
                raise OverflowError("Queue capacity exceeded")
            if priority not in self._priority_map:
                raise ValueError(f"Unknown priority '{priority}'")
            now_ts = time.time()
            self._seq_counter += 1
            item = QueueItem(
                job=job,
                priority_label=priority,
                priority_value=self._priority_map[priority],
                enqueued_at=now_ts,
                ready_at=now_ts + max(0.0, delay_seconds),
                seq=self._seq_counter,
            )
            if item.ready_at <= now_ts:
                heapq.heappush(self._ready_heap, (item.priority_value, item.seq, item))
            else:
                heapq.heappush(self._scheduled_heap, (item.ready_at, item.priority_value, item.seq, item))
            if self.depth() >= self._warn_depth:
                logger.warning("Queue depth warning", depth=self.depth())
            self._cv.notify()
            return item

    def dequeue(self, *, block: bool = True, timeout: Optional[float] = None) -> Any:
        """Pop the next runnable job; None when non-blocking/timed out/shut down and empty."""
        deadline = None if timeout is None else time.time() + timeout
        with self._lock:
            while True:
                self._promote_scheduled(time.time())
                if self._ready_heap:
                    _, _, item = heapq.heappop(self._ready_heap)
                    return item.job
                if self._shutdown and not self._scheduled_heap:
                    return None
                if not block:
                    return None
                if deadline is not None and time.time() >= deadline:
                    return None
                self._cv.wait(timeout=self._wait_time(deadline))

    def shutdown(self) -> None:
        """Refuse new jobs; queued and scheduled ones are still handed out."""
        with self._lock:
            self._shutdown = True
            self._cv.notify_all()

    def purge(self) -> None:
        """Drop all queued (ready + scheduled) jobs. Test isolation only."""
        with self._lock:
            self._ready_heap.clear()
            self._scheduled_heap.clear()
            self._cv.notify_all()

    # ----------------------------- inspection ----------------------------- #
    def depth(self) -> int:
        return len(self._ready_heap) + len(self._scheduled_heap)

    def __len__(self) -> int:  # pragma: no cover
        return self.depth()

    @property
    def is_shutdown(self) -> bool:
        return self._shutdown

    def snapshot(self) -> dict:
        with self._lock:
            return {
                "depth": self.depth(),
                "ready": len(self._ready_heap),
                "scheduled": len(self._scheduled_heap),
                "shutdown": self._shutdown,
            }


__all__ = ["PriorityDelayQueue", "QueueItem", "QueueShutdown"]
