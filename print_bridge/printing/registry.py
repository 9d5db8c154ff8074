"""
In-memory status registry: job id -> job snapshot.

Written only by the dispatcher on status transitions; read by any number of
callers, either polling get() or blocking in wait(). Terminal jobs are evicted
oldest-first once the retention count is exceeded or their retention window
has passed.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from typing import Callable, Dict, List, Optional

from .errors import JobNotFound
from .models import TRANSITIONS, Job, JobStatus, utc_now

logger = logging.getLogger(__name__)


class StatusRegistry:
    def __init__(
        self,
        retention_count: int = 200,
        retention_seconds: float = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.retention_count = retention_count
        self.retention_seconds = retention_seconds
        self._clock = clock
        self._jobs: Dict[int, Job] = {}
        # Terminal job ids in completion order, with monotonic completion time.
        self._finished: "OrderedDict[int, float]" = OrderedDict()
        # Reentrant so eviction can run from inside other locked sections.
        self._cond = threading.Condition(threading.RLock())

    def add(self, job: Job) -> None:
        with self._cond:
            self._jobs[job.id] = job.copy()
            self._cond.notify_all()

    def transition(self, job_id: int, status: JobStatus, *, reason: Optional[str] = None) -> Optional[Job]:
        """
        Move a job to `status`. Returns the new snapshot, or None when the move
        is not allowed (e.g. out of a terminal state). Raises JobNotFound.
        """
        with self._cond:
            job = self._jobs.get(job_id)
            if job is None:
                raise JobNotFound(f"job {job_id} not found")
            if status not in TRANSITIONS[job.status]:
                logger.debug("Rejected transition for job %s: %s -> %s", job_id, job.status.value, status.value)
                return None

            job.status = status
            now = utc_now()
            if status is JobStatus.EXECUTING:
                job.started_at = now
            if status.terminal:
                job.completed_at = now
                job.failure_reason = reason
                self._finished[job_id] = self._clock()
                self._evict_locked()
            self._cond.notify_all()
            return job.copy()

    def get(self, job_id: int) -> Job:
        with self._cond:
            self._evict_locked()
            job = self._jobs.get(job_id)
            if job is None:
                raise JobNotFound(f"job {job_id} not found")
            return job.copy()

    def wait(self, job_id: int, timeout: Optional[float] = None) -> Job:
        """
        Block until the job is terminal or `timeout` elapses, then return its
        latest snapshot. Raises JobNotFound if unknown or evicted meanwhile.
        """

        def _done() -> bool:
            job = self._jobs.get(job_id)
            return job is None or job.status.terminal

        with self._cond:
            if job_id not in self._jobs:
                raise JobNotFound(f"job {job_id} not found")
            self._cond.wait_for(_done, timeout=timeout)
            job = self._jobs.get(job_id)
            if job is None:
                raise JobNotFound(f"job {job_id} not found")
            return job.copy()

    def list(self, limit: Optional[int] = None) -> List[Job]:
        """Snapshots ordered newest first."""
        with self._cond:
            self._evict_locked()
            ids = sorted(self._jobs, reverse=True)
            if limit is not None:
                ids = ids[:limit]
            return [self._jobs[i].copy() for i in ids]

    def count(self) -> int:
        with self._cond:
            return len(self._jobs)

    def _evict_locked(self) -> None:
        cutoff = self._clock() - self.retention_seconds
        while self._finished:
            oldest_id, finished_at = next(iter(self._finished.items()))
            if len(self._finished) <= self.retention_count and finished_at > cutoff:
                break
            self._finished.popitem(last=False)
            self._jobs.pop(oldest_id, None)
            logger.debug("Evicted job %s from status registry", oldest_id)


__all__ = ["StatusRegistry"]
