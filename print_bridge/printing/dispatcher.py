"""
Job queue and dispatcher.

Any number of producers call submit(); one dispatch worker thread pops jobs in
strict FIFO order and runs them against the printer link, one at a time.
Every failure is captured as a terminal job status; the worker never dies on a
job's account.
"""

from __future__ import annotations

import itertools
import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, List, Optional

from .connection import ConnectionManager, LinkHandle
from .encoder import EncoderOptions, check_capacity, encode
from .errors import JobNotFound, PrintBridgeError, QueueFull, WriteFailure
from .models import Job, JobDescription, JobStatus, validate_description
from .registry import StatusRegistry

logger = logging.getLogger(__name__)

Encoder = Callable[[JobDescription, EncoderOptions], List[bytes]]


@dataclass
class _Entry:
    job_id: int
    description: JobDescription
    enqueued_at: float


class Dispatcher:
    def __init__(
        self,
        connections: ConnectionManager,
        registry: StatusRegistry,
        *,
        queue_capacity: int = 32,
        pending_timeout: float = 120.0,
        acquire_timeout: float = 10.0,
        encoder_options: EncoderOptions = EncoderOptions(),
        max_image_bytes: int = 1024 * 1024,
        encoder: Encoder = encode,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.connections = connections
        self.registry = registry
        self.queue_capacity = queue_capacity
        self.pending_timeout = pending_timeout
        self.acquire_timeout = acquire_timeout
        self.encoder_options = encoder_options
        self.max_image_bytes = max_image_bytes
        self._encode = encoder
        self._clock = clock

        self._pending: Deque[_Entry] = deque()
        self._cond = threading.Condition()
        self._ids = itertools.count(1)
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.executing: Optional[int] = None

    # Producer side

    def submit(self, description: JobDescription) -> int:
        """
        Validate and enqueue a job; returns its id without waiting on the printer.

        Raises ValidationError for malformed descriptions and QueueFull when
        `queue_capacity` jobs are already pending.
        """
        validate_description(
            description,
            qr_max_payload=self.encoder_options.qr_max_payload,
            max_image_bytes=self.max_image_bytes,
        )
        check_capacity(description, self.encoder_options)
        with self._cond:
            self._expire_locked()
            if len(self._pending) >= self.queue_capacity:
                raise QueueFull(f"print queue is full ({self.queue_capacity} pending jobs)")
            job = Job(id=next(self._ids), description=description)
            self.registry.add(job)
            self._pending.append(_Entry(job.id, description, self._clock()))
            pending = len(self._pending)
            self._cond.notify_all()
        logger.info(
            "Job %d accepted (%d segments, %d pending)",
            job.id,
            len(description.segments),
            pending,
            extra={"job_id": job.id},
        )
        return job.id

    def cancel(self, job_id: int) -> bool:
        """
        Cancel a pending job. Returns False if it already started or finished.
        Raises JobNotFound for unknown ids.
        """
        with self._cond:
            for entry in self._pending:
                if entry.job_id == job_id:
                    self._pending.remove(entry)
                    self.registry.transition(job_id, JobStatus.CANCELLED, reason="cancelled by request")
                    logger.info("Job %d cancelled by request", job_id, extra={"job_id": job_id})
                    return True
        self.registry.get(job_id)
        return False

    def pending_count(self) -> int:
        with self._cond:
            return len(self._pending)

    def expire_pending(self) -> int:
        """Cancel jobs pending longer than `pending_timeout`; returns how many."""
        with self._cond:
            return self._expire_locked()

    def _expire_locked(self) -> int:
        cutoff = self._clock() - self.pending_timeout
        expired = 0
        # Entries are in enqueue order, so expired ones are at the front.
        while self._pending and self._pending[0].enqueued_at <= cutoff:
            entry = self._pending.popleft()
            self.registry.transition(
                entry.job_id,
                JobStatus.CANCELLED,
                reason=f"pending longer than {self.pending_timeout:g}s",
            )
            logger.warning(
                "Job %d cancelled after waiting %.1fs",
                entry.job_id,
                self._clock() - entry.enqueued_at,
                extra={"job_id": entry.job_id},
            )
            expired += 1
        return expired

    # Worker side

    def start(self) -> None:
        """Start the dispatch worker thread (idempotent)."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, daemon=True, name="print-bridge-dispatcher")
        self._thread.start()
        logger.info("Dispatch worker started")

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        """Stop the worker after its current job; remaining pending jobs are cancelled."""
        self._stop.set()
        with self._cond:
            self._cond.notify_all()
        if self._thread is not None:
            self._thread.join(timeout)
        with self._cond:
            while self._pending:
                entry = self._pending.popleft()
                self.registry.transition(entry.job_id, JobStatus.CANCELLED, reason="dispatcher stopped")
        logger.info("Dispatch worker stopped")

    def status(self) -> Dict[str, Any]:
        alive = self._thread is not None and self._thread.is_alive()
        return {
            "worker_alive": alive,
            "queue_size": self.pending_count(),
            "queue_capacity": self.queue_capacity,
            "executing": self.executing,
        }

    def _next_entry(self) -> Optional[_Entry]:
        with self._cond:
            while not self._stop.is_set():
                self._expire_locked()
                if self._pending:
                    return self._pending.popleft()
                self._cond.wait()
            return None

    def _run(self) -> None:
        """Worker loop. Never raises; every outcome ends up in the registry."""
        while not self._stop.is_set():
            entry = self._next_entry()
            if entry is None:
                break
            try:
                self.run_job(entry.job_id, entry.description)
            except Exception:
                logger.exception("Unexpected error dispatching job %d", entry.job_id)

    def run_job(self, job_id: int, description: JobDescription) -> Job:
        """Execute one job synchronously against the printer link."""
        if self.registry.transition(job_id, JobStatus.EXECUTING) is None:
            return self.registry.get(job_id)
        self.executing = job_id
        logger.info("Job %d executing", job_id, extra={"job_id": job_id})

        link: Optional[LinkHandle] = None
        status, reason = JobStatus.COMPLETED, None
        try:
            frames = self._encode(description, self.encoder_options)
            link = self.connections.acquire(self.acquire_timeout)
            for frame in frames:
                link.write(frame)
            self.connections.report_success(link)
        except WriteFailure as e:
            if link is not None:
                self.connections.report_failure(link, e)
            status, reason = JobStatus.FAILED, e.reason()
        except PrintBridgeError as e:
            status, reason = JobStatus.FAILED, e.reason()
        except Exception as e:
            logger.exception("Job %d crashed", job_id, extra={"job_id": job_id})
            status, reason = JobStatus.FAILED, f"{type(e).__name__}: {e}"
        finally:
            if link is not None:
                self.connections.release(link)
            self.executing = None

        if status is JobStatus.COMPLETED:
            logger.info("Job %d completed", job_id, extra={"job_id": job_id})
        else:
            logger.warning("Job %d failed: %s", job_id, reason, extra={"job_id": job_id})
        snapshot = self.registry.transition(job_id, status, reason=reason)
        if snapshot is None:
            raise JobNotFound(f"job {job_id} vanished while executing")
        return snapshot


__all__ = ["Dispatcher"]
