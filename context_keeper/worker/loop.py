"""
Worker loop shared by every background worker.

Flow per iteration:
1. Claim: dequeue the oldest queued job of this worker's type (own transaction)
2. Load: read the job's input (own short transaction)
3. Process: run the slow step (validator, reasoner) with no session open
4. Persist: if the job is still claimed, write the result and mark the job
   completed in one transaction
5. On any error: roll back, then mark the job failed (requeued or
   dead-lettered by the queue's retry policy)

After a committed job the loop polls again at once to drain the backlog;
after an empty poll or a failure it sleeps for the poll interval.
"""
from __future__ import annotations

import signal
import time
import uuid
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Optional

import structlog
from sqlalchemy.orm import Session

from ..db.base import Store
from ..queue.job_queue import JobQueue
from ..queue.payloads import JobPayload, decode_payload

logger = structlog.get_logger()

DEFAULT_POLL_INTERVAL = 1.0


class JobOutcome(str, Enum):
    """Result of one ``process_next`` call."""

    IDLE = "idle"
    COMMITTED = "committed"
    RETRIED = "retried"
    DEAD_LETTERED = "dead_lettered"
    ABANDONED = "abandoned"


class WorkerLoop(ABC):
    """Base class for queue workers.

    Subclasses set ``job_type`` and implement :meth:`load`, :meth:`process`
    and :meth:`persist`.
    """

    job_type: str = ""

    def __init__(
        self,
        store: Store,
        poll_interval: Optional[float] = None,
        worker_id: Optional[str] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize worker loop.

        Args:
            store: Store handle
            poll_interval: Seconds to wait after an empty poll or a failure
            worker_id: Identifier used in logs (generated if omitted)
            sleep: Sleep function (tests pass a recorder)
        """
        self.store = store
        self.poll_interval = DEFAULT_POLL_INTERVAL if poll_interval is None else poll_interval
        self.worker_id = worker_id or f"{self.job_type}-{uuid.uuid4().hex[:8]}"
        self.running = False
        self._sleep = sleep
        self.logger = logger.bind(worker_id=self.worker_id, job_type=self.job_type)

        self.logger.info("worker_initialized", poll_interval=self.poll_interval)

    @abstractmethod
    def load(self, db: Session, payload: JobPayload) -> Any:
        """Read what the job needs in a short transaction.

        Returns:
            The job's input, or None when the referent has vanished (the job
            then completes without further work)
        """
        pass

    @abstractmethod
    def process(self, loaded: Any) -> Any:
        """Do the slow part of the job. Runs with no session open."""
        pass

    @abstractmethod
    def persist(self, db: Session, payload: JobPayload, loaded: Any, result: Any) -> str:
        """Write the job's result.

        Runs inside the transaction that also marks the job completed.

        Returns:
            Short outcome label for logs (e.g. "clean", "finding_recorded")
        """
        pass

    def close(self) -> None:
        """Release resources held by the worker's strategies."""

    def process_next(self) -> JobOutcome:
        """Claim and process at most one job."""
        with self.store.session_scope() as db:
            job = JobQueue(db).dequeue(self.job_type)
            if job is None:
                return JobOutcome.IDLE
            job_id, raw_payload = job.id, job.payload

        job_logger = self.logger.bind(job_id=job_id)

        try:
            payload = decode_payload(self.job_type, raw_payload)
            with self.store.session_scope() as db:
                loaded = self.load(db, payload)

            # External calls happen here, never while holding the write lock
            result = None if loaded is None else self.process(loaded)

            with self.store.session_scope() as db:
                queue = JobQueue(db)
                if not queue.is_claimed(job_id):
                    job_logger.warning("job_claim_released")
                    return JobOutcome.ABANDONED
                label = "referent_missing" if loaded is None else self.persist(db, payload, loaded, result)
                queue.mark_completed(job_id)
            job_logger.info("job_processed", result=label)
            return JobOutcome.COMMITTED
        except Exception as e:
            job_logger.warning("job_processing_failed", error_type=type(e).__name__, error=str(e))
            with self.store.session_scope() as db:
                status = JobQueue(db).mark_failed(job_id, str(e) or type(e).__name__)
            if status == "dead_letter":
                return JobOutcome.DEAD_LETTERED
            return JobOutcome.RETRIED

    def drain(self, max_jobs: Optional[int] = None) -> int:
        """Process jobs until the queue is idle for this type.

        Failed jobs go back to 'queued', so a job that always fails is
        retried until it is dead-lettered.

        Returns:
            Number of jobs processed (any outcome)
        """
        processed = 0
        while max_jobs is None or processed < max_jobs:
            if self.process_next() is JobOutcome.IDLE:
                break
            processed += 1
        return processed

    def start(self, max_jobs: Optional[int] = None) -> None:
        """Run until stopped (or until ``max_jobs`` jobs were processed)."""
        self.running = True
        processed = 0
        self.logger.info("worker_starting")

        # Signal handlers can only be installed from the main thread
        previous_handlers = {}
        try:
            for signum in (signal.SIGINT, signal.SIGTERM):
                previous_handlers[signum] = signal.signal(signum, self._signal_handler)
        except ValueError:
            self.logger.debug("signal_handlers_skipped")

        try:
            while self.running:
                if max_jobs is not None and processed >= max_jobs:
                    self.logger.info("worker_max_jobs_reached", processed=processed)
                    break
                try:
                    outcome = self.process_next()
                except Exception as e:
                    # Store unreachable while claiming or recording a failure
                    self.logger.exception("worker_iteration_error", error=str(e))
                    self._sleep(self.poll_interval)
                    continue

                if outcome is JobOutcome.IDLE:
                    self._sleep(self.poll_interval)
                    continue

                processed += 1
                if outcome is not JobOutcome.COMMITTED:
                    self._sleep(self.poll_interval)
        finally:
            self.running = False
            for signum, handler in previous_handlers.items():
                if handler is not None:
                    signal.signal(signum, handler)
            self.logger.info("worker_stopped", processed=processed)

    def stop(self) -> None:
        """Signal the worker to stop after the current job."""
        self.logger.info("worker_stop_requested")
        self.running = False

    def _signal_handler(self, signum, frame) -> None:
        """Handle shutdown signals."""
        self.logger.info("worker_signal_received", signum=signum)
        self.stop()
