"""
Durable job queue on the job_queue table.

Flow:
1. enqueue: insert a row in 'queued'
2. dequeue: claim the oldest queued row of a type with a conditional UPDATE
3. mark_completed / mark_failed: terminal or retry transitions

All methods run inside the caller's session and transaction; use
``Store.session_scope()`` so each call commits as a unit.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple, Union

import structlog
from sqlalchemy import case, func, select, update
from sqlalchemy.orm import Session

from ..db.models import JobModel, generate_id, utc_now
from .payloads import JobPayload, encode_payload

logger = structlog.get_logger()

DEFAULT_MAX_ATTEMPTS = 3

# How many candidates dequeue tries when other workers keep winning the claim
CLAIM_RETRIES = 5

TERMINAL_STATUSES = ("completed", "dead_letter")


class JobQueue:
    """Service for the shared job queue.

    Usage:
        with store.session_scope() as db:
            job_id = JobQueue(db).enqueue("extract_learning_ai", {"conversationId": cid})
    """

    def __init__(self, db: Session, default_max_attempts: int = DEFAULT_MAX_ATTEMPTS):
        self.db = db
        self.default_max_attempts = default_max_attempts

    def enqueue(
        self,
        job_type: str,
        payload: Union[JobPayload, Dict[str, Any]],
        max_attempts: Optional[int] = None,
    ) -> str:
        """Insert a new job in 'queued' state and return its id."""
        if max_attempts is None:
            max_attempts = self.default_max_attempts
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")

        now = utc_now()
        job = JobModel(
            id=generate_id(),
            type=job_type,
            payload=encode_payload(payload),
            status="queued",
            attempts=0,
            max_attempts=max_attempts,
            created_at=now,
            updated_at=now,
        )
        self.db.add(job)
        self.db.flush()

        logger.info("job_enqueued", job_id=job.id, job_type=job_type)
        return job.id

    def dequeue(self, job_type: str) -> Optional[JobModel]:
        """Atomically claim the oldest queued job of ``job_type``.

        The claim is a single UPDATE guarded by ``status = 'queued'``; if it
        touches no row another worker got there first and the next candidate
        is tried.

        Returns:
            The claimed JobModel (status 'in_progress'), or None if no job is available
        """
        for _ in range(CLAIM_RETRIES):
            candidate_id = self.db.execute(
                select(JobModel.id)
                .where(JobModel.status == "queued", JobModel.type == job_type)
                .order_by(JobModel.created_at.asc(), JobModel.id.asc())
                .limit(1)
            ).scalar_one_or_none()

            if candidate_id is None:
                return None

            result = self.db.execute(
                update(JobModel)
                .where(JobModel.id == candidate_id, JobModel.status == "queued")
                .values(status="in_progress", updated_at=utc_now())
                .execution_options(synchronize_session=False)
            )

            if result.rowcount == 1:
                job = self.db.get(JobModel, candidate_id, populate_existing=True)
                logger.info("job_claimed", job_id=candidate_id, job_type=job_type)
                return job

            logger.debug("job_claim_lost", job_id=candidate_id, job_type=job_type)

        return None

    def is_claimed(self, job_id: str) -> bool:
        """True while the job is still 'in_progress'; locks the row until commit."""
        status = self.db.execute(
            select(JobModel.status).where(JobModel.id == job_id).with_for_update()
        ).scalar_one_or_none()
        return status == "in_progress"

    def mark_completed(self, job_id: str) -> None:
        """Mark a job completed. Calling it again is a benign no-op update."""
        self.db.execute(
            update(JobModel)
            .where(JobModel.id == job_id, JobModel.status != "dead_letter")
            .values(status="completed", error=None, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        logger.info("job_completed", job_id=job_id)

    def mark_failed(self, job_id: str, error: str) -> Optional[str]:
        """Record a failed attempt.

        Increments ``attempts``; the job goes back to 'queued' while attempts
        remain, otherwise to 'dead_letter'. Terminal jobs are left alone.

        Returns:
            The job's new status, or None if the job is missing or terminal
        """
        new_status = case(
            (JobModel.attempts + 1 >= JobModel.max_attempts, "dead_letter"),
            else_="queued",
        )
        result = self.db.execute(
            update(JobModel)
            .where(JobModel.id == job_id, JobModel.status.not_in(TERMINAL_STATUSES))
            .values(
                attempts=JobModel.attempts + 1,
                status=new_status,
                error=error,
                updated_at=utc_now(),
            )
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            logger.warning("job_fail_ignored", job_id=job_id)
            return None

        status = self.db.execute(
            select(JobModel.status).where(JobModel.id == job_id)
        ).scalar_one()

        if status == "dead_letter":
            logger.error("job_dead_lettered", job_id=job_id, error=error)
        else:
            logger.warning("job_requeued", job_id=job_id, error=error)
        return status

    def get(self, job_id: str) -> Optional[JobModel]:
        """Get a job by ID."""
        return self.db.get(JobModel, job_id, populate_existing=True)

    def list_jobs(
        self,
        status: Optional[str] = None,
        job_type: Optional[str] = None,
        limit: int = 50,
    ) -> List[JobModel]:
        """List jobs, oldest first, with optional filtering."""
        query = select(JobModel)
        if status:
            query = query.where(JobModel.status == status)
        if job_type:
            query = query.where(JobModel.type == job_type)

        return list(
            self.db.execute(
                query.order_by(JobModel.created_at.asc(), JobModel.id.asc()).limit(limit)
            ).scalars()
        )

    def count_by_status(self) -> Dict[Tuple[str, str], int]:
        """Count jobs grouped by (type, status)."""
        rows = self.db.execute(
            select(JobModel.type, JobModel.status, func.count(JobModel.id))
            .group_by(JobModel.type, JobModel.status)
        ).all()
        return {(job_type, status): count for job_type, status, count in rows}
