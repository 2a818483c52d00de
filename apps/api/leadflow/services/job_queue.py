"""Delayed job queue interface + database-backed implementation."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID

from sqlalchemy.orm import Session

from leadflow.core.config import settings
from leadflow.db.enums import JobStatus, JobType
from leadflow.services import job_service


class JobQueue(Protocol):
    """What the scheduling engine needs from a delayed job queue."""

    def schedule(self, run_at: datetime, job_type: JobType, payload: dict) -> UUID:
        """Enqueue a job to run at run_at; returns the queue's job id."""

    def cancel(self, job_id: UUID) -> int:
        """Cancel a job that has not fired; returns the number canceled (0 or 1)."""

    def get_status(self, job_id: UUID) -> JobStatus | None:
        """Current status of a job, or None if the queue does not know it."""

    def pending_job_ids(self, flow_id: UUID) -> list[UUID]:
        """Ids of jobs for a flow that have not fired yet."""


class DatabaseJobQueue:
    """
    JobQueue backed by the jobs table.

    The worker process polls due jobs and dispatches them through
    leadflow.jobs.registry. Shares the caller's session.
    """

    def __init__(self, db: Session, max_attempts: int | None = None) -> None:
        self.db = db
        self.max_attempts = (
            max_attempts if max_attempts is not None else settings.DELIVERY_JOB_MAX_ATTEMPTS
        )

    def schedule(self, run_at: datetime, job_type: JobType, payload: dict) -> UUID:
        job = job_service.schedule_job(
            self.db,
            job_type=job_type,
            payload=payload,
            run_at=run_at,
            max_attempts=self.max_attempts,
        )
        return job.id

    def cancel(self, job_id: UUID) -> int:
        return job_service.cancel_job(self.db, job_id)

    def get_status(self, job_id: UUID) -> JobStatus | None:
        job = job_service.get_job(self.db, job_id)
        return JobStatus(job.status) if job else None

    def pending_job_ids(self, flow_id: UUID) -> list[UUID]:
        return [
            job.id
            for job in job_service.list_jobs_for_flow(self.db, flow_id, status=JobStatus.PENDING)
        ]
