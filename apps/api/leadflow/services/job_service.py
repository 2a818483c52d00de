"""Job service - business logic for background job scheduling and processing."""

from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy.orm import Session

from leadflow.db.models import Job
from leadflow.db.enums import JobStatus, JobType


def schedule_job(
    db: Session,
    job_type: JobType,
    payload: dict,
    run_at: datetime | None = None,
    max_attempts: int | None = None,
) -> Job:
    """
    Schedule a new background job.

    If run_at is None, the job runs immediately.
    """
    job = Job(
        job_type=job_type.value,
        payload=payload,
        run_at=run_at or datetime.now(timezone.utc),
        status=JobStatus.PENDING.value,
    )
    if max_attempts is not None:
        job.max_attempts = max_attempts
    db.add(job)
    db.commit()
    db.refresh(job)
    return job


def cancel_job(db: Session, job_id: UUID) -> int:
    """
    Cancel a job that has not started yet.

    Returns the number of jobs canceled (0 or 1). Jobs that already ran,
    are running, or never existed are left untouched and count as 0.
    """
    canceled = (
        db.query(Job)
        .filter(
            Job.id == job_id,
            Job.status == JobStatus.PENDING.value,
        )
        .update(
            {Job.status: JobStatus.CANCELED.value, Job.completed_at: datetime.now(timezone.utc)},
            synchronize_session="fetch",
        )
    )
    db.commit()
    return canceled


def claim_pending_jobs(db: Session, limit: int = 10, now: datetime | None = None) -> list[Job]:
    """
    Claim due pending jobs for this worker and mark them running.

    Uses SKIP LOCKED on PostgreSQL so concurrent workers never claim the
    same job. Other backends ignore the lock clause.
    """
    now = now or datetime.now(timezone.utc)
    jobs = (
        db.query(Job)
        .filter(
            Job.status == JobStatus.PENDING.value,
            Job.run_at <= now,
        )
        .order_by(Job.run_at)
        .limit(limit)
        .with_for_update(skip_locked=True)
        .all()
    )
    for job in jobs:
        job.status = JobStatus.RUNNING.value
        job.attempts += 1
    db.commit()
    return jobs


def get_job(db: Session, job_id: UUID) -> Job | None:
    """Get a job by ID."""
    return db.query(Job).filter(Job.id == job_id).first()


def list_jobs_for_flow(
    db: Session,
    flow_id: UUID,
    status: JobStatus | None = None,
) -> list[Job]:
    """List workflow email jobs whose payload points at a flow."""
    query = db.query(Job).filter(Job.job_type == JobType.WORKFLOW_EMAIL.value)
    if status:
        query = query.filter(Job.status == status.value)
    # Payload is JSON on every backend; filter in Python to stay portable
    return [
        job for job in query.order_by(Job.run_at).all()
        if (job.payload or {}).get("flow_id") == str(flow_id)
    ]


def mark_job_completed(db: Session, job: Job) -> Job:
    """Mark a job as completed."""
    job.status = JobStatus.COMPLETED.value
    job.completed_at = datetime.now(timezone.utc)
    job.last_error = None
    db.commit()
    db.refresh(job)
    return job


def mark_job_failed(db: Session, job: Job, error: str) -> Job:
    """
    Mark a job as failed.

    If attempts < max_attempts, reset to pending for retry.
    """
    job.last_error = error
    if job.attempts < job.max_attempts:
        job.status = JobStatus.PENDING.value
    else:
        job.status = JobStatus.FAILED.value
        job.completed_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(job)
    return job
