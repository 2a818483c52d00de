"""Drift detection between scheduled email rows and the job queue."""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from leadflow.db.enums import JobStatus
from leadflow.db.models import Flow, ScheduledEmail
from leadflow.services import flow_status_service
from leadflow.services.job_queue import JobQueue
from leadflow.services.workflow_errors import ConsistencyDrift

logger = logging.getLogger(__name__)

LIVE_JOB_STATUSES = {JobStatus.PENDING, JobStatus.RUNNING}


def detect_drift(db: Session, queue: JobQueue, flow_id: UUID) -> list[ConsistencyDrift]:
    """
    Compare a flow's tracking rows against the queue.

    stale_row: undelivered row whose job is gone or no longer live.
    orphan_job: pending job for the flow with no tracking row.
    """
    findings: list[ConsistencyDrift] = []
    rows = db.query(ScheduledEmail).filter(ScheduledEmail.flow_id == flow_id).all()
    tracked_job_ids = {row.job_id for row in rows}

    for row in rows:
        if row.delivered_at is not None:
            continue
        status = queue.get_status(row.job_id)
        if status not in LIVE_JOB_STATUSES:
            findings.append(
                ConsistencyDrift(
                    "stale_row",
                    f"Scheduled email {row.id} waits on job {row.job_id} "
                    f"which is {status.value if status else 'missing'}",
                    flow_id=flow_id,
                    job_id=row.job_id,
                    scheduled_email_id=row.id,
                )
            )

    for job_id in queue.pending_job_ids(flow_id):
        if job_id not in tracked_job_ids:
            findings.append(
                ConsistencyDrift(
                    "orphan_job",
                    f"Job {job_id} is queued for flow {flow_id} without a tracking row",
                    flow_id=flow_id,
                    job_id=job_id,
                )
            )

    for drift in findings:
        logger.error("Consistency drift (%s): %s", drift.kind, drift.message)
    return findings


def repair_drift(
    db: Session,
    queue: JobQueue,
    flow_id: UUID,
    findings: list[ConsistencyDrift] | None = None,
) -> int:
    """Clear stale rows, cancel orphan jobs and re-project status. Returns fixes applied."""
    if findings is None:
        findings = detect_drift(db, queue, flow_id)

    repaired = 0
    for drift in findings:
        if drift.kind == "stale_row" and drift.scheduled_email_id:
            deleted = (
                db.query(ScheduledEmail)
                .filter(ScheduledEmail.id == drift.scheduled_email_id)
                .delete(synchronize_session="fetch")
            )
            db.commit()
            repaired += deleted
        elif drift.kind == "orphan_job" and drift.job_id:
            repaired += queue.cancel(drift.job_id)

    flow = db.query(Flow).filter(Flow.id == flow_id).first()
    if flow:
        flow_status_service.refresh_flow_status(db, flow)

    logger.info("Repaired %s drift finding(s) for flow %s", repaired, flow_id)
    return repaired
