"""Cancellation coordinator - withdraws every outstanding email of a flow."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy.orm import Session

from leadflow.db.models import Flow, ScheduledEmail
from leadflow.services import flow_status_service
from leadflow.services.job_queue import JobQueue
from leadflow.services.workflow_errors import CancellationError

logger = logging.getLogger(__name__)


@dataclass
class CancelResult:
    canceled: int = 0
    cleared: int = 0
    stale_job_ids: list[UUID] = field(default_factory=list)
    failed_job_ids: list[UUID] = field(default_factory=list)


def cancel_all(db: Session, queue: JobQueue, flow_id: UUID) -> CancelResult:
    """
    Cancel all outstanding jobs for a flow and clear their tracking rows.

    Delivered rows are cleared without touching the queue. When the queue no
    longer knows an undelivered row's job, the row is cleared anyway and the
    job id is reported. When the queue raises, the row is kept so a retry can
    cancel it. The pass always finishes before raising.

    Raises:
        CancellationError: one or more undelivered rows had no live job, or
            their job could not be canceled
    """
    result = CancelResult()
    rows = db.query(ScheduledEmail).filter(ScheduledEmail.flow_id == flow_id).all()

    for row in rows:
        job_id = row.job_id
        if row.delivered_at is None:
            try:
                canceled = queue.cancel(job_id)
            except Exception:
                db.rollback()
                result.failed_job_ids.append(job_id)
                logger.exception("Failed to cancel job %s for flow %s", job_id, flow_id)
                continue
            if canceled:
                result.canceled += canceled
            else:
                result.stale_job_ids.append(job_id)
                logger.warning(
                    "Job %s for flow %s was not in the queue when canceling",
                    job_id,
                    flow_id,
                )
        db.delete(row)
        db.commit()
        result.cleared += 1

    flow = db.query(Flow).filter(Flow.id == flow_id).first()
    if flow:
        flow_status_service.refresh_flow_status(db, flow)

    logger.info(
        "Canceled %s job(s), cleared %s row(s) for flow %s",
        result.canceled,
        result.cleared,
        flow_id,
    )

    if result.stale_job_ids or result.failed_job_ids:
        raise CancellationError(flow_id, result.stale_job_ids, result.failed_job_ids)
    return result
