"""Scheduling coordinator - turns a resolved plan into queued jobs.

Each plan entry is a small saga: the job is enqueued first, then its tracking
row is written. When the row cannot be written the job is canceled again. A
failed entry is reported and the remaining entries are still scheduled.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from leadflow.core.structured_logging import build_log_context
from leadflow.db.enums import JobType
from leadflow.db.models import Flow, ScheduledEmail
from leadflow.jobs.utils import mask_email
from leadflow.services import flow_status_service
from leadflow.services.job_queue import JobQueue
from leadflow.services.workflow_errors import ConsistencyDrift, SchedulingAnomaly
from leadflow.services.workflow_resolver import PlanEntry, ResolvedPlan

logger = logging.getLogger(__name__)


@dataclass
class ScheduleResult:
    scheduled: int = 0
    anomalies: list[SchedulingAnomaly] = field(default_factory=list)
    drift: list[ConsistencyDrift] = field(default_factory=list)


def build_job_payload(flow: Flow, entry: PlanEntry, sender_email: str) -> dict:
    return {
        "flow_id": str(flow.id),
        "sender": sender_email,
        "recipient": entry.recipient,
        "subject": entry.subject,
        "body": entry.body,
        "source_node_id": entry.source_node_id,
        "email_node_id": entry.email_node_id,
    }


def _compensate(
    queue: JobQueue,
    flow: Flow,
    job_id,
    result: ScheduleResult,
) -> None:
    """Cancel a job whose tracking row could not be written."""
    try:
        canceled = queue.cancel(job_id)
    except Exception as exc:
        canceled = 0
        reason = f"cancel raised {type(exc).__name__}: {exc}"
    else:
        reason = "cancel found nothing to cancel"

    if canceled:
        return

    drift = ConsistencyDrift(
        "orphan_job",
        f"Job {job_id} for flow {flow.id} is queued without a tracking row ({reason})",
        flow_id=flow.id,
        job_id=job_id,
    )
    result.drift.append(drift)
    logger.error(
        "Compensation failed, orphan job left in queue: %s",
        drift.message,
        extra=build_log_context(flow_id=str(flow.id), job_id=str(job_id)),
    )


def schedule_plan(
    db: Session,
    queue: JobQueue,
    flow: Flow,
    plan: ResolvedPlan,
    sender_email: str,
) -> ScheduleResult:
    """
    Enqueue one job per plan entry and record it.

    Returns the number of entries scheduled plus every entry-level anomaly
    (anomalies already found by the resolver are carried over).
    """
    result = ScheduleResult(anomalies=list(plan.anomalies))
    flow_id = flow.id

    for entry in plan.entries:
        payload = build_job_payload(flow, entry, sender_email)
        try:
            job_id = queue.schedule(entry.send_at, JobType.WORKFLOW_EMAIL, payload)
        except Exception as exc:
            db.rollback()
            anomaly = SchedulingAnomaly(
                "enqueue_failed",
                f"Could not enqueue email to {mask_email(entry.recipient)}: {exc}",
                source_node_id=entry.source_node_id,
                email_node_id=entry.email_node_id,
            )
            result.anomalies.append(anomaly)
            logger.warning(
                "Enqueue failed for flow %s node %s: %s",
                flow_id,
                entry.email_node_id,
                exc,
            )
            continue

        try:
            db.add(
                ScheduledEmail(
                    flow_id=flow_id,
                    job_id=job_id,
                    recipient_email=entry.recipient,
                    source_node_id=entry.source_node_id,
                    email_node_id=entry.email_node_id,
                    send_at=entry.send_at,
                )
            )
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            anomaly = SchedulingAnomaly(
                "persist_failed",
                f"Could not record email to {mask_email(entry.recipient)}: {exc}",
                source_node_id=entry.source_node_id,
                email_node_id=entry.email_node_id,
            )
            result.anomalies.append(anomaly)
            logger.warning(
                "Tracking row failed for flow %s job %s; canceling job",
                flow_id,
                job_id,
            )
            _compensate(queue, flow, job_id, result)
            continue

        result.scheduled += 1

    if result.scheduled:
        flow_status_service.refresh_flow_status(db, flow)

    logger.info(
        "Scheduled %s email(s) for flow %s (%s anomalies)",
        result.scheduled,
        flow_id,
        len(result.anomalies),
    )
    return result
