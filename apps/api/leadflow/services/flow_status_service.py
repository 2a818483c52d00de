"""Flow status projection.

Flow.status is never set directly by the engine. It is recomputed from the
flow's scheduled emails:

    any undelivered row          -> running
    rows exist, all delivered    -> completed
    no rows                      -> pending
"""

import logging
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from leadflow.db.enums import FlowStatus
from leadflow.db.models import Flow, ScheduledEmail

logger = logging.getLogger(__name__)


def count_outstanding(db: Session, flow_id: UUID) -> int:
    """Scheduled emails for a flow that have not been delivered yet."""
    return (
        db.query(func.count(ScheduledEmail.id))
        .filter(
            ScheduledEmail.flow_id == flow_id,
            ScheduledEmail.delivered_at.is_(None),
        )
        .scalar()
        or 0
    )


def project_flow_status(db: Session, flow_id: UUID) -> FlowStatus:
    if count_outstanding(db, flow_id):
        return FlowStatus.RUNNING
    has_rows = (
        db.query(ScheduledEmail.id).filter(ScheduledEmail.flow_id == flow_id).first()
        is not None
    )
    return FlowStatus.COMPLETED if has_rows else FlowStatus.PENDING


def refresh_flow_status(db: Session, flow: Flow) -> FlowStatus:
    """Recompute and store a flow's status. Commits only when it changed."""
    status = project_flow_status(db, flow.id)
    if flow.status != status.value:
        logger.info("Flow %s status %s -> %s", flow.id, flow.status, status.value)
        flow.status = status.value
        db.commit()
        db.refresh(flow)
    return status
