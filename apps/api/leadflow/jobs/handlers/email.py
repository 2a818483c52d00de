"""Email-related job handlers."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import UUID

from leadflow.core.config import settings
from leadflow.db.enums import DeliveryStatus
from leadflow.db.models import Flow, ScheduledEmail
from leadflow.jobs.utils import mask_email
from leadflow.services import email_sender, flow_status_service
from leadflow.services.workflow_errors import ConsistencyDrift

logger = logging.getLogger(__name__)


async def process_workflow_email(db, job) -> None:
    """
    Process a WORKFLOW_EMAIL job - send one scheduled workflow email.

    The send is attempted once. Whatever the outcome, the tracking row is
    marked delivered and the flow status is re-projected, so the last job of
    a flow moves it to completed. A failed send then fails the job.

    Payload:
        - flow_id: Flow the email belongs to
        - sender: From address (flow owner)
        - recipient: Contact email address
        - subject: Template subject
        - body: Template body
        - source_node_id / email_node_id: Graph nodes that produced the email
    """
    payload = job.payload or {}
    flow_id = payload.get("flow_id")
    recipient = payload.get("recipient")

    if not flow_id or not recipient:
        raise Exception("Missing flow_id or recipient in workflow email job")

    flow = db.query(Flow).filter(Flow.id == UUID(flow_id)).first()
    if not flow:
        logger.info("Flow %s no longer exists; skipping job %s", flow_id, job.id)
        return

    sender = email_sender.select_sender()
    try:
        result = await sender.send(
            sender=payload.get("sender") or settings.EMAIL_FROM,
            recipient=recipient,
            subject=payload.get("subject") or "",
            body=payload.get("body") or "",
            idempotency_key=f"workflow-email/{job.id}",
        )
    except Exception as e:
        logger.exception("Email sender %s raised for job %s", sender.key, job.id)
        result = email_sender.SendResult(success=False, error=f"{e.__class__.__name__}: {e}")

    if result.success:
        logger.info(
            "Workflow email sent via %s for flow=%s recipient=%s",
            sender.key,
            flow_id,
            mask_email(recipient),
        )
    else:
        logger.warning(
            "Workflow email failed via %s for flow=%s recipient=%s: %s",
            sender.key,
            flow_id,
            mask_email(recipient),
            result.error,
        )

    row = db.query(ScheduledEmail).filter(ScheduledEmail.job_id == job.id).first()
    if row:
        row.delivered_at = datetime.now(timezone.utc)
        row.delivery_status = (
            DeliveryStatus.SENT.value if result.success else DeliveryStatus.FAILED.value
        )
        db.commit()
    else:
        drift = ConsistencyDrift(
            "missing_row",
            f"Job {job.id} fired for flow {flow_id} without a tracking row",
            flow_id=flow.id,
            job_id=job.id,
        )
        logger.error("Consistency drift (%s): %s", drift.kind, drift.message)

    flow_status_service.refresh_flow_status(db, flow)

    if not result.success:
        raise Exception(f"Email send failed: {result.error}")
