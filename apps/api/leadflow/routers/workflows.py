"""Workflow API router - save, schedule and stop email flows."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from leadflow.core.deps import get_current_session, get_db, get_job_queue, require_csrf_header
from leadflow.db.models import Flow
from leadflow.schemas.auth import UserSession
from leadflow.schemas.workflow import (
    FlowActionResponse,
    FlowCreate,
    FlowListItem,
    FlowRead,
    FlowUpdate,
    ScheduleSummary,
    SchedulingAnomalyRead,
)
from leadflow.services import workflow_service
from leadflow.services.job_queue import JobQueue
from leadflow.services.workflow_errors import CancellationError, WorkflowValidationError
from leadflow.services.workflow_scheduler import ScheduleResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workflows", tags=["Workflows"])


def _get_owned_flow(db: Session, flow_id: UUID, session: UserSession) -> Flow:
    flow = workflow_service.get_flow(db, flow_id, session.user_id)
    if not flow:
        raise HTTPException(status_code=404, detail="Workflow not found")
    return flow


def _summary(result: ScheduleResult | None) -> ScheduleSummary | None:
    if result is None:
        return None
    return ScheduleSummary(
        scheduled=result.scheduled,
        anomalies=[
            SchedulingAnomalyRead(
                kind=a.kind,
                message=a.message,
                source_node_id=a.source_node_id,
                email_node_id=a.email_node_id,
            )
            for a in result.anomalies
        ],
    )


def _action_error(exc: Exception) -> HTTPException:
    if isinstance(exc, WorkflowValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message)
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))


def _respond(flow: Flow, result: ScheduleResult | None = None) -> FlowActionResponse:
    return FlowActionResponse(flow=FlowRead.model_validate(flow), schedule=_summary(result))


# =============================================================================
# Save
# =============================================================================


@router.post(
    "/save",
    response_model=FlowActionResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_csrf_header)],
)
def save_workflow(
    data: FlowCreate,
    db: Session = Depends(get_db),
    queue: JobQueue = Depends(get_job_queue),
    session: UserSession = Depends(get_current_session),
):
    """Validate and save a flow without scheduling it."""
    try:
        flow, _ = workflow_service.create_flow(db, session, data, queue)
    except WorkflowValidationError as exc:
        raise _action_error(exc)
    return _respond(flow)


@router.post(
    "/save-and-start",
    response_model=FlowActionResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_csrf_header)],
)
def save_and_start_workflow(
    data: FlowCreate,
    db: Session = Depends(get_db),
    queue: JobQueue = Depends(get_job_queue),
    session: UserSession = Depends(get_current_session),
):
    """Validate, save and schedule a flow."""
    try:
        flow, result = workflow_service.create_flow(db, session, data, queue, start=True)
    except WorkflowValidationError as exc:
        raise _action_error(exc)
    return _respond(flow, result)


# =============================================================================
# Read
# =============================================================================


@router.get("/getAll", response_model=list[FlowListItem])
def list_workflows(
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    """List the user's flows."""
    flows = workflow_service.list_flows(db, session.user_id)
    return [FlowListItem.model_validate(f) for f in flows]


@router.get("/get/{flow_id}", response_model=FlowRead)
def get_workflow(
    flow_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    return _get_owned_flow(db, flow_id, session)


# =============================================================================
# Update
# =============================================================================


@router.patch(
    "/update/{flow_id}",
    response_model=FlowActionResponse,
    dependencies=[Depends(require_csrf_header)],
)
def update_workflow(
    flow_id: UUID,
    data: FlowUpdate,
    db: Session = Depends(get_db),
    queue: JobQueue = Depends(get_job_queue),
    session: UserSession = Depends(get_current_session),
):
    """Replace a flow's graph. Outstanding emails are canceled."""
    flow = _get_owned_flow(db, flow_id, session)
    try:
        flow, _ = workflow_service.update_flow(db, flow, session, data, queue)
    except (WorkflowValidationError, CancellationError) as exc:
        raise _action_error(exc)
    return _respond(flow)


@router.patch(
    "/update-and-start/{flow_id}",
    response_model=FlowActionResponse,
    dependencies=[Depends(require_csrf_header)],
)
def update_and_start_workflow(
    flow_id: UUID,
    data: FlowUpdate,
    db: Session = Depends(get_db),
    queue: JobQueue = Depends(get_job_queue),
    session: UserSession = Depends(get_current_session),
):
    """Replace a flow's graph and schedule it from now."""
    flow = _get_owned_flow(db, flow_id, session)
    try:
        flow, result = workflow_service.update_flow(db, flow, session, data, queue, start=True)
    except (WorkflowValidationError, CancellationError) as exc:
        raise _action_error(exc)
    return _respond(flow, result)


# =============================================================================
# Scheduler control
# =============================================================================


@router.post(
    "/start-scheduler/{flow_id}",
    response_model=FlowActionResponse,
    dependencies=[Depends(require_csrf_header)],
)
def start_scheduler(
    flow_id: UUID,
    db: Session = Depends(get_db),
    queue: JobQueue = Depends(get_job_queue),
    session: UserSession = Depends(get_current_session),
):
    """(Re)schedule a saved flow from now."""
    flow = _get_owned_flow(db, flow_id, session)
    try:
        result = workflow_service.start_flow(db, flow, session, queue)
    except (WorkflowValidationError, CancellationError) as exc:
        raise _action_error(exc)
    db.refresh(flow)
    return _respond(flow, result)


@router.post(
    "/stop-scheduler/{flow_id}",
    response_model=FlowActionResponse,
    dependencies=[Depends(require_csrf_header)],
)
def stop_scheduler(
    flow_id: UUID,
    db: Session = Depends(get_db),
    queue: JobQueue = Depends(get_job_queue),
    session: UserSession = Depends(get_current_session),
):
    """Cancel every outstanding email of a flow."""
    flow = _get_owned_flow(db, flow_id, session)
    try:
        flow = workflow_service.stop_flow(db, flow, queue)
    except CancellationError as exc:
        raise _action_error(exc)
    return _respond(flow)


@router.delete(
    "/delete/{flow_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_csrf_header)],
)
def delete_workflow(
    flow_id: UUID,
    db: Session = Depends(get_db),
    queue: JobQueue = Depends(get_job_queue),
    session: UserSession = Depends(get_current_session),
):
    """Cancel outstanding emails and delete the flow."""
    flow = _get_owned_flow(db, flow_id, session)
    workflow_service.delete_flow(db, flow, queue)
    logger.info("Deleted flow %s", flow_id)
