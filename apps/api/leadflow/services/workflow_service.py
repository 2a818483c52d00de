"""Workflow service - save, start, stop and delete email flows."""

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from leadflow.db.models import Flow
from leadflow.schemas.auth import UserSession
from leadflow.schemas.workflow import FlowCreate, FlowUpdate, WorkflowGraph
from leadflow.services import flow_status_service, workflow_validator
from leadflow.services.job_queue import JobQueue
from leadflow.services.workflow_cancellation import cancel_all
from leadflow.services.workflow_errors import CancellationError
from leadflow.services.workflow_resolver import resolve_plan, validate_and_plan
from leadflow.services.workflow_scheduler import ScheduleResult, schedule_plan

logger = logging.getLogger(__name__)


def stored_graph(flow: Flow) -> WorkflowGraph:
    return WorkflowGraph.from_storage(flow.nodes, flow.edges)


def _schedule(db: Session, queue: JobQueue, flow: Flow, user: UserSession) -> ScheduleResult:
    plan = resolve_plan(db, stored_graph(flow), user.user_id)
    return schedule_plan(db, queue, flow, plan, sender_email=user.email)


# =============================================================================
# CRUD Operations
# =============================================================================


def create_flow(
    db: Session,
    user: UserSession,
    data: FlowCreate,
    queue: JobQueue,
    start: bool = False,
) -> tuple[Flow, ScheduleResult | None]:
    """
    Validate and save a new flow, optionally scheduling it right away.

    Raises:
        WorkflowValidationError: nothing is saved
    """
    graph = data.graph()
    plan = validate_and_plan(db, graph, user.user_id)

    nodes, edges = graph.to_storage()
    flow = Flow(user_id=user.user_id, name=data.name, nodes=nodes, edges=edges)
    db.add(flow)
    db.commit()
    db.refresh(flow)

    result = None
    if start:
        result = schedule_plan(db, queue, flow, plan, sender_email=user.email)
    return flow, result


def update_flow(
    db: Session,
    flow: Flow,
    user: UserSession,
    data: FlowUpdate,
    queue: JobQueue,
    start: bool = False,
) -> tuple[Flow, ScheduleResult | None]:
    """
    Replace a flow's name and graph.

    The new graph is validated before anything changes. Outstanding emails
    are then canceled, so an edited flow is back to pending unless start is
    set, in which case the new graph is scheduled.

    Raises:
        WorkflowValidationError: flow left untouched
        CancellationError: stale jobs were found; flow left with its old graph
    """
    current = stored_graph(flow)
    graph = WorkflowGraph(
        nodes=data.nodes if data.nodes is not None else current.nodes,
        edges=data.edges if data.edges is not None else current.edges,
    )
    workflow_validator.validate_workflow(db, graph, user.user_id)

    cancel_all(db, queue, flow.id)

    if data.name is not None:
        flow.name = data.name
    flow.nodes, flow.edges = graph.to_storage()
    db.commit()
    db.refresh(flow)
    flow_status_service.refresh_flow_status(db, flow)

    result = None
    if start:
        result = _schedule(db, queue, flow, user)
    return flow, result


def start_flow(
    db: Session,
    flow: Flow,
    user: UserSession,
    queue: JobQueue,
) -> ScheduleResult:
    """(Re)start a flow: validate its graph, cancel what is outstanding, schedule fresh."""
    workflow_validator.validate_workflow(db, stored_graph(flow), user.user_id)
    cancel_all(db, queue, flow.id)
    return _schedule(db, queue, flow, user)


def stop_flow(db: Session, flow: Flow, queue: JobQueue) -> Flow:
    """Cancel every outstanding email. The flow returns to pending."""
    cancel_all(db, queue, flow.id)
    db.refresh(flow)
    return flow


def delete_flow(db: Session, flow: Flow, queue: JobQueue) -> None:
    """Cancel outstanding emails, then delete the flow."""
    try:
        cancel_all(db, queue, flow.id)
    except CancellationError as exc:
        # Jobs left in the queue find no flow when they fire and are skipped
        logger.warning("Deleting flow %s with stale jobs: %s", flow.id, exc)
    db.delete(flow)
    db.commit()


def get_flow(db: Session, flow_id: UUID, user_id: UUID) -> Flow | None:
    """Get flow by ID (owner-scoped)."""
    return db.query(Flow).filter(Flow.id == flow_id, Flow.user_id == user_id).first()


def list_flows(db: Session, user_id: UUID) -> list[Flow]:
    """List a user's flows, newest first."""
    return (
        db.query(Flow)
        .filter(Flow.user_id == user_id)
        .order_by(Flow.created_at.desc())
        .all()
    )
