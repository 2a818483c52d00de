"""Delay resolver - turns a workflow graph into a send plan.

For every contact of every lead source node and every cold email node, the
graph is walked forward from the source node. Wait nodes add their delay;
every other node is passed through. Each distinct delay at which the email
node is reached yields one plan entry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy.orm import Session

from leadflow.db.enums import WorkflowNodeType
from leadflow.jobs.utils import mask_email
from leadflow.schemas.workflow import WorkflowGraph
from leadflow.services import workflow_validator
from leadflow.services.workflow_errors import SchedulingAnomaly

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlanEntry:
    """One email to send to one recipient at one time."""

    source_node_id: str
    contact: dict
    email_node_id: str
    template_id: UUID
    subject: str
    body: str
    send_at: datetime

    @property
    def recipient(self) -> str:
        return str(self.contact.get("email", "")).strip()


@dataclass
class ResolvedPlan:
    entries: list[PlanEntry] = field(default_factory=list)
    anomalies: list[SchedulingAnomaly] = field(default_factory=list)


def resolve_delays(
    graph: WorkflowGraph,
    source_node_id: str,
    email_node_id: str,
) -> tuple[list[timedelta], SchedulingAnomaly | None]:
    """
    Distinct accumulated delays from a source node to an email node.

    Follows every forward path (fan-out). A path that revisits a node, or that
    grows longer than the graph has nodes, is abandoned and reported as a
    cycle anomaly. An empty list means the email node is unreachable.
    """
    nodes = graph.node_by_id()
    adjacency = graph.adjacency()
    max_depth = len(nodes)

    delays: list[timedelta] = []
    cycle_found = False
    # (node id, delay so far, nodes on this path)
    stack: list[tuple[str, timedelta, frozenset[str]]] = [
        (source_node_id, timedelta(0), frozenset({source_node_id}))
    ]

    while stack:
        node_id, delay, visited = stack.pop()
        # Reverse so edges are explored in their declared order
        for target in reversed(adjacency.get(node_id, [])):
            if target in visited or len(visited) >= max_depth:
                cycle_found = True
                continue
            node = nodes.get(target)
            if node is None:
                continue

            total = delay
            if node.type == WorkflowNodeType.WAIT.value:
                total = delay + node.data.delay

            if target == email_node_id:
                if total not in delays:
                    delays.append(total)
                continue

            stack.append((target, total, visited | {target}))

    anomaly = None
    if cycle_found:
        anomaly = SchedulingAnomaly(
            "cycle",
            f"Cycle detected on a path from '{source_node_id}' to '{email_node_id}'; path skipped",
            source_node_id=source_node_id,
            email_node_id=email_node_id,
        )
    return sorted(delays), anomaly


def resolve_plan(
    db: Session,
    graph: WorkflowGraph,
    user_id: UUID,
    now: datetime | None = None,
) -> ResolvedPlan:
    """
    Build the send plan for a graph.

    Entries are ordered by source node, contact, email node (graph order)
    and then delay. With a fixed graph and a fixed now the plan is identical.
    """
    now = now or datetime.now(timezone.utc)
    plan = ResolvedPlan()

    email_nodes = graph.nodes_of(WorkflowNodeType.COLD_EMAIL)
    templates = {}
    for node in email_nodes:
        template = workflow_validator.get_owned_template(db, node.data.email_template_id, user_id)
        if not template:
            logger.warning("Email node %s has no usable template; skipping it", node.id)
            continue
        templates[node.id] = template

    for source in graph.nodes_of(WorkflowNodeType.LEAD_SOURCE):
        lead_source = workflow_validator.get_owned_lead_source(
            db, source.data.lead_source_id, user_id
        )
        if not lead_source:
            logger.warning("Lead source node %s has no usable lead source; skipping it", source.id)
            continue

        delays_by_email: dict[str, list[timedelta]] = {}
        for node in email_nodes:
            if node.id not in templates:
                continue
            delays, anomaly = resolve_delays(graph, source.id, node.id)
            if anomaly:
                logger.warning(
                    "Cycle on path %s -> %s; path abandoned", source.id, node.id
                )
                plan.anomalies.append(anomaly)
            if delays:
                delays_by_email[node.id] = delays

        for contact in lead_source.contacts or []:
            email = contact.get("email") if isinstance(contact, dict) else None
            if not workflow_validator.is_valid_email(email):
                logger.warning(
                    "Skipping contact with invalid email %s in lead source %s",
                    mask_email(str(email or "")),
                    lead_source.id,
                )
                continue
            for node in email_nodes:
                template = templates.get(node.id)
                for delay in delays_by_email.get(node.id, []):
                    plan.entries.append(
                        PlanEntry(
                            source_node_id=source.id,
                            contact=dict(contact),
                            email_node_id=node.id,
                            template_id=template.id,
                            subject=template.subject,
                            body=template.body,
                            send_at=now + delay,
                        )
                    )

    return plan


def validate_and_plan(
    db: Session,
    graph: WorkflowGraph,
    user_id: UUID,
    now: datetime | None = None,
) -> ResolvedPlan:
    """
    Validate a graph, then resolve its plan.

    Raises:
        WorkflowValidationError: graph is not runnable (nothing resolved)
    """
    workflow_validator.validate_workflow(db, graph, user_id)
    return resolve_plan(db, graph, user_id, now=now)
