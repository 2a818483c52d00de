"""Workflow-related enums."""

from enum import Enum


class FlowStatus(str, Enum):
    """Aggregate run status of a flow (projection of its scheduled emails)."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"


class WorkflowNodeType(str, Enum):
    """Node kinds a workflow graph may contain."""

    LEAD_SOURCE = "leadSource"
    WAIT = "wait"
    COLD_EMAIL = "coldEmail"


class DeliveryStatus(str, Enum):
    """Outcome recorded on a scheduled email once its job fired."""

    SENT = "sent"
    FAILED = "failed"
