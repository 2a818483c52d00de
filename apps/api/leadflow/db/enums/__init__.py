"""Enum definitions for application constants."""

from leadflow.db.enums.defaults import DEFAULT_FLOW_STATUS, DEFAULT_JOB_STATUS
from leadflow.db.enums.jobs import JobStatus, JobType
from leadflow.db.enums.workflows import DeliveryStatus, FlowStatus, WorkflowNodeType

__all__ = [
    "DEFAULT_FLOW_STATUS",
    "DEFAULT_JOB_STATUS",
    "DeliveryStatus",
    "FlowStatus",
    "JobStatus",
    "JobType",
    "WorkflowNodeType",
]
