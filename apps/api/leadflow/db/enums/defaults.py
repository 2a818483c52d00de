"""Centralized defaults for enums."""

from leadflow.db.enums.jobs import JobStatus
from leadflow.db.enums.workflows import FlowStatus


DEFAULT_JOB_STATUS: JobStatus = JobStatus.PENDING
DEFAULT_FLOW_STATUS: FlowStatus = FlowStatus.PENDING
