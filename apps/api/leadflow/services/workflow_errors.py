"""Error taxonomy for the workflow scheduling engine."""

from __future__ import annotations

from uuid import UUID


class WorkflowEngineError(Exception):
    """Base class for workflow engine errors."""

    pass


class WorkflowValidationError(WorkflowEngineError):
    """Graph or referenced data is not runnable. Message is shown to the user verbatim."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class SchedulingAnomaly(WorkflowEngineError):
    """
    One reachable (recipient, email step) pair could not be scheduled.

    Collected into scheduling results and logged; never raised across a batch.

    kind:
        - cycle: the forward walk revisited a node and the path was abandoned
        - enqueue_failed: the job queue rejected the job
        - persist_failed: the tracking row could not be written (job compensated)
    """

    def __init__(
        self,
        kind: str,
        message: str,
        *,
        source_node_id: str | None = None,
        email_node_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.source_node_id = source_node_id
        self.email_node_id = email_node_id


class CancellationError(WorkflowEngineError):
    """
    Outstanding jobs of a flow could not all be withdrawn.

    stale_job_ids: the queue no longer knew the job (row cleared anyway)
    failed_job_ids: the queue raised on cancel (row kept for a retry)
    """

    def __init__(
        self,
        flow_id: UUID,
        stale_job_ids: list[UUID],
        failed_job_ids: list[UUID] | None = None,
    ) -> None:
        self.flow_id = flow_id
        self.stale_job_ids = list(stale_job_ids)
        self.failed_job_ids = list(failed_job_ids or [])
        parts = []
        if self.stale_job_ids:
            parts.append(
                f"{len(self.stale_job_ids)} scheduled email(s) for flow {flow_id} "
                "were no longer in the job queue"
            )
        if self.failed_job_ids:
            parts.append(
                f"{len(self.failed_job_ids)} scheduled email(s) for flow {flow_id} "
                "could not be canceled"
            )
        super().__init__("; ".join(parts))


class ConsistencyDrift(WorkflowEngineError):
    """
    Store and job queue disagree about a flow's outstanding work.

    kind:
        - orphan_job: a job is queued with no tracking row
        - stale_row: an undelivered tracking row has no live job
        - missing_row: a job fired with no tracking row to mark delivered
    """

    def __init__(
        self,
        kind: str,
        message: str,
        *,
        flow_id: UUID | None = None,
        job_id: UUID | None = None,
        scheduled_email_id: UUID | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.flow_id = flow_id
        self.job_id = job_id
        self.scheduled_email_id = scheduled_email_id
