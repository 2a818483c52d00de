"""Workflow validator - checks a graph is runnable before it is saved or started.

Read-only against the database. The first failing rule wins and its message
is returned to the user verbatim.
"""

from uuid import UUID

from pydantic import EmailStr, TypeAdapter, ValidationError
from sqlalchemy.orm import Session

from leadflow.core.config import settings
from leadflow.db.enums import WorkflowNodeType
from leadflow.db.models import EmailTemplate, LeadSource
from leadflow.schemas.workflow import WorkflowGraph
from leadflow.services.workflow_errors import WorkflowValidationError

MSG_SOURCE_REQUIRED = "At least one Lead Source node is required."
MSG_EMAIL_REQUIRED = "At least one Cold Email node is required."
MSG_SOURCE_UNSELECTED = "All Lead Source nodes must have a selected lead source."
MSG_SOURCE_NO_CONTACTS = "All Lead Source nodes must have at least one contact with an email address."
MSG_SOURCE_INVALID_EMAIL = "All contacts in Lead Source nodes must have a valid email address."
MSG_TEMPLATE_UNSELECTED = "All Cold Email nodes must have a selected email template."
MSG_TEMPLATE_INVALID = "All Cold Email nodes must have a valid email template with a subject and body."
MSG_DANGLING_EDGE = "All connections must reference existing nodes."

_email_adapter = TypeAdapter(EmailStr)


def _parse_uuid(raw: str | None) -> UUID | None:
    if not raw:
        return None
    try:
        return UUID(str(raw))
    except ValueError:
        return None


def get_owned_lead_source(db: Session, raw_id: str | None, user_id: UUID) -> LeadSource | None:
    """Lead source referenced by a node, only if the flow owner owns it."""
    lead_source_id = _parse_uuid(raw_id)
    if not lead_source_id:
        return None
    return db.query(LeadSource).filter(
        LeadSource.id == lead_source_id,
        LeadSource.user_id == user_id,
    ).first()


def get_owned_template(db: Session, raw_id: str | None, user_id: UUID) -> EmailTemplate | None:
    """Email template referenced by a node, only if the flow owner owns it."""
    template_id = _parse_uuid(raw_id)
    if not template_id:
        return None
    return db.query(EmailTemplate).filter(
        EmailTemplate.id == template_id,
        EmailTemplate.user_id == user_id,
    ).first()


def is_valid_email(value: object) -> bool:
    """Non-blank and syntactically valid."""
    if not isinstance(value, str) or not value.strip():
        return False
    try:
        _email_adapter.validate_python(value.strip())
    except ValidationError:
        return False
    return True


def validate_workflow(
    db: Session,
    graph: WorkflowGraph,
    user_id: UUID,
    *,
    require_source_and_email: bool | None = None,
) -> None:
    """
    Validate a workflow graph.

    Raises:
        WorkflowValidationError: first rule that failed
    """
    if require_source_and_email is None:
        require_source_and_email = settings.WORKFLOW_REQUIRE_SOURCE_AND_EMAIL

    source_nodes = graph.nodes_of(WorkflowNodeType.LEAD_SOURCE)
    email_nodes = graph.nodes_of(WorkflowNodeType.COLD_EMAIL)

    if require_source_and_email:
        if not source_nodes:
            raise WorkflowValidationError(MSG_SOURCE_REQUIRED)
        if not email_nodes:
            raise WorkflowValidationError(MSG_EMAIL_REQUIRED)

    for node in source_nodes:
        if not node.data.lead_source_id:
            raise WorkflowValidationError(MSG_SOURCE_UNSELECTED)

        lead_source = get_owned_lead_source(db, node.data.lead_source_id, user_id)
        if not lead_source or not lead_source.contacts:
            raise WorkflowValidationError(MSG_SOURCE_NO_CONTACTS)

        for contact in lead_source.contacts:
            email = contact.get("email") if isinstance(contact, dict) else None
            if not is_valid_email(email):
                raise WorkflowValidationError(MSG_SOURCE_INVALID_EMAIL)

    for node in email_nodes:
        if not node.data.email_template_id:
            raise WorkflowValidationError(MSG_TEMPLATE_UNSELECTED)

        template = get_owned_template(db, node.data.email_template_id, user_id)
        if not template or not (template.subject or "").strip() or not (template.body or "").strip():
            raise WorkflowValidationError(MSG_TEMPLATE_INVALID)

    node_ids = {n.id for n in graph.nodes}
    for edge in graph.edges:
        if edge.source not in node_ids or edge.target not in node_ids:
            raise WorkflowValidationError(MSG_DANGLING_EDGE)
