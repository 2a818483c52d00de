"""Email templates router - CRUD for a user's email templates."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from leadflow.core.deps import get_current_session, get_db, require_csrf_header
from leadflow.schemas.auth import UserSession
from leadflow.schemas.email import EmailTemplateCreate, EmailTemplateRead, EmailTemplateUpdate
from leadflow.services import email_service

router = APIRouter(prefix="/email-templates", tags=["Email Templates"])


@router.get("", response_model=list[EmailTemplateRead])
def list_templates(
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    """List the user's email templates."""
    return email_service.list_templates(db, session.user_id)


@router.post(
    "",
    response_model=EmailTemplateRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_csrf_header)],
)
def create_template(
    data: EmailTemplateCreate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    """Create a new email template."""
    return email_service.create_template(
        db,
        user_id=session.user_id,
        name=data.name,
        subject=data.subject,
        body=data.body,
    )


@router.get("/{template_id}", response_model=EmailTemplateRead)
def get_template(
    template_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    """Get an email template by ID."""
    template = email_service.get_template(db, template_id, session.user_id)
    if not template:
        raise HTTPException(status_code=404, detail="Template not found")
    return template


@router.patch(
    "/{template_id}",
    response_model=EmailTemplateRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_template(
    template_id: UUID,
    data: EmailTemplateUpdate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    """Update an email template."""
    template = email_service.get_template(db, template_id, session.user_id)
    if not template:
        raise HTTPException(status_code=404, detail="Template not found")

    return email_service.update_template(
        db,
        template,
        name=data.name,
        subject=data.subject,
        body=data.body,
    )


@router.delete(
    "/{template_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_csrf_header)],
)
def delete_template(
    template_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    """Delete an email template."""
    template = email_service.get_template(db, template_id, session.user_id)
    if not template:
        raise HTTPException(status_code=404, detail="Template not found")

    email_service.delete_template(db, template)
