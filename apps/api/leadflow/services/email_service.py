"""Email service - CRUD for the email templates cold email nodes send."""

from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy.orm import Session

from leadflow.db.models import EmailTemplate


def create_template(
    db: Session,
    user_id: UUID,
    name: str,
    subject: str,
    body: str,
) -> EmailTemplate:
    """Create a new email template."""
    template = EmailTemplate(
        user_id=user_id,
        name=name,
        subject=subject,
        body=body,
    )
    db.add(template)
    db.commit()
    db.refresh(template)
    return template


def get_template(db: Session, template_id: UUID, user_id: UUID) -> EmailTemplate | None:
    """Get an email template by ID, scoped to its owner."""
    return db.query(EmailTemplate).filter(
        EmailTemplate.id == template_id,
        EmailTemplate.user_id == user_id,
    ).first()


def list_templates(db: Session, user_id: UUID) -> list[EmailTemplate]:
    """List a user's email templates, newest first."""
    return (
        db.query(EmailTemplate)
        .filter(EmailTemplate.user_id == user_id)
        .order_by(EmailTemplate.created_at.desc())
        .all()
    )


def update_template(
    db: Session,
    template: EmailTemplate,
    name: str | None = None,
    subject: str | None = None,
    body: str | None = None,
) -> EmailTemplate:
    """Update template fields that were provided."""
    if name is not None:
        template.name = name
    if subject is not None:
        template.subject = subject
    if body is not None:
        template.body = body
    template.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(template)
    return template


def delete_template(db: Session, template: EmailTemplate) -> None:
    """Delete a template. Flows referencing it fail validation until edited."""
    db.delete(template)
    db.commit()
