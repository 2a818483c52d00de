"""Lead source service - CRUD for the contact lists lead source nodes resolve to."""

from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy.orm import Session

from leadflow.db.models import LeadSource
from leadflow.schemas.lead_source import Contact


def _serialize_contacts(contacts: list[Contact]) -> list[dict]:
    return [{"name": c.name, "email": str(c.email)} for c in contacts]


def create_lead_source(
    db: Session,
    user_id: UUID,
    name: str,
    contacts: list[Contact],
) -> LeadSource:
    """Create a lead source with its contacts."""
    lead_source = LeadSource(
        user_id=user_id,
        name=name,
        contacts=_serialize_contacts(contacts),
    )
    db.add(lead_source)
    db.commit()
    db.refresh(lead_source)
    return lead_source


def get_lead_source(db: Session, lead_source_id: UUID, user_id: UUID) -> LeadSource | None:
    """Get a lead source by ID, scoped to its owner."""
    return db.query(LeadSource).filter(
        LeadSource.id == lead_source_id,
        LeadSource.user_id == user_id,
    ).first()


def list_lead_sources(db: Session, user_id: UUID) -> list[LeadSource]:
    """List a user's lead sources, newest first."""
    return (
        db.query(LeadSource)
        .filter(LeadSource.user_id == user_id)
        .order_by(LeadSource.created_at.desc())
        .all()
    )


def update_lead_source(
    db: Session,
    lead_source: LeadSource,
    name: str,
    contacts: list[Contact],
) -> LeadSource:
    """Replace name and contacts. Already scheduled emails keep their recipients."""
    lead_source.name = name
    lead_source.contacts = _serialize_contacts(contacts)
    lead_source.updated_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(lead_source)
    return lead_source


def delete_lead_source(db: Session, lead_source: LeadSource) -> None:
    """Delete a lead source."""
    db.delete(lead_source)
    db.commit()
