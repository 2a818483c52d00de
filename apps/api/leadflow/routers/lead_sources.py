"""Lead sources router - CRUD for a user's contact lists."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from leadflow.core.deps import get_current_session, get_db, require_csrf_header
from leadflow.schemas.auth import UserSession
from leadflow.schemas.lead_source import LeadSourceCreate, LeadSourceRead, LeadSourceUpdate
from leadflow.services import lead_source_service

router = APIRouter(prefix="/lead-sources", tags=["Lead Sources"])


@router.get("", response_model=list[LeadSourceRead])
def list_lead_sources(
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    return lead_source_service.list_lead_sources(db, session.user_id)


@router.post(
    "",
    response_model=LeadSourceRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_csrf_header)],
)
def create_lead_source(
    data: LeadSourceCreate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    """Create a lead source with its contacts."""
    return lead_source_service.create_lead_source(
        db,
        user_id=session.user_id,
        name=data.name,
        contacts=data.contacts,
    )


@router.get("/{lead_source_id}", response_model=LeadSourceRead)
def get_lead_source(
    lead_source_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    lead_source = lead_source_service.get_lead_source(db, lead_source_id, session.user_id)
    if not lead_source:
        raise HTTPException(status_code=404, detail="Lead source not found")
    return lead_source


@router.put(
    "/{lead_source_id}",
    response_model=LeadSourceRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_lead_source(
    lead_source_id: UUID,
    data: LeadSourceUpdate,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    """Replace a lead source's name and contacts."""
    lead_source = lead_source_service.get_lead_source(db, lead_source_id, session.user_id)
    if not lead_source:
        raise HTTPException(status_code=404, detail="Lead source not found")
    return lead_source_service.update_lead_source(
        db, lead_source, name=data.name, contacts=data.contacts
    )


@router.delete(
    "/{lead_source_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_csrf_header)],
)
def delete_lead_source(
    lead_source_id: UUID,
    db: Session = Depends(get_db),
    session: UserSession = Depends(get_current_session),
):
    lead_source = lead_source_service.get_lead_source(db, lead_source_id, session.user_id)
    if not lead_source:
        raise HTTPException(status_code=404, detail="Lead source not found")
    lead_source_service.delete_lead_source(db, lead_source)
