"""Pydantic schemas for lead sources."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class Contact(BaseModel):
    """A single recipient in a lead source."""
    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr


class LeadSourceCreate(BaseModel):
    """Create a lead source."""
    name: str = Field(..., min_length=1, max_length=100)
    contacts: list[Contact] = Field(..., min_length=1)


class LeadSourceUpdate(LeadSourceCreate):
    """Replace a lead source's name and contacts."""


class LeadSourceRead(BaseModel):
    """Lead source response schema."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    name: str
    contacts: list[dict]
    created_at: datetime
    updated_at: datetime
