"""Pydantic schemas for email templates."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class EmailTemplateCreate(BaseModel):
    """Create a new email template."""
    name: str = Field(..., min_length=1, max_length=100)
    subject: str = Field(..., min_length=1, max_length=200)
    body: str = Field(..., min_length=1, max_length=50000)


class EmailTemplateUpdate(BaseModel):
    """Update an email template."""
    name: str | None = Field(None, min_length=1, max_length=100)
    subject: str | None = Field(None, min_length=1, max_length=200)
    body: str | None = Field(None, min_length=1, max_length=50000)


class EmailTemplateRead(BaseModel):
    """Email template response schema."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    name: str
    subject: str
    body: str
    created_at: datetime
    updated_at: datetime
