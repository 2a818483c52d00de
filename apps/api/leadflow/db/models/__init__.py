"""SQLAlchemy ORM models."""

from leadflow.db.models.auth import User
from leadflow.db.models.email import EmailTemplate
from leadflow.db.models.jobs import Job
from leadflow.db.models.leads import LeadSource
from leadflow.db.models.workflows import Flow, ScheduledEmail

__all__ = [
    "EmailTemplate",
    "Flow",
    "Job",
    "LeadSource",
    "ScheduledEmail",
    "User",
]
