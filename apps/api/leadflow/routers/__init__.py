"""API routers."""

from leadflow.routers.email_templates import router as email_templates_router
from leadflow.routers.lead_sources import router as lead_sources_router
from leadflow.routers.workflows import router as workflows_router

__all__ = [
    "email_templates_router",
    "lead_sources_router",
    "workflows_router",
]
