"""SQLAlchemy ORM models."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import JSON, ForeignKey, Index, String, Uuid, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from leadflow.db.base import Base
from leadflow.db.enums import DEFAULT_FLOW_STATUS
from leadflow.db.types import utcnow


class Flow(Base):
    """
    A saved workflow graph plus its run status.

    nodes/edges hold the graph exactly as the builder submitted it.
    status is a projection of the flow's scheduled emails, see
    flow_status_service.
    """

    __tablename__ = "flows"
    __table_args__ = (Index("idx_flows_user", "user_id", "created_at"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    nodes: Mapped[list] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"), nullable=False, default=list
    )
    edges: Mapped[list] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"), nullable=False, default=list
    )
    status: Mapped[str] = mapped_column(
        String(20),
        default=DEFAULT_FLOW_STATUS.value,
        server_default=text(f"'{DEFAULT_FLOW_STATUS.value}'"),
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    scheduled_emails: Mapped[list["ScheduledEmail"]] = relationship(
        back_populates="flow",
        cascade="all, delete-orphan",
    )


class ScheduledEmail(Base):
    """
    Tracking row tying one plan entry to its job in the delayed job queue.

    Created after the queue accepted the job; deleted on cancellation;
    marked delivered (not deleted) once the job fired.
    """

    __tablename__ = "scheduled_emails"
    __table_args__ = (
        Index("idx_scheduled_emails_flow", "flow_id", "delivered_at"),
        Index("idx_scheduled_emails_job", "job_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    flow_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("flows.id", ondelete="CASCADE"), nullable=False
    )
    # Handle in the job queue; the queue is external, so no FK
    job_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)

    recipient_email: Mapped[str] = mapped_column(String(255), nullable=False)
    source_node_id: Mapped[str] = mapped_column(String(100), nullable=False)
    email_node_id: Mapped[str] = mapped_column(String(100), nullable=False)
    send_at: Mapped[datetime] = mapped_column(nullable=False)

    delivered_at: Mapped[datetime | None] = mapped_column(nullable=True)
    delivery_status: Mapped[str | None] = mapped_column(String(20), nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    flow: Mapped["Flow"] = relationship(back_populates="scheduled_emails")
