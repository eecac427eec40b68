from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID, uuid4

import sqlalchemy as sa
from sqlalchemy import DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from compliance_workflow.db.base import Base
from compliance_workflow.db.enums import (
    DeliverableStatusEnum,
    DeliverableVersionEnum,
    StepStatusEnum,
    StepTypeEnum,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Deliverable(Base):
    __tablename__ = "deliverables"
    __table_args__ = (sa.Index("idx_deliverables_org_project", "org_id", "project_id"),)

    id: Mapped[UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid4)
    org_id: Mapped[str] = mapped_column(String(length=64), nullable=False)
    project_id: Mapped[str] = mapped_column(String(length=64), nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    version: Mapped[DeliverableVersionEnum] = mapped_column(
        Enum(DeliverableVersionEnum, name="deliverable_version"),
        nullable=False,
        default=DeliverableVersionEnum.v1,
    )
    status: Mapped[DeliverableStatusEnum] = mapped_column(
        Enum(DeliverableStatusEnum, name="deliverable_status"),
        nullable=False,
        default=DeliverableStatusEnum.pending,
    )
    # Cached projection of step statuses; only the orchestrator writes it.
    compliance_progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    file_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    steps: Mapped[list["ComplianceStep"]] = relationship(
        back_populates="deliverable",
        order_by="ComplianceStep.position",
        cascade="all, delete-orphan",
    )


class ComplianceStep(Base):
    __tablename__ = "compliance_steps"
    __table_args__ = (
        sa.UniqueConstraint("deliverable_id", "position", name="uq_compliance_steps_deliverable_position"),
        sa.Index("idx_compliance_steps_status", "status"),
    )

    id: Mapped[UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid4)
    deliverable_id: Mapped[UUID] = mapped_column(
        ForeignKey("deliverables.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    step_type: Mapped[StepTypeEnum] = mapped_column(
        Enum(StepTypeEnum, name="compliance_step_type"), nullable=False
    )
    status: Mapped[StepStatusEnum] = mapped_column(
        Enum(StepStatusEnum, name="compliance_step_status"),
        nullable=False,
        default=StepStatusEnum.pending,
    )
    form_schema: Mapped[Optional[dict[str, Any]]] = mapped_column(sa.JSON, nullable=True)
    form_data: Mapped[Optional[dict[str, Any]]] = mapped_column(sa.JSON, nullable=True)
    checklist_items: Mapped[Optional[list[dict[str, Any]]]] = mapped_column(sa.JSON, nullable=True)
    dynamic_list_data: Mapped[Optional[list[dict[str, Any]]]] = mapped_column(sa.JSON, nullable=True)
    file_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    admin_feedback: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    deliverable: Mapped[Deliverable] = relationship(back_populates="steps")
