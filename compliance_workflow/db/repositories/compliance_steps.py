from __future__ import annotations

from typing import Any, Iterable, Optional
from uuid import UUID

from sqlalchemy import select

from compliance_workflow.db.enums import StepStatusEnum, StepTypeEnum
from compliance_workflow.db.models import ComplianceStep, Deliverable
from compliance_workflow.db.repositories.base import Repository, parse_uuid
from compliance_workflow.workflow.content import (
    ApprovalContent,
    ChecklistContent,
    FileContent,
    ListContent,
    TextContent,
)
from compliance_workflow.workflow.models import WorkflowStep


def content_columns(step: WorkflowStep) -> dict[str, Any]:
    """Storage columns for a step's typed content; untouched columns stay empty."""
    content = step.content
    columns: dict[str, Any] = {"form_data": {}, "checklist_items": [], "dynamic_list_data": []}
    if isinstance(content, TextContent):
        columns["form_data"] = content.to_snapshot().form_data
    elif isinstance(content, ChecklistContent):
        columns["checklist_items"] = [item.model_dump() for item in content.items]
    elif isinstance(content, ListContent):
        columns["dynamic_list_data"] = [entry.model_dump() for entry in content.entries]
    elif isinstance(content, (FileContent, ApprovalContent)):
        pass
    return columns


class ComplianceStepsRepository(Repository):
    def get(self, *, org_id: str, step_id: str | UUID) -> Optional[ComplianceStep]:
        key = parse_uuid(step_id)
        if key is None:
            return None
        stmt = (
            select(ComplianceStep)
            .join(Deliverable, Deliverable.id == ComplianceStep.deliverable_id)
            .where(ComplianceStep.id == key, Deliverable.org_id == org_id)
        )
        return self.session.scalars(stmt).first()

    def list_for_deliverable(self, *, deliverable_id: str | UUID) -> list[ComplianceStep]:
        key = parse_uuid(deliverable_id)
        if key is None:
            return []
        stmt = (
            select(ComplianceStep)
            .where(ComplianceStep.deliverable_id == key)
            .order_by(ComplianceStep.position)
        )
        return list(self.session.scalars(stmt).all())

    def create_many(self, *, deliverable_id: str | UUID, steps: Iterable[dict[str, Any]]) -> list[ComplianceStep]:
        """Populate a deliverable's workflow in the given order."""
        key = parse_uuid(deliverable_id)
        records: list[ComplianceStep] = []
        for position, fields in enumerate(steps):
            fields = dict(fields)
            fields.setdefault("status", StepStatusEnum.pending)
            record = ComplianceStep(
                deliverable_id=key,
                position=position,
                step_type=StepTypeEnum(fields.pop("step_type")),
                **fields,
            )
            self.session.add(record)
            records.append(record)
        self.commit()
        for record in records:
            self.session.refresh(record)
        return records

    def apply(self, record: ComplianceStep, step: WorkflowStep) -> ComplianceStep:
        """Copy the engine's view of a step onto its row (not committed)."""
        for key, value in content_columns(step).items():
            setattr(record, key, value)
        record.status = step.status
        record.admin_feedback = step.admin_feedback
        record.reviewed_at = step.reviewed_at
        record.submitted_at = step.submitted_at
        return record
