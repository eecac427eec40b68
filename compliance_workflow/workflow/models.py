from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

from compliance_workflow.db.enums import StepStatusEnum, StepTypeEnum
from compliance_workflow.workflow.content import (
    ContentSnapshot,
    FileContent,
    StepContent,
    load_content,
)
from compliance_workflow.workflow.state_machine import normalize_status


@dataclass(frozen=True)
class WorkflowStep:
    id: str
    position: int
    name: str
    step_type: StepTypeEnum
    status: StepStatusEnum
    content: StepContent
    deliverable_id: str | None = None
    description: str | None = None
    form_schema: dict[str, Any] = field(default_factory=dict)
    admin_feedback: str | None = None
    submitted_at: datetime | None = None
    reviewed_at: datetime | None = None

    @property
    def file_url(self) -> str | None:
        if isinstance(self.content, FileContent):
            return self.content.file_url
        return None

    def snapshot(self) -> ContentSnapshot:
        return self.content.to_snapshot()

    def evolve(self, **changes: Any) -> "WorkflowStep":
        return replace(self, **changes)

    @classmethod
    def from_record(cls, record) -> "WorkflowStep":
        step_type = StepTypeEnum(record.step_type)
        return cls(
            id=str(record.id),
            deliverable_id=str(record.deliverable_id),
            position=record.position,
            name=record.name,
            description=record.description,
            step_type=step_type,
            status=normalize_status(record.status),
            content=load_content(
                step_type,
                form_data=record.form_data,
                checklist_items=record.checklist_items,
                dynamic_list_data=record.dynamic_list_data,
                file_url=record.file_url,
            ),
            form_schema=dict(record.form_schema or {}),
            admin_feedback=record.admin_feedback,
            submitted_at=record.submitted_at,
            reviewed_at=record.reviewed_at,
        )
