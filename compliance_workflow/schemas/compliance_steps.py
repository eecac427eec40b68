from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from compliance_workflow.db.enums import (
    DeliverableStatusEnum,
    DeliverableVersionEnum,
    StepStatusEnum,
    StepTypeEnum,
)
from compliance_workflow.workflow.content import ContentSnapshot, snapshot_from_wire


class ChecklistItemPayload(BaseModel):
    id: str
    label: str = ""
    checked: bool = False


class DynamicListItemPayload(BaseModel):
    id: str
    value: str = ""


class StepContentRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    # Left loosely typed so malformed content is reported by the content model.
    formData: dict[str, Any] | None = None
    checklistItems: list[Any] | None = None
    dynamicListData: list[Any] | None = None

    def to_snapshot(self) -> ContentSnapshot:
        return snapshot_from_wire(self.model_dump())


class RejectStepRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    feedback: str | None = None


class CompleteDeliverableRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    fileUrl: str = Field(..., min_length=1)


class ComplianceStepResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    deliverableId: str
    position: int
    name: str
    description: str | None = None
    stepType: StepTypeEnum
    status: StepStatusEnum
    formSchema: dict[str, Any] = Field(default_factory=dict)
    formData: dict[str, Any] = Field(default_factory=dict)
    checklistItems: list[ChecklistItemPayload] = Field(default_factory=list)
    dynamicListData: list[DynamicListItemPayload] = Field(default_factory=list)
    checklistProgress: float | None = None
    fileUrl: str | None = None
    adminFeedback: str | None = None
    submittedAt: str | None = None
    reviewedAt: str | None = None
    canEdit: bool = False
    canDecide: bool = False


class ComplianceProgressResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    deliverableId: str
    complianceProgress: int
    uploadUnlocked: bool
    completedSteps: int
    totalSteps: int
    actionableStepId: str | None = None


class ComplianceStepsResponse(ComplianceProgressResponse):
    steps: list[ComplianceStepResponse] = Field(default_factory=list)


class DraftSavedResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    ok: bool = True
    stepId: str
    status: StepStatusEnum


class DeliverableResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    projectId: str
    name: str
    version: DeliverableVersionEnum
    status: DeliverableStatusEnum
    complianceProgress: int
    fileUrl: str | None = None
    updatedAt: str
