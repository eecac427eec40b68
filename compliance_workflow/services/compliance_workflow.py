from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional, Sequence

from sqlalchemy.orm import Session

from compliance_workflow.db.enums import DeliverableStatusEnum, StepStatusEnum, StepTypeEnum
from compliance_workflow.db.models import ComplianceStep, Deliverable
from compliance_workflow.db.repositories import ComplianceStepsRepository, DeliverablesRepository
from compliance_workflow.schemas.compliance_steps import (
    ComplianceProgressResponse,
    ComplianceStepResponse,
    ComplianceStepsResponse,
    DeliverableResponse,
)
from compliance_workflow.workflow import approval, submission
from compliance_workflow.workflow.capabilities import Capabilities
from compliance_workflow.workflow.content import ChecklistContent, ContentSnapshot
from compliance_workflow.workflow.errors import InvalidTransition, NotFound, WorkflowValidationError
from compliance_workflow.workflow.models import WorkflowStep
from compliance_workflow.workflow.orchestrator import ProgressChange, WorkflowOrchestrator
from compliance_workflow.workflow.state_machine import is_editable, is_terminal

logger = logging.getLogger(__name__)

# Deliverable statuses in which the vendor is still working through compliance.
_OPEN_DELIVERABLE_STATUSES = {DeliverableStatusEnum.pending, DeliverableStatusEnum.rejected}


@dataclass
class LoadedWorkflow:
    deliverable: Deliverable
    orchestrator: WorkflowOrchestrator


def _iso(value: Optional[datetime]) -> str | None:
    if value is None:
        return None
    # SQLite hands timestamps back without an offset; they are stored as UTC.
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def step_to_response(
    step: WorkflowStep,
    *,
    capabilities: Capabilities,
) -> ComplianceStepResponse:
    snapshot = step.snapshot()
    checklist_progress = step.content.checked_ratio if isinstance(step.content, ChecklistContent) else None
    return ComplianceStepResponse(
        id=step.id,
        deliverableId=step.deliverable_id or "",
        position=step.position,
        name=step.name,
        description=step.description,
        stepType=step.step_type,
        status=step.status,
        formSchema=step.form_schema,
        formData=dict(snapshot.form_data),
        checklistItems=[item.model_dump() for item in snapshot.checklist_items],
        dynamicListData=[entry.model_dump() for entry in snapshot.dynamic_list_data],
        checklistProgress=checklist_progress,
        fileUrl=step.file_url,
        adminFeedback=step.admin_feedback,
        submittedAt=_iso(step.submitted_at),
        reviewedAt=_iso(step.reviewed_at),
        canEdit=capabilities.can_edit and is_editable(step.status) and step.step_type != StepTypeEnum.approval,
        canDecide=capabilities.can_decide and step.status == StepStatusEnum.submitted,
    )


def progress_to_response(orchestrator: WorkflowOrchestrator) -> ComplianceProgressResponse:
    steps = orchestrator.steps
    actionable = orchestrator.actionable_step
    return ComplianceProgressResponse(
        deliverableId=orchestrator.deliverable_id,
        complianceProgress=orchestrator.progress,
        uploadUnlocked=orchestrator.upload_unlocked,
        completedSteps=sum(1 for step in steps if is_terminal(step.status)),
        totalSteps=len(steps),
        actionableStepId=actionable.id if actionable else None,
    )


def deliverable_to_response(deliverable: Deliverable) -> DeliverableResponse:
    return DeliverableResponse(
        id=str(deliverable.id),
        projectId=deliverable.project_id,
        name=deliverable.name,
        version=deliverable.version,
        status=deliverable.status,
        complianceProgress=deliverable.compliance_progress,
        fileUrl=deliverable.file_url,
        updatedAt=_iso(deliverable.updated_at),
    )


class ComplianceWorkflowService:
    """Loads a deliverable's workflow, runs engine operations on it and persists the result."""

    def __init__(self, session: Session) -> None:
        self.session = session
        self.deliverables = DeliverablesRepository(session)
        self.steps = ComplianceStepsRepository(session)

    def load(
        self,
        *,
        org_id: str,
        deliverable_id: str,
        project_id: str | None = None,
    ) -> LoadedWorkflow:
        if project_id is None:
            deliverable = self.deliverables.get(org_id=org_id, deliverable_id=deliverable_id)
        else:
            deliverable = self.deliverables.get_for_project(
                org_id=org_id, project_id=project_id, deliverable_id=deliverable_id
            )
        if deliverable is None:
            raise NotFound(f"Deliverable {deliverable_id} not found")
        return LoadedWorkflow(deliverable=deliverable, orchestrator=self._orchestrator_for(deliverable))

    def list_steps(
        self,
        *,
        org_id: str,
        project_id: str,
        deliverable_id: str,
        capabilities: Capabilities,
    ) -> ComplianceStepsResponse:
        loaded = self.load(org_id=org_id, project_id=project_id, deliverable_id=deliverable_id)
        orchestrator = loaded.orchestrator
        steps = [
            step_to_response(step, capabilities=capabilities)
            for step in orchestrator.steps
        ]
        return ComplianceStepsResponse(**progress_to_response(orchestrator).model_dump(), steps=steps)

    def get_progress(self, *, org_id: str, project_id: str, deliverable_id: str) -> ComplianceProgressResponse:
        loaded = self.load(org_id=org_id, project_id=project_id, deliverable_id=deliverable_id)
        return progress_to_response(loaded.orchestrator)

    def save_draft(
        self,
        *,
        org_id: str,
        step_id: str,
        snapshot: ContentSnapshot,
        capabilities: Capabilities,
    ) -> WorkflowStep:
        return self._mutate(
            org_id=org_id,
            step_id=step_id,
            operation=lambda step: submission.save_draft(step, snapshot, capabilities),
            event="compliance_step.draft_saved",
        )

    def submit(
        self,
        *,
        org_id: str,
        step_id: str,
        snapshot: ContentSnapshot,
        capabilities: Capabilities,
    ) -> WorkflowStep:
        return self._mutate(
            org_id=org_id,
            step_id=step_id,
            operation=lambda step: submission.submit(step, snapshot, capabilities),
            event="compliance_step.submitted",
        )

    def approve(self, *, org_id: str, step_id: str, capabilities: Capabilities) -> WorkflowStep:
        return self._mutate(
            org_id=org_id,
            step_id=step_id,
            operation=lambda step: approval.approve(step, capabilities),
            event="compliance_step.approved",
        )

    def reject(
        self,
        *,
        org_id: str,
        step_id: str,
        feedback: str | None,
        capabilities: Capabilities,
    ) -> WorkflowStep:
        return self._mutate(
            org_id=org_id,
            step_id=step_id,
            operation=lambda step: approval.reject(step, feedback, capabilities),
            event="compliance_step.rejected",
        )

    def complete_deliverable(
        self,
        *,
        org_id: str,
        project_id: str,
        deliverable_id: str,
        file_url: str,
        capabilities: Capabilities,
    ) -> Deliverable:
        capabilities.require_edit()
        cleaned_url = file_url.strip()
        if not cleaned_url:
            raise WorkflowValidationError("fileUrl must not be blank")
        loaded = self.load(org_id=org_id, project_id=project_id, deliverable_id=deliverable_id)
        deliverable = loaded.deliverable
        orchestrator = loaded.orchestrator
        if deliverable.status not in _OPEN_DELIVERABLE_STATUSES:
            raise InvalidTransition(
                status=deliverable.status.value,
                action="complete",
                reason="it is not awaiting an upload",
                subject="deliverable",
            )
        if not orchestrator.upload_unlocked:
            raise InvalidTransition(
                status=deliverable.status.value,
                action="complete",
                reason=f"compliance progress is {orchestrator.progress}%, upload unlocks at 100%",
                subject="deliverable",
            )
        deliverable.file_url = cleaned_url
        deliverable.status = DeliverableStatusEnum.submitted
        deliverable.compliance_progress = orchestrator.progress
        self.deliverables.commit()
        self.session.refresh(deliverable)
        logger.info(
            "deliverable.completed",
            extra={"deliverable_id": str(deliverable.id), "project_id": deliverable.project_id},
        )
        return deliverable

    def _orchestrator_for(self, deliverable: Deliverable) -> WorkflowOrchestrator:
        records = self.steps.list_for_deliverable(deliverable_id=deliverable.id)
        orchestrator = WorkflowOrchestrator.load(_RecordSource(records), str(deliverable.id))
        orchestrator.subscribe(_cache_progress_on(deliverable))
        return orchestrator

    def _mutate(
        self,
        *,
        org_id: str,
        step_id: str,
        operation: Callable[[WorkflowStep], WorkflowStep],
        event: str,
    ) -> WorkflowStep:
        record = self.steps.get(org_id=org_id, step_id=step_id)
        if record is None:
            raise NotFound(f"Compliance step {step_id} not found")
        deliverable = record.deliverable
        orchestrator = self._orchestrator_for(deliverable)

        # Engine operations raise before anything is written.
        updated = operation(orchestrator.get_step(str(record.id)))
        orchestrator.apply(updated)

        self.steps.apply(record, updated)
        deliverable.compliance_progress = orchestrator.progress
        self.steps.commit()
        self.session.refresh(record)
        logger.info(
            event,
            extra={
                "step_id": updated.id,
                "deliverable_id": orchestrator.deliverable_id,
                "status": updated.status.value,
                "compliance_progress": orchestrator.progress,
            },
        )
        return WorkflowStep.from_record(record)


class _RecordSource:
    def __init__(self, records: Sequence[ComplianceStep]) -> None:
        self._records = records

    def list_steps(self, deliverable_id: str) -> list[WorkflowStep]:
        return [WorkflowStep.from_record(record) for record in self._records]


def _cache_progress_on(deliverable: Deliverable) -> Callable[[ProgressChange], None]:
    def observer(change: ProgressChange) -> None:
        deliverable.compliance_progress = change.current
        if change.upload_unlocked and change.previous != change.current:
            logger.info(
                "deliverable.upload_unlocked",
                extra={"deliverable_id": change.deliverable_id, "step_id": change.step_id},
            )

    return observer
