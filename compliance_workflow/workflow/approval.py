from __future__ import annotations

from datetime import datetime, timezone

from compliance_workflow.db.enums import StepStatusEnum
from compliance_workflow.workflow.capabilities import Capabilities
from compliance_workflow.workflow.errors import WorkflowValidationError
from compliance_workflow.workflow.models import WorkflowStep
from compliance_workflow.workflow.state_machine import StepAction, is_terminal, next_status


def approve(step: WorkflowStep, capabilities: Capabilities, *, now: datetime | None = None) -> WorkflowStep:
    capabilities.require_decide()
    status = next_status(step.status, StepAction.approve)
    if is_terminal(step.status) and step.reviewed_at is not None:
        return step.evolve(status=status)
    return step.evolve(
        status=status,
        admin_feedback=None,
        reviewed_at=now or datetime.now(timezone.utc),
    )


def reject(step: WorkflowStep, feedback: str | None, capabilities: Capabilities) -> WorkflowStep:
    capabilities.require_decide()
    status = next_status(step.status, StepAction.reject)
    cleaned = (feedback or "").strip()
    if not cleaned:
        raise WorkflowValidationError("Rejection feedback is required")
    return step.evolve(status=status, admin_feedback=cleaned, reviewed_at=None)


def needs_review(step: WorkflowStep) -> bool:
    return step.status == StepStatusEnum.submitted
