from __future__ import annotations

from datetime import datetime, timezone

from compliance_workflow.workflow.capabilities import Capabilities
from compliance_workflow.workflow.content import ContentSnapshot, apply_snapshot
from compliance_workflow.workflow.models import WorkflowStep
from compliance_workflow.workflow.state_machine import StepAction, next_status


def save_draft(step: WorkflowStep, snapshot: ContentSnapshot, capabilities: Capabilities) -> WorkflowStep:
    """Record in-progress content; the step moves to ``draft`` and loses any rejection feedback."""
    capabilities.require_edit()
    status = next_status(step.status, StepAction.edit, step_type=step.step_type)
    content = apply_snapshot(step.content, snapshot)
    return step.evolve(status=status, content=content, admin_feedback=None, reviewed_at=None)


def submit(
    step: WorkflowStep,
    snapshot: ContentSnapshot,
    capabilities: Capabilities,
    *,
    now: datetime | None = None,
) -> WorkflowStep:
    """Hand the step to review with exactly the content supplied by the caller."""
    capabilities.require_edit()
    status = next_status(step.status, StepAction.submit, step_type=step.step_type)
    content = apply_snapshot(step.content, snapshot)
    return step.evolve(
        status=status,
        content=content,
        admin_feedback=None,
        reviewed_at=None,
        submitted_at=now or datetime.now(timezone.utc),
    )
