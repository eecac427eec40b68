from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from compliance_workflow.auth.dependencies import AuthContext, require_admin, require_vendor
from compliance_workflow.db.deps import get_session
from compliance_workflow.schemas.compliance_steps import (
    CompleteDeliverableRequest,
    ComplianceProgressResponse,
    ComplianceStepResponse,
    ComplianceStepsResponse,
    DeliverableResponse,
    DraftSavedResponse,
    RejectStepRequest,
    StepContentRequest,
)
from compliance_workflow.services.compliance_workflow import (
    ComplianceWorkflowService,
    deliverable_to_response,
    step_to_response,
)


router = APIRouter(tags=["compliance-steps"])


# Submitter (vendor) family


@router.get(
    "/vendor/projects/{project_id}/deliverables/{deliverable_id}/compliance-steps",
    response_model=ComplianceStepsResponse,
)
def list_vendor_compliance_steps(
    project_id: str,
    deliverable_id: str,
    auth: AuthContext = Depends(require_vendor),
    session: Session = Depends(get_session),
) -> ComplianceStepsResponse:
    return ComplianceWorkflowService(session).list_steps(
        org_id=auth.org_id,
        project_id=project_id,
        deliverable_id=deliverable_id,
        capabilities=auth.capabilities,
    )


@router.post("/vendor/compliance-steps/{step_id}/save-draft", response_model=DraftSavedResponse)
def save_compliance_step_draft(
    step_id: str,
    payload: StepContentRequest,
    auth: AuthContext = Depends(require_vendor),
    session: Session = Depends(get_session),
) -> DraftSavedResponse:
    step = ComplianceWorkflowService(session).save_draft(
        org_id=auth.org_id,
        step_id=step_id,
        snapshot=payload.to_snapshot(),
        capabilities=auth.capabilities,
    )
    return DraftSavedResponse(stepId=step.id, status=step.status)


@router.post("/vendor/compliance-steps/{step_id}/submit", response_model=ComplianceStepResponse)
def submit_compliance_step(
    step_id: str,
    payload: StepContentRequest,
    auth: AuthContext = Depends(require_vendor),
    session: Session = Depends(get_session),
) -> ComplianceStepResponse:
    step = ComplianceWorkflowService(session).submit(
        org_id=auth.org_id,
        step_id=step_id,
        snapshot=payload.to_snapshot(),
        capabilities=auth.capabilities,
    )
    return step_to_response(step, capabilities=auth.capabilities)


@router.post(
    "/vendor/projects/{project_id}/deliverables/{deliverable_id}/complete",
    response_model=DeliverableResponse,
)
def complete_deliverable(
    project_id: str,
    deliverable_id: str,
    payload: CompleteDeliverableRequest,
    auth: AuthContext = Depends(require_vendor),
    session: Session = Depends(get_session),
) -> DeliverableResponse:
    deliverable = ComplianceWorkflowService(session).complete_deliverable(
        org_id=auth.org_id,
        project_id=project_id,
        deliverable_id=deliverable_id,
        file_url=payload.fileUrl,
        capabilities=auth.capabilities,
    )
    return deliverable_to_response(deliverable)


# Reviewer (admin) family


@router.get(
    "/projects/{project_id}/deliverables/{deliverable_id}/compliance-steps",
    response_model=ComplianceStepsResponse,
)
def list_compliance_steps(
    project_id: str,
    deliverable_id: str,
    auth: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
) -> ComplianceStepsResponse:
    return ComplianceWorkflowService(session).list_steps(
        org_id=auth.org_id,
        project_id=project_id,
        deliverable_id=deliverable_id,
        capabilities=auth.capabilities,
    )


@router.get(
    "/projects/{project_id}/deliverables/{deliverable_id}/compliance-progress",
    response_model=ComplianceProgressResponse,
)
def get_compliance_progress(
    project_id: str,
    deliverable_id: str,
    auth: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
) -> ComplianceProgressResponse:
    return ComplianceWorkflowService(session).get_progress(
        org_id=auth.org_id,
        project_id=project_id,
        deliverable_id=deliverable_id,
    )


@router.post("/compliance-steps/{step_id}/approve", response_model=ComplianceStepResponse)
def approve_compliance_step(
    step_id: str,
    auth: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
) -> ComplianceStepResponse:
    step = ComplianceWorkflowService(session).approve(
        org_id=auth.org_id,
        step_id=step_id,
        capabilities=auth.capabilities,
    )
    return step_to_response(step, capabilities=auth.capabilities)


@router.post("/compliance-steps/{step_id}/reject", response_model=ComplianceStepResponse)
def reject_compliance_step(
    step_id: str,
    payload: RejectStepRequest,
    auth: AuthContext = Depends(require_admin),
    session: Session = Depends(get_session),
) -> ComplianceStepResponse:
    step = ComplianceWorkflowService(session).reject(
        org_id=auth.org_id,
        step_id=step_id,
        feedback=payload.feedback,
        capabilities=auth.capabilities,
    )
    return step_to_response(step, capabilities=auth.capabilities)
