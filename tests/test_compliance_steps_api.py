from uuid import uuid4

from sqlalchemy.exc import OperationalError

from compliance_workflow.db.enums import ActorRoleEnum, DeliverableStatusEnum, StepStatusEnum, StepTypeEnum
from compliance_workflow.db.models import ComplianceStep, Deliverable

TEST_PROJECT_ID = "proj_test"


def _vendor_steps_url(deliverable_id) -> str:
    return f"/vendor/projects/{TEST_PROJECT_ID}/deliverables/{deliverable_id}/compliance-steps"


def _admin_steps_url(deliverable_id) -> str:
    return f"/projects/{TEST_PROJECT_ID}/deliverables/{deliverable_id}/compliance-steps"


def _complete_url(deliverable_id) -> str:
    return f"/vendor/projects/{TEST_PROJECT_ID}/deliverables/{deliverable_id}/complete"


def test_vendor_lists_steps_with_progress(api_client, seed_workflow, standard_steps):
    deliverable, steps = seed_workflow(standard_steps)

    resp = api_client.get(_vendor_steps_url(deliverable.id))

    assert resp.status_code == 200
    body = resp.json()
    assert body["complianceProgress"] == 0
    assert body["uploadUnlocked"] is False
    assert body["totalSteps"] == 4
    assert body["actionableStepId"] == str(steps[0].id)
    assert [step["stepType"] for step in body["steps"]] == [
        "form_textarea",
        "checklist",
        "dynamic_list",
        "approval",
    ]
    first, checklist, _, legal = body["steps"]
    assert first["formData"] == {"value": ""}
    assert first["canEdit"] is True
    assert first["canDecide"] is False
    assert checklist["checklistProgress"] == 0.0
    assert legal["canEdit"] is False


def test_save_draft_then_submit(api_client, db_session, seed_workflow, standard_steps):
    deliverable, steps = seed_workflow(standard_steps)
    step_id = str(steps[0].id)

    resp = api_client.post(
        f"/vendor/compliance-steps/{step_id}/save-draft",
        json={"formData": {"value": "All footage shot by us."}},
    )
    assert resp.status_code == 200
    assert resp.json() == {"ok": True, "stepId": step_id, "status": "draft"}

    resp = api_client.post(
        f"/vendor/compliance-steps/{step_id}/submit",
        json={"formData": {"value": "All footage shot by us, music licensed."}},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "submitted"
    assert body["formData"] == {"value": "All footage shot by us, music licensed."}
    assert body["submittedAt"] is not None
    assert body["submittedAt"].endswith("+00:00")
    assert body["canEdit"] is False

    db_session.expire_all()
    record = db_session.get(ComplianceStep, steps[0].id)
    assert record.status == StepStatusEnum.submitted
    assert record.form_data == {"value": "All footage shot by us, music licensed."}


def test_editing_a_submitted_step_conflicts(api_client, seed_workflow, standard_steps):
    _, steps = seed_workflow(standard_steps)
    step_id = str(steps[0].id)
    api_client.post(f"/vendor/compliance-steps/{step_id}/submit", json={"formData": {"value": "done"}})

    resp = api_client.post(f"/vendor/compliance-steps/{step_id}/save-draft", json={"formData": {"value": "late"}})

    assert resp.status_code == 409
    assert resp.json()["error"] == "invalid_transition"


def test_checklist_draft_keeps_labels(api_client, seed_workflow, standard_steps):
    _, steps = seed_workflow(standard_steps)
    step_id = str(steps[1].id)

    resp = api_client.post(
        f"/vendor/compliance-steps/{step_id}/submit",
        json={"checklistItems": [{"id": "nda", "label": "tampered", "checked": True}]},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["checklistItems"] == [
        {"id": "nda", "label": "NDA signed", "checked": True},
        {"id": "music", "label": "Music licensed", "checked": False},
    ]
    assert body["checklistProgress"] == 0.5


def test_unknown_checklist_item_is_a_validation_error(api_client, seed_workflow, standard_steps):
    _, steps = seed_workflow(standard_steps)

    resp = api_client.post(
        f"/vendor/compliance-steps/{steps[1].id}/save-draft",
        json={"checklistItems": [{"id": "made-up", "checked": True}]},
    )

    assert resp.status_code == 422
    assert resp.json()["error"] == "validation_error"


def test_vendor_cannot_submit_approval_step(api_client, seed_workflow):
    _, steps = seed_workflow([{"name": "Legal sign-off", "step_type": StepTypeEnum.approval}])

    resp = api_client.post(f"/vendor/compliance-steps/{steps[0].id}/submit", json={})

    assert resp.status_code == 409


def test_reject_then_resubmit_then_approve(api_client, act_as, seed_workflow, standard_steps):
    deliverable, steps = seed_workflow(standard_steps)
    step_id = str(steps[0].id)
    api_client.post(f"/vendor/compliance-steps/{step_id}/submit", json={"formData": {"value": "v1"}})

    act_as(ActorRoleEnum.admin)
    resp = api_client.post(f"/compliance-steps/{step_id}/reject", json={"feedback": "   "})
    assert resp.status_code == 422
    assert resp.json()["error"] == "validation_error"

    resp = api_client.post(f"/compliance-steps/{step_id}/reject", json={"feedback": "missing signature"})
    assert resp.status_code == 200
    assert resp.json()["status"] == "rejected"
    assert resp.json()["adminFeedback"] == "missing signature"

    act_as(ActorRoleEnum.vendor)
    listed = api_client.get(_vendor_steps_url(deliverable.id)).json()
    assert listed["steps"][0]["canEdit"] is True
    assert listed["steps"][0]["adminFeedback"] == "missing signature"

    resp = api_client.post(f"/vendor/compliance-steps/{step_id}/submit", json={"formData": {"value": "v2 signed"}})
    assert resp.status_code == 200
    assert resp.json()["adminFeedback"] is None

    act_as(ActorRoleEnum.admin)
    resp = api_client.post(f"/compliance-steps/{step_id}/approve")
    assert resp.status_code == 200
    assert resp.json()["status"] == "approved"

    # Re-approval is tolerated.
    assert api_client.post(f"/compliance-steps/{step_id}/approve").status_code == 200

    progress = api_client.get(
        f"/projects/{TEST_PROJECT_ID}/deliverables/{deliverable.id}/compliance-progress"
    ).json()
    assert progress["complianceProgress"] == 25
    assert progress["completedSteps"] == 1


def test_upload_unlocks_only_at_full_progress(api_client, act_as, db_session, seed_workflow, standard_steps):
    deliverable, steps = seed_workflow(standard_steps)
    first, checklist, releases, legal = (str(step.id) for step in steps)

    api_client.post(f"/vendor/compliance-steps/{first}/submit", json={"formData": {"value": "ok"}})
    api_client.post(
        f"/vendor/compliance-steps/{checklist}/submit",
        json={"checklistItems": [{"id": "nda", "checked": True}, {"id": "music", "checked": True}]},
    )
    api_client.post(
        f"/vendor/compliance-steps/{releases}/submit",
        json={"dynamicListData": [{"id": "item-1", "value": "Jane Doe"}]},
    )

    act_as(ActorRoleEnum.admin)
    for step_id in (first, checklist, releases):
        assert api_client.post(f"/compliance-steps/{step_id}/approve").status_code == 200

    act_as(ActorRoleEnum.vendor)
    resp = api_client.post(_complete_url(deliverable.id), json={"fileUrl": "https://cdn.example.com/cut.mp4"})
    assert resp.status_code == 409
    assert "75%" in resp.json()["detail"]

    act_as(ActorRoleEnum.admin)
    assert api_client.post(f"/compliance-steps/{legal}/approve").status_code == 200
    listed = api_client.get(_admin_steps_url(deliverable.id)).json()
    assert listed["complianceProgress"] == 100
    assert listed["uploadUnlocked"] is True
    assert listed["actionableStepId"] is None

    act_as(ActorRoleEnum.vendor)
    resp = api_client.post(_complete_url(deliverable.id), json={"fileUrl": "https://cdn.example.com/cut.mp4"})
    assert resp.status_code == 200
    assert resp.json()["status"] == "submitted"
    assert resp.json()["complianceProgress"] == 100
    assert resp.json()["updatedAt"].endswith("+00:00")

    db_session.expire_all()
    stored = db_session.get(Deliverable, deliverable.id)
    assert stored.file_url == "https://cdn.example.com/cut.mp4"
    assert stored.compliance_progress == 100


def test_legacy_completed_status_counts_as_approved(api_client, seed_workflow):
    deliverable, _ = seed_workflow(
        [
            {"name": "Old step", "step_type": StepTypeEnum.form_text, "status": StepStatusEnum.completed},
            {"name": "New step", "step_type": StepTypeEnum.form_text},
        ]
    )

    body = api_client.get(_vendor_steps_url(deliverable.id)).json()

    assert body["complianceProgress"] == 50
    assert body["steps"][0]["status"] == "approved"


def test_role_guards(api_client, act_as, seed_workflow, standard_steps):
    deliverable, steps = seed_workflow(standard_steps)

    assert api_client.get(_admin_steps_url(deliverable.id)).status_code == 403
    assert api_client.post(f"/compliance-steps/{steps[3].id}/approve").status_code == 403

    act_as(ActorRoleEnum.admin)
    resp = api_client.post(f"/vendor/compliance-steps/{steps[0].id}/save-draft", json={})
    assert resp.status_code == 403


def test_unknown_or_foreign_resources_are_not_found(api_client, act_as, seed_workflow, standard_steps):
    deliverable, steps = seed_workflow(standard_steps)

    resp = api_client.post(f"/vendor/compliance-steps/{uuid4()}/save-draft", json={})
    assert resp.status_code == 404
    assert resp.json()["error"] == "not_found"

    assert api_client.post("/vendor/compliance-steps/not-a-uuid/save-draft", json={}).status_code == 404
    assert api_client.get(f"/vendor/projects/other/deliverables/{deliverable.id}/compliance-steps").status_code == 404

    act_as(ActorRoleEnum.vendor, org_id="another_org")
    assert api_client.get(_vendor_steps_url(deliverable.id)).status_code == 404
    assert api_client.post(f"/vendor/compliance-steps/{steps[0].id}/save-draft", json={}).status_code == 404


def test_deliverable_without_steps_is_not_found(api_client, seed_workflow):
    deliverable, _ = seed_workflow([])

    resp = api_client.get(_vendor_steps_url(deliverable.id))

    assert resp.status_code == 404


def test_unexpected_request_fields_are_rejected(api_client, seed_workflow, standard_steps):
    _, steps = seed_workflow(standard_steps)

    resp = api_client.post(f"/vendor/compliance-steps/{steps[0].id}/save-draft", json={"status": "approved"})

    assert resp.status_code == 422


def _approve_everything(api_client, act_as, steps):
    first, checklist, releases, legal = (str(step.id) for step in steps)
    api_client.post(f"/vendor/compliance-steps/{first}/submit", json={"formData": {"value": "ok"}})
    api_client.post(
        f"/vendor/compliance-steps/{checklist}/submit",
        json={"checklistItems": [{"id": "nda", "checked": True}, {"id": "music", "checked": True}]},
    )
    api_client.post(
        f"/vendor/compliance-steps/{releases}/submit",
        json={"dynamicListData": [{"id": "item-1", "value": "Jane Doe"}]},
    )
    act_as(ActorRoleEnum.admin)
    for step_id in (first, checklist, releases, legal):
        assert api_client.post(f"/compliance-steps/{step_id}/approve").status_code == 200
    act_as(ActorRoleEnum.vendor)


def test_blank_file_url_is_rejected_without_completing(api_client, act_as, db_session, seed_workflow, standard_steps):
    deliverable, steps = seed_workflow(standard_steps)
    _approve_everything(api_client, act_as, steps)

    resp = api_client.post(_complete_url(deliverable.id), json={"fileUrl": "   "})

    assert resp.status_code == 422
    assert resp.json()["error"] == "validation_error"
    db_session.expire_all()
    stored = db_session.get(Deliverable, deliverable.id)
    assert stored.status == DeliverableStatusEnum.pending
    assert stored.file_url is None


def test_complete_stores_trimmed_file_url(api_client, act_as, db_session, seed_workflow, standard_steps):
    deliverable, steps = seed_workflow(standard_steps)
    _approve_everything(api_client, act_as, steps)

    resp = api_client.post(_complete_url(deliverable.id), json={"fileUrl": "  https://cdn.example.com/cut.mp4 "})

    assert resp.status_code == 200
    assert resp.json()["fileUrl"] == "https://cdn.example.com/cut.mp4"


def _locked_commit():
    raise OperationalError("UPDATE compliance_steps", {}, Exception("database is locked"))


def test_commit_failure_on_submit_is_unavailable_and_rolled_back(
    api_client, db_session, monkeypatch, seed_workflow, standard_steps
):
    deliverable, steps = seed_workflow(standard_steps)
    step_id = str(steps[0].id)

    with monkeypatch.context() as patched:
        patched.setattr(db_session, "commit", _locked_commit)
        resp = api_client.post(
            f"/vendor/compliance-steps/{step_id}/submit",
            json={"formData": {"value": "All footage shot by us."}},
        )

    assert resp.status_code == 503
    assert resp.json()["error"] == "persistence_failure"
    db_session.expire_all()
    record = db_session.get(ComplianceStep, steps[0].id)
    assert record.status == StepStatusEnum.pending
    assert record.form_data is None
    assert record.submitted_at is None


def test_commit_failure_on_review_leaves_step_submitted(
    api_client, act_as, db_session, monkeypatch, seed_workflow, standard_steps
):
    deliverable, steps = seed_workflow(standard_steps)
    legal = steps[3]
    act_as(ActorRoleEnum.admin)

    with monkeypatch.context() as patched:
        patched.setattr(db_session, "commit", _locked_commit)
        approve = api_client.post(f"/compliance-steps/{legal.id}/approve")
        reject = api_client.post(f"/compliance-steps/{legal.id}/reject", json={"feedback": "Missing signature"})

    assert approve.status_code == 503
    assert reject.status_code == 503
    assert reject.json()["error"] == "persistence_failure"
    db_session.expire_all()
    record = db_session.get(ComplianceStep, legal.id)
    assert record.status == StepStatusEnum.submitted
    assert record.admin_feedback is None
