import pytest

from compliance_workflow.db.enums import StepStatusEnum, StepTypeEnum
from compliance_workflow.workflow.errors import InvalidTransition
from compliance_workflow.workflow.state_machine import (
    TRANSITIONS,
    StepAction,
    is_actionable,
    is_editable,
    is_terminal,
    next_status,
    normalize_status,
)


EXPECTED = {
    (StepStatusEnum.pending, StepAction.edit): StepStatusEnum.draft,
    (StepStatusEnum.draft, StepAction.edit): StepStatusEnum.draft,
    (StepStatusEnum.rejected, StepAction.edit): StepStatusEnum.draft,
    (StepStatusEnum.pending, StepAction.submit): StepStatusEnum.submitted,
    (StepStatusEnum.draft, StepAction.submit): StepStatusEnum.submitted,
    (StepStatusEnum.rejected, StepAction.submit): StepStatusEnum.submitted,
    (StepStatusEnum.submitted, StepAction.approve): StepStatusEnum.approved,
    (StepStatusEnum.submitted, StepAction.reject): StepStatusEnum.rejected,
    (StepStatusEnum.approved, StepAction.approve): StepStatusEnum.approved,
    (StepStatusEnum.completed, StepAction.approve): StepStatusEnum.approved,
}


def test_transition_table_matches_lifecycle():
    assert TRANSITIONS == EXPECTED


@pytest.mark.parametrize("status", list(StepStatusEnum))
@pytest.mark.parametrize("action", list(StepAction))
def test_every_pair_is_either_allowed_or_invalid(status, action):
    if (status, action) in EXPECTED:
        assert next_status(status, action) == EXPECTED[(status, action)]
    else:
        with pytest.raises(InvalidTransition) as excinfo:
            next_status(status, action)
        assert excinfo.value.status == status.value
        assert excinfo.value.action == action.value


def test_submitted_step_cannot_be_edited():
    with pytest.raises(InvalidTransition) as excinfo:
        next_status("submitted", "edit")
    assert str(excinfo.value) == "Cannot edit a step in status 'submitted'"


@pytest.mark.parametrize("action", [StepAction.edit, StepAction.submit])
def test_approval_steps_reject_submitter_actions(action):
    with pytest.raises(InvalidTransition) as excinfo:
        next_status(StepStatusEnum.pending, action, step_type=StepTypeEnum.approval)
    assert "review decision" in str(excinfo.value)


def test_approval_steps_accept_review_decisions():
    assert next_status("submitted", "approve", step_type="approval") == StepStatusEnum.approved
    assert next_status("submitted", "reject", step_type="approval") == StepStatusEnum.rejected


def test_legacy_completed_reads_as_approved():
    assert normalize_status("completed") == StepStatusEnum.approved
    assert normalize_status(StepStatusEnum.draft) == StepStatusEnum.draft
    assert is_terminal("completed")


def test_status_predicates():
    assert {s for s in StepStatusEnum if is_editable(s)} == {
        StepStatusEnum.pending,
        StepStatusEnum.draft,
        StepStatusEnum.rejected,
    }
    assert {s for s in StepStatusEnum if is_actionable(s)} == {StepStatusEnum.pending, StepStatusEnum.draft}
    assert not is_terminal(StepStatusEnum.submitted)
    assert not is_editable(StepStatusEnum.locked)
