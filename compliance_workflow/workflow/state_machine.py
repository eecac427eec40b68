from __future__ import annotations

from enum import Enum

from compliance_workflow.db.enums import StepStatusEnum, StepTypeEnum
from compliance_workflow.workflow.errors import InvalidTransition


class StepAction(str, Enum):
    edit = "edit"
    submit = "submit"
    approve = "approve"
    reject = "reject"


EDITABLE_STATUSES = frozenset({StepStatusEnum.pending, StepStatusEnum.draft, StepStatusEnum.rejected})
TERMINAL_STATUSES = frozenset({StepStatusEnum.approved, StepStatusEnum.completed})

# (current status, action) -> next status. Anything missing is an invalid transition.
TRANSITIONS: dict[tuple[StepStatusEnum, StepAction], StepStatusEnum] = {
    (StepStatusEnum.pending, StepAction.edit): StepStatusEnum.draft,
    (StepStatusEnum.draft, StepAction.edit): StepStatusEnum.draft,
    (StepStatusEnum.rejected, StepAction.edit): StepStatusEnum.draft,
    (StepStatusEnum.pending, StepAction.submit): StepStatusEnum.submitted,
    (StepStatusEnum.draft, StepAction.submit): StepStatusEnum.submitted,
    (StepStatusEnum.rejected, StepAction.submit): StepStatusEnum.submitted,
    (StepStatusEnum.submitted, StepAction.approve): StepStatusEnum.approved,
    (StepStatusEnum.submitted, StepAction.reject): StepStatusEnum.rejected,
    # Re-approval is tolerated as a no-op.
    (StepStatusEnum.approved, StepAction.approve): StepStatusEnum.approved,
    (StepStatusEnum.completed, StepAction.approve): StepStatusEnum.approved,
}

SUBMITTER_ACTIONS = frozenset({StepAction.edit, StepAction.submit})


def normalize_status(status: StepStatusEnum | str) -> StepStatusEnum:
    status = StepStatusEnum(status)
    if status == StepStatusEnum.completed:
        return StepStatusEnum.approved
    return status


def is_editable(status: StepStatusEnum | str) -> bool:
    return StepStatusEnum(status) in EDITABLE_STATUSES


def is_terminal(status: StepStatusEnum | str) -> bool:
    return StepStatusEnum(status) in TERMINAL_STATUSES


def is_actionable(status: StepStatusEnum | str) -> bool:
    """Whether the submitter should be steered to this step next."""
    return StepStatusEnum(status) in (StepStatusEnum.pending, StepStatusEnum.draft)


def next_status(
    status: StepStatusEnum | str,
    action: StepAction | str,
    *,
    step_type: StepTypeEnum | str | None = None,
) -> StepStatusEnum:
    status = StepStatusEnum(status)
    action = StepAction(action)
    if step_type is not None and StepTypeEnum(step_type) == StepTypeEnum.approval and action in SUBMITTER_ACTIONS:
        raise InvalidTransition(
            status=status.value,
            action=action.value,
            reason="approval steps only accept a review decision",
        )
    try:
        return TRANSITIONS[(status, action)]
    except KeyError:
        raise InvalidTransition(status=status.value, action=action.value) from None
